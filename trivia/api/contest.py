from functools import wraps
import hmac

from flask import Blueprint, jsonify, request, current_app

from trivia.errors import AdminAuthError, SessionConflictError, ValidationError
from trivia.services import questions as question_directory
from trivia.services import sessions as session_registry
from trivia.services import settings as reveal_gate
from trivia.services import submissions as ledger
from trivia.services.clock import WindowState, classify, utcnow


contest = Blueprint('contest', __name__)


def _payload():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def require_admin(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        supplied = request.headers.get('X-Admin-Key') or ''
        expected = str(current_app.config.get('ADMIN_SECRET') or '')
        if not expected or not hmac.compare_digest(supplied.encode(), expected.encode()):
            current_app.logger.info(f"[admin-reject] path={request.path}")
            raise AdminAuthError()
        return view(*args, **kwargs)
    return wrapped


def _participant_view(submission, question, now, hide_answer=False):
    """A submission as participants see it: nothing that gives away the answer before the close."""
    data = submission.to_dict()
    if classify(now, question.start_time, question.end_time) != WindowState.ENDED:
        data.pop('is_correct', None)
        if hide_answer:
            data.pop('answer', None)
    return data


# ---- Questions ----

@contest.route('/questions/active', methods=['GET'])
def get_active_question():
    question = question_directory.get_active(utcnow())
    return jsonify(question.to_dict(include_answer=False) if question else None)


@contest.route('/questions/schedule', methods=['GET'])
def get_schedule():
    now = utcnow()
    upcoming = question_directory.next_upcoming(now)
    return jsonify({
        'questions': [q.to_dict(include_answer=False) for q in question_directory.list_schedule()],
        'next_upcoming': upcoming.to_dict(include_answer=False) if upcoming else None,
    })


# ---- Submissions ----

@contest.route('/questions/<int:question_id>/answered', methods=['GET'])
def has_answered(question_id):
    name = request.args.get('name', '')
    return jsonify({'answered': ledger.has_answered(question_id, name)})


@contest.route('/questions/<int:question_id>/submissions/<string:name>', methods=['GET'])
def get_own_submission(question_id, name):
    question = question_directory.get_question(question_id)
    submission = ledger.get_own(question.id, name)
    if submission is None:
        return jsonify({'error': 'No submission found'}), 404
    return jsonify(_participant_view(submission, question, utcnow(), hide_answer=True))


@contest.route('/questions/<int:question_id>/submissions', methods=['POST'])
def submit_answer(question_id):
    data = _payload()
    question = question_directory.get_question(question_id)
    now = utcnow()
    submission = ledger.submit(data.get('name'), question, data.get('answer'), now)
    return jsonify(_participant_view(submission, question, now)), 201


@contest.route('/submissions/<int:submission_id>/viewed', methods=['POST'])
def mark_viewed(submission_id):
    return jsonify({'ok': ledger.mark_viewed(submission_id)})


# ---- Sessions ----

@contest.route('/sessions/live', methods=['GET'])
def is_name_live():
    name = request.args.get('name', '')
    exclude = request.args.get('exclude') or None
    return jsonify({'live': session_registry.is_identity_live(name, exclude, utcnow())})


@contest.route('/sessions', methods=['POST'])
def register_session():
    data = _payload()
    name = data.get('name')
    session_id = data.get('session_id')
    if not all([name, session_id]):
        raise ValidationError('Name and session id are required')
    now = utcnow()
    if session_registry.is_identity_live(name, session_id, now):
        raise SessionConflictError()
    row = session_registry.register(name, session_id, now)
    return jsonify(row.to_dict()), 201


@contest.route('/sessions/<string:session_id>/heartbeat', methods=['POST'])
def session_heartbeat(session_id):
    return jsonify({'alive': session_registry.heartbeat(session_id, utcnow())})


@contest.route('/sessions/<string:session_id>', methods=['DELETE'])
def end_session(session_id):
    session_registry.end(session_id)
    return jsonify({'ok': True})


# ---- Settings ----

@contest.route('/settings', methods=['GET'])
def get_settings():
    return jsonify(reveal_gate.get_settings().to_dict())


# ---- Admin ----

@contest.route('/admin/verify', methods=['GET'])
@require_admin
def verify_admin():
    return jsonify({'ok': True})


@contest.route('/admin/questions', methods=['POST'])
@require_admin
def create_question():
    data = _payload()
    question = question_directory.create_question(
        data.get('text'),
        data.get('kind'),
        data.get('options'),
        data.get('correct_answer'),
        data.get('start_time'),
        data.get('end_time'),
    )
    return jsonify(question.to_dict()), 201


@contest.route('/admin/questions', methods=['GET'])
@require_admin
def list_questions():
    return jsonify([q.to_dict() for q in question_directory.list_schedule()])


@contest.route('/admin/questions/<int:question_id>/force-end', methods=['POST'])
@require_admin
def force_end_question(question_id):
    return jsonify(question_directory.force_end(question_id, utcnow()).to_dict())


@contest.route('/admin/questions/<int:question_id>/window', methods=['PATCH'])
@require_admin
def update_question_window(question_id):
    data = _payload()
    question = question_directory.update_window(
        question_id, data.get('start_time'), data.get('end_time'), utcnow()
    )
    return jsonify(question.to_dict())


@contest.route('/admin/questions/<int:question_id>/submissions', methods=['GET'])
@require_admin
def list_submissions(question_id):
    question = question_directory.get_question(question_id)
    rows = ledger.list_for_question(question.id)
    # Winner is only meaningful once the window has closed
    winner = None
    if classify(utcnow(), question.start_time, question.end_time) == WindowState.ENDED:
        found = ledger.winner_of(rows)
        winner = found.to_dict() if found else None
    return jsonify({
        'question': question.to_dict(),
        'submissions': [s.to_dict() for s in rows],
        'total': len(rows),
        'correct': sum(1 for s in rows if s.is_correct),
        'winner': winner,
    })


@contest.route('/admin/settings/current-question', methods=['POST'])
@require_admin
def set_current_question():
    question_id = _payload().get('question_id')
    if question_id is not None:
        question_directory.get_question(question_id)
    return jsonify(reveal_gate.set_current_question(question_id).to_dict())


@contest.route('/admin/settings/toggle-winner', methods=['POST'])
@require_admin
def toggle_winner():
    data = _payload()
    new_value = reveal_gate.toggle_show_winner(bool(data.get('current_value')), data.get('winner_name'))
    return jsonify({'show_winner': new_value})

