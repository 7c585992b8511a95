"""Submission ledger.

One accepted answer per (question, normalized name). The ``has_answered``
pre-check gives a friendly rejection; the unique constraint on the table is
what actually decides when two attempts race past it.
"""

from typing import Iterable, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from trivia import db
from trivia.errors import DuplicateSubmissionError, ValidationError, WindowClosedError
from trivia.models import Question, Submission
from trivia.services.clock import utcnow
from trivia.services.sessions import normalize_identity


def normalize_answer(answer) -> str:
    return (answer or '').strip().lower()


def has_answered(question_id, identity) -> bool:
    normalized = normalize_identity(identity)
    if not normalized:
        return False
    return Submission.query.filter_by(question_id=question_id, normalized_name=normalized).count() > 0


def get_own(question_id, identity) -> Optional[Submission]:
    normalized = normalize_identity(identity)
    if not question_id or not normalized:
        return None
    return Submission.query.filter_by(question_id=question_id, normalized_name=normalized).first()


def list_for_question(question_id) -> List[Submission]:
    return (
        Submission.query
        .filter_by(question_id=question_id)
        .order_by(Submission.submitted_at.asc(), Submission.id.asc())
        .all()
    )


def submit(identity, question: Question, answer_text, now=None) -> Submission:
    name = (identity or '').strip()
    answer = (answer_text or '').strip()
    if question is None or not name or not answer:
        raise ValidationError('Invalid submission data.')
    now = now or utcnow()
    normalized = normalize_identity(name)

    if now > question.end_time:
        current_app.logger.info(f"[submit-reject] question={question.id} name={normalized} reason=closed")
        raise WindowClosedError()
    if now < question.start_time:
        current_app.logger.info(f"[submit-reject] question={question.id} name={normalized} reason=not-open")
        raise WindowClosedError('This question is not open yet.')
    if question.kind == 'multiple_choice' and answer not in (question.option_list or []):
        raise ValidationError('Answer must be one of the options')

    if has_answered(question.id, normalized):
        current_app.logger.info(f"[submit-reject] question={question.id} name={normalized} reason=duplicate")
        raise DuplicateSubmissionError()

    submission = Submission(
        question_id=question.id,
        name=name,
        normalized_name=normalized,
        answer=answer,
        is_correct=normalize_answer(answer) == normalize_answer(question.correct_answer),
        result_viewed=False,
        submitted_at=now,
    )
    db.session.add(submission)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.info(f"[submit-reject] question={question.id} name={normalized} reason=constraint")
        raise DuplicateSubmissionError()

    current_app.logger.info(
        f"[submit] question={question.id} name={normalized} correct={submission.is_correct}"
    )
    return submission


def winner_of(submissions: Iterable) -> Optional[Submission]:
    """First correct answer wins. Input order does not matter."""
    correct = [s for s in submissions if s.is_correct]
    if not correct:
        return None
    return min(correct, key=lambda s: (s.submitted_at, s.id or 0))


def mark_viewed(submission_id) -> bool:
    if not submission_id:
        return False
    submission = db.session.get(Submission, submission_id)
    if submission is None:
        current_app.logger.info(f"[submission-viewed-miss] id={submission_id}")
        return False
    submission.result_viewed = True
    db.session.add(submission)
    db.session.commit()
    return True
