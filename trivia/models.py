from trivia import db
from trivia.services.clock import format_instant, utcnow
import json

QUESTION_KINDS = ('free_text', 'multiple_choice')
SETTINGS_ROW_ID = 1


class Question(db.Model):
    __tablename__ = 'question'
    id = db.Column(db.Integer, primary_key=True)
    text = db.Column(db.Text, nullable=False)
    kind = db.Column(db.String(32), nullable=False, default='free_text')
    options = db.Column(db.Text, nullable=True)  # JSON-encoded list, multiple choice only
    correct_answer = db.Column(db.String(256), nullable=False)
    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    submissions = db.relationship('Submission', backref='question', lazy='dynamic')

    @property
    def option_list(self):
        if not self.options:
            return None
        try:
            return json.loads(self.options)
        except ValueError:
            return None

    def to_dict(self, include_answer=True):
        data = {
            'id': self.id,
            'text': self.text,
            'kind': self.kind,
            'options': self.option_list,
            'start_time': format_instant(self.start_time),
            'end_time': format_instant(self.end_time),
            'created_at': format_instant(self.created_at),
        }
        if include_answer:
            data['correct_answer'] = self.correct_answer
        return data


class Submission(db.Model):
    __tablename__ = 'submission'
    __table_args__ = (
        db.UniqueConstraint('question_id', 'normalized_name', name='uq_submission_question_identity'),
    )
    id = db.Column(db.Integer, primary_key=True)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False)
    name = db.Column(db.String(128), nullable=False)
    normalized_name = db.Column(db.String(128), nullable=False, index=True)
    answer = db.Column(db.Text, nullable=False)
    is_correct = db.Column(db.Boolean, nullable=False, default=False)
    result_viewed = db.Column(db.Boolean, nullable=False, default=False)
    submitted_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'question_id': self.question_id,
            'name': self.name,
            'normalized_name': self.normalized_name,
            'answer': self.answer,
            'is_correct': self.is_correct,
            'result_viewed': self.result_viewed,
            'submitted_at': format_instant(self.submitted_at),
        }


class ActiveSession(db.Model):
    __tablename__ = 'active_session'
    id = db.Column(db.Integer, primary_key=True)
    user_name = db.Column(db.String(128), nullable=False, index=True)
    session_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    last_seen = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'user_name': self.user_name,
            'session_id': self.session_id,
            'last_seen': format_instant(self.last_seen),
        }


class GameSettings(db.Model):
    __tablename__ = 'game_settings'
    id = db.Column(db.Integer, primary_key=True, default=SETTINGS_ROW_ID)
    show_winner = db.Column(db.Boolean, nullable=False, default=False)
    current_question_id = db.Column(
        db.Integer,
        db.ForeignKey('question.id', name='fk_game_settings_current_question_id'),
        nullable=True,
    )
    winner_name = db.Column(db.String(128), nullable=True)

    def to_dict(self):
        return {
            'show_winner': bool(self.show_winner),
            'current_question_id': self.current_question_id,
            'winner_name': self.winner_name,
        }
