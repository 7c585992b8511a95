"""Client-facing access to the contest store.

Clients never share objects with each other or with the server: every call
returns plain dicts (the same shape the HTTP API serves), and database outages
surface as :class:`StoreUnavailableError` so callers can decide whether to
swallow them.
"""

import hmac
from functools import wraps

from flask import current_app, has_app_context
from sqlalchemy.exc import OperationalError

from trivia import db
from trivia.errors import StoreUnavailableError
from trivia.services import questions as question_directory
from trivia.services import sessions as session_registry
from trivia.services import settings as reveal_gate
from trivia.services import submissions as ledger


def _store_call(method):
    @wraps(method)
    def wrapped(self, *args, **kwargs):
        if has_app_context() and current_app._get_current_object() is self.app:
            return self._guarded(method, *args, **kwargs)
        with self.app.app_context():
            return self._guarded(method, *args, **kwargs)
    return wrapped


class InProcessGateway:
    """Runs service operations against the app's store, one unit of work per call."""

    def __init__(self, app):
        self.app = app

    def _guarded(self, method, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except OperationalError as exc:
            db.session.rollback()
            self.app.logger.warning(f"[store-unavailable] {method.__name__}: {exc}")
            raise StoreUnavailableError() from exc

    # ---- Questions ----

    @_store_call
    def get_active(self, now=None):
        question = question_directory.get_active(now)
        return question.to_dict(include_answer=False) if question else None

    @_store_call
    def list_schedule(self):
        return [q.to_dict(include_answer=False) for q in question_directory.list_schedule()]

    @_store_call
    def get_question(self, question_id):
        return question_directory.get_question(question_id).to_dict()

    @_store_call
    def create_question(self, text, kind, options, correct_answer, start_time, end_time, now=None):
        return question_directory.create_question(
            text, kind, options, correct_answer, start_time, end_time, now
        ).to_dict()

    @_store_call
    def force_end(self, question_id, now=None):
        return question_directory.force_end(question_id, now).to_dict()

    @_store_call
    def update_window(self, question_id, start_time, end_time, now=None):
        return question_directory.update_window(question_id, start_time, end_time, now).to_dict()

    # ---- Submissions ----

    @_store_call
    def has_answered(self, question_id, name):
        return ledger.has_answered(question_id, name)

    @_store_call
    def get_own(self, question_id, name):
        submission = ledger.get_own(question_id, name)
        return submission.to_dict() if submission else None

    @_store_call
    def submit(self, name, question_id, answer, now=None):
        question = question_directory.get_question(question_id)
        return ledger.submit(name, question, answer, now).to_dict()

    @_store_call
    def mark_viewed(self, submission_id):
        return ledger.mark_viewed(submission_id)

    @_store_call
    def list_submissions(self, question_id):
        return [s.to_dict() for s in ledger.list_for_question(question_id)]

    # ---- Sessions ----

    @_store_call
    def is_identity_live(self, name, excluding_session=None, now=None):
        return session_registry.is_identity_live(name, excluding_session, now)

    @_store_call
    def register_session(self, name, session_id, now=None):
        return session_registry.register(name, session_id, now).to_dict()

    @_store_call
    def heartbeat(self, session_id, now=None):
        return session_registry.heartbeat(session_id, now)

    @_store_call
    def end_session(self, session_id):
        session_registry.end(session_id)

    # ---- Settings ----

    @_store_call
    def get_settings(self):
        return reveal_gate.get_settings().to_dict()

    @_store_call
    def set_current_question(self, question_id):
        return reveal_gate.set_current_question(question_id).to_dict()

    @_store_call
    def toggle_show_winner(self, current_value, winner_name=None):
        return reveal_gate.toggle_show_winner(current_value, winner_name)

    def verify_admin(self, secret):
        expected = str(self.app.config.get('ADMIN_SECRET') or '')
        return bool(expected) and hmac.compare_digest(str(secret or '').encode(), expected.encode())
