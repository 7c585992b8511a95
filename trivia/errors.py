"""Contest error taxonomy.

Every error raised by the services derives from :class:`ContestError` and
carries the HTTP status the API answers with. Validation and temporal errors
are final; only :class:`StoreUnavailableError` is transient.
"""

from flask import jsonify
from sqlalchemy.exc import OperationalError


class ContestError(Exception):
    status_code = 400

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    def to_dict(self):
        return {'error': self.message, 'code': self.__class__.__name__}


class ValidationError(ContestError):
    """Malformed or missing input."""
    status_code = 400


class TimeOrderError(ValidationError):
    """End time must be after start time."""


class AlreadyEndedError(ContestError):
    """This question has already ended and can no longer be edited."""
    status_code = 409


class WindowClosedError(ContestError):
    """The answer window for this question is closed."""
    status_code = 409


class DuplicateSubmissionError(ContestError):
    """You have already answered this question."""
    status_code = 409


class SessionConflictError(ContestError):
    """This name is already active on another device."""
    status_code = 409


class QuestionNotFoundError(ContestError):
    """Question not found."""
    status_code = 404


class AdminAuthError(ContestError):
    """Invalid admin key."""
    status_code = 401


class RevealNotAllowedError(ContestError):
    """A winner can only be revealed once the question has ended with a correct answer."""
    status_code = 409


class StoreUnavailableError(ContestError):
    """The contest store is temporarily unavailable."""
    status_code = 503


def register_error_handlers(flask_app):
    @flask_app.errorhandler(ContestError)
    def handle_contest_error(exc):
        return jsonify(exc.to_dict()), exc.status_code

    @flask_app.errorhandler(OperationalError)
    def handle_store_error(exc):
        flask_app.logger.warning(f"[store-unavailable] {exc}")
        return jsonify(StoreUnavailableError().to_dict()), StoreUnavailableError.status_code
