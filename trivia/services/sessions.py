"""Session registry.

Keeps one display name on one device at a time. Liveness is inferred from
heartbeats: a row is live while ``now - last_seen`` is below the liveness
window. Dead rows are collected lazily the next time the name registers.
"""

from datetime import timedelta

from flask import current_app

from trivia import db
from trivia.errors import ValidationError
from trivia.models import ActiveSession
from trivia.services.clock import utcnow


def normalize_identity(name) -> str:
    return (name or '').strip().lower()


def _liveness_cutoff(now):
    window = int(current_app.config.get('LIVENESS_WINDOW_SEC', 30))
    return now - timedelta(seconds=window)


def is_identity_live(identity, excluding_session=None, now=None) -> bool:
    normalized = normalize_identity(identity)
    if not normalized:
        return False
    now = now or utcnow()
    query = ActiveSession.query.filter(
        ActiveSession.user_name == normalized,
        ActiveSession.last_seen > _liveness_cutoff(now),
    )
    if excluding_session:
        query = query.filter(ActiveSession.session_id != excluding_session)
    return query.count() > 0


def register(identity, session_id, now=None) -> ActiveSession:
    """Insert a fresh session row for ``identity``.

    Callers check :func:`is_identity_live` first; two logins racing that check
    may both register, and the double occupancy lasts until one stops
    heartbeating.
    """
    normalized = normalize_identity(identity)
    if not normalized or not session_id:
        raise ValidationError('A name and session id are required')
    now = now or utcnow()

    expired = ActiveSession.query.filter(
        ActiveSession.user_name == normalized,
        ActiveSession.last_seen <= _liveness_cutoff(now),
    ).delete(synchronize_session=False)

    row = ActiveSession(user_name=normalized, session_id=session_id, last_seen=now)
    db.session.add(row)
    db.session.commit()
    current_app.logger.info(f"[session-register] name={normalized} session={session_id} expired_removed={expired}")
    return row


def heartbeat(session_id, now=None) -> bool:
    if not session_id:
        return False
    row = ActiveSession.query.filter_by(session_id=session_id).first()
    if row is None:
        current_app.logger.info(f"[session-heartbeat-miss] session={session_id}")
        return False
    row.last_seen = now or utcnow()
    db.session.add(row)
    db.session.commit()
    return True


def end(session_id) -> None:
    if not session_id:
        return
    removed = ActiveSession.query.filter_by(session_id=session_id).delete(synchronize_session=False)
    db.session.commit()
    if removed:
        current_app.logger.info(f"[session-end] session={session_id}")
