from datetime import timedelta

import pytest

from trivia.errors import ValidationError
from trivia.models import ActiveSession
from trivia.services import sessions


def test_fresh_session_is_live_until_window_passes(flask_app, t0):
    sessions.register('Sara', 'dev-a', now=t0)
    assert sessions.is_identity_live('sara', now=t0 + timedelta(seconds=29))
    assert sessions.is_identity_live('sara', now=t0 + timedelta(seconds=29, microseconds=999999))
    assert not sessions.is_identity_live('sara', now=t0 + timedelta(seconds=30))
    assert not sessions.is_identity_live('sara', now=t0 + timedelta(minutes=5))


def test_identity_is_normalized(flask_app, t0):
    sessions.register('  Sara ', 'dev-a', now=t0)
    assert sessions.is_identity_live('SARA', now=t0)
    assert ActiveSession.query.first().user_name == 'sara'


def test_own_session_is_excluded(flask_app, t0):
    sessions.register('sara', 'dev-a', now=t0)
    assert not sessions.is_identity_live('sara', excluding_session='dev-a', now=t0)
    assert sessions.is_identity_live('sara', excluding_session='dev-b', now=t0)


def test_heartbeat_extends_liveness(flask_app, t0):
    sessions.register('sara', 'dev-a', now=t0)
    assert sessions.heartbeat('dev-a', now=t0 + timedelta(seconds=15))
    assert sessions.is_identity_live('sara', now=t0 + timedelta(seconds=44))
    assert not sessions.is_identity_live('sara', now=t0 + timedelta(seconds=45))


def test_one_missed_heartbeat_is_tolerated(flask_app, t0):
    sessions.register('sara', 'dev-a', now=t0)
    # Heartbeat at +15 lost; still live just before the next one at +30 would land
    assert sessions.is_identity_live('sara', now=t0 + timedelta(seconds=29))


def test_heartbeat_for_missing_session_is_not_fatal(flask_app, t0):
    assert sessions.heartbeat('ghost', now=t0) is False
    assert sessions.heartbeat(None, now=t0) is False


def test_register_collects_expired_rows_for_that_name_only(flask_app, t0):
    sessions.register('sara', 'old-1', now=t0)
    sessions.register('omar', 'omar-1', now=t0)
    sessions.register('sara', 'new-1', now=t0 + timedelta(minutes=2))
    assert ActiveSession.query.filter_by(user_name='sara').count() == 1
    assert ActiveSession.query.filter_by(session_id='new-1').count() == 1
    # Omar's dead row is left for his own next registration
    assert ActiveSession.query.filter_by(user_name='omar').count() == 1


def test_register_does_not_recheck_liveness(flask_app, t0):
    # Two logins racing the liveness check may both land; the registry accepts both
    sessions.register('sara', 'dev-a', now=t0)
    sessions.register('sara', 'dev-b', now=t0 + timedelta(seconds=1))
    assert ActiveSession.query.filter_by(user_name='sara').count() == 2


def test_register_requires_name_and_session(flask_app, t0):
    with pytest.raises(ValidationError):
        sessions.register('   ', 'dev-a', now=t0)
    with pytest.raises(ValidationError):
        sessions.register('sara', '', now=t0)


def test_end_is_idempotent(flask_app, t0):
    sessions.register('sara', 'dev-a', now=t0)
    sessions.end('dev-a')
    sessions.end('dev-a')
    assert ActiveSession.query.count() == 0
    assert not sessions.is_identity_live('sara', now=t0)
