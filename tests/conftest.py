import os
import sys
from datetime import datetime, timedelta
import pytest

# Ensure the project root (containing the `trivia` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from trivia import create_app, db
from trivia.gateway import InProcessGateway


ADMIN_SECRET = 'test-admin-secret'


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    ADMIN_SECRET = ADMIN_SECRET
    LIVENESS_WINDOW_SEC = 30
    HEARTBEAT_INTERVAL_SEC = 15
    ACTIVE_POLL_SEC = 60
    SETTINGS_POLL_SEC = 10
    CORS_ORIGINS = 'http://localhost:5173'


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import trivia.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def admin_headers():
    return {'X-Admin-Key': ADMIN_SECRET}


@pytest.fixture()
def gateway(flask_app):
    return InProcessGateway(flask_app)


@pytest.fixture()
def t0():
    """A fixed instant questions in service tests are scheduled around."""
    return datetime(2026, 3, 1, 20, 0, 0)


@pytest.fixture()
def make_question(flask_app, t0):
    from trivia.services.questions import create_question

    def _make(text='Capital of Egypt?', correct_answer='Cairo', start=None, end=None,
              kind='free_text', options=None):
        start = start or t0
        end = end or start + timedelta(seconds=60)
        return create_question(text, kind, options, correct_answer, start, end, now=t0 - timedelta(hours=1))

    return _make
