import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///trivia.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Static shared secret for the operator console
    ADMIN_SECRET = os.environ.get('ADMIN_SECRET') or 'change-me'
    # Session liveness (seconds): a session with no heartbeat for this long is dead
    LIVENESS_WINDOW_SEC = int(os.environ.get('LIVENESS_WINDOW_SEC', '30'))
    HEARTBEAT_INTERVAL_SEC = int(os.environ.get('HEARTBEAT_INTERVAL_SEC', '15'))
    # Client poll cadences (seconds)
    ACTIVE_POLL_SEC = int(os.environ.get('ACTIVE_POLL_SEC', '60'))
    SETTINGS_POLL_SEC = int(os.environ.get('SETTINGS_POLL_SEC', '10'))
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS') or 'http://localhost:5173,http://127.0.0.1:5173'
