from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
import click
from trivia.config import Config

db = SQLAlchemy()
migrate = Migrate()


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    allowed_origins = [o.strip() for o in str(flask_app.config.get('CORS_ORIGINS', '')).split(',') if o.strip()]
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    from trivia.errors import register_error_handlers
    register_error_handlers(flask_app)

    # Import and register blueprints here
    from trivia.main import main
    flask_app.register_blueprint(main)

    from trivia.api.contest import contest
    flask_app.register_blueprint(contest, url_prefix='/api')

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the database, then initialises game settings."""
        from trivia.services.settings import get_settings
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            get_settings()
            print('Database has been reset!')

    @click.command('schedule')
    def schedule_command():
        """Prints every question with its current window state."""
        from trivia.services.clock import classify, utcnow
        from trivia.services.questions import list_schedule
        with flask_app.app_context():
            now = utcnow()
            questions = list_schedule()
            if not questions:
                print('No questions scheduled.')
                return
            for q in questions:
                state = classify(now, q.start_time, q.end_time)
                print(f"#{q.id} [{state.value}] {q.start_time:%Y-%m-%d %H:%M:%S} -> {q.end_time:%Y-%m-%d %H:%M:%S}  {q.text}")

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(schedule_command)

    return flask_app
