from flask import current_app
from sqlalchemy.exc import IntegrityError

from trivia import db
from trivia.models import GameSettings, SETTINGS_ROW_ID


def get_settings() -> GameSettings:
    """Return the settings singleton, creating it on first read.

    The row lives under a fixed primary key, so two clients racing the lazy
    insert end up sharing one row: the loser's insert fails and it re-reads.
    """
    settings = db.session.get(GameSettings, SETTINGS_ROW_ID)
    if settings:
        return settings
    settings = GameSettings(id=SETTINGS_ROW_ID, show_winner=False, current_question_id=None)
    db.session.add(settings)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        settings = db.session.get(GameSettings, SETTINGS_ROW_ID)
    else:
        current_app.logger.info("[settings-init] created game settings row")
    return settings


def set_current_question(question_id, commit=True) -> GameSettings:
    """Point the gate at a question and hide any earlier reveal.

    With ``commit=False`` the change joins the caller's transaction.
    """
    settings = get_settings()
    settings.current_question_id = question_id
    settings.show_winner = False
    settings.winner_name = None
    db.session.add(settings)
    if commit:
        db.session.commit()
    current_app.logger.info(f"[settings-current] question={question_id} show_winner=False")
    return settings


def toggle_show_winner(current_value: bool, winner_name=None) -> bool:
    new_value = not bool(current_value)
    settings = get_settings()
    settings.show_winner = new_value
    settings.winner_name = winner_name if new_value else None
    db.session.add(settings)
    db.session.commit()
    current_app.logger.info(f"[settings-reveal] show_winner={new_value} winner={settings.winner_name!r}")
    return new_value
