"""Question directory: scheduling, lookup and window edits."""

import json
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from trivia import db
from trivia.errors import AlreadyEndedError, QuestionNotFoundError, TimeOrderError, ValidationError
from trivia.models import QUESTION_KINDS, Question
from trivia.services import settings as reveal_gate
from trivia.services.clock import parse_instant, utcnow


def _clean_options(options) -> List[str]:
    if not isinstance(options, (list, tuple)):
        raise ValidationError('Multiple choice questions need a list of options')
    cleaned = [str(o).strip() for o in options if o is not None and str(o).strip()]
    if len(cleaned) < 2:
        raise ValidationError('Multiple choice questions need at least two options')
    if len(set(cleaned)) != len(cleaned):
        raise ValidationError('Options must be distinct')
    return cleaned


def create_question(text, kind, options, correct_answer, start_time, end_time, now=None) -> Question:
    """Validate and persist a question, pointing the reveal gate at it.

    Nothing is written unless every check passes. The question row and the
    gate update commit together, so a failed write leaves neither behind.
    """
    kind = kind or 'free_text'
    text = (text or '').strip()
    correct_answer = (correct_answer or '').strip()
    if not text or not correct_answer or not start_time or not end_time:
        raise ValidationError('Missing required question fields.')
    if kind not in QUESTION_KINDS:
        raise ValidationError(f'Unknown question kind: {kind!r}')

    start = parse_instant(start_time)
    end = parse_instant(end_time)
    if end <= start:
        raise TimeOrderError()

    encoded_options = None
    if kind == 'multiple_choice':
        cleaned = _clean_options(options)
        if correct_answer not in cleaned:
            raise ValidationError('The correct answer must be one of the options')
        encoded_options = json.dumps(cleaned)

    question = Question(
        text=text,
        kind=kind,
        options=encoded_options,
        correct_answer=correct_answer,
        start_time=start,
        end_time=end,
        created_at=now or utcnow(),
    )
    # Lazy settings insert commits by itself; run it before the question joins the session
    reveal_gate.get_settings()
    db.session.add(question)
    try:
        db.session.flush()
        reveal_gate.set_current_question(question.id, commit=False)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[question-create] rolled back: {exc}")
        raise
    current_app.logger.info(
        f"[question-create] id={question.id} kind={kind} start={question.start_time} end={question.end_time}"
    )
    return question


def get_question(question_id) -> Question:
    question = db.session.get(Question, question_id)
    if question is None:
        raise QuestionNotFoundError()
    return question


def get_active(now=None) -> Optional[Question]:
    """The question whose window contains ``now``; overlaps resolve to the latest start."""
    now = now or utcnow()
    return (
        Question.query
        .filter(Question.start_time <= now, Question.end_time > now)
        .order_by(Question.start_time.desc(), Question.id.desc())
        .first()
    )


def list_schedule() -> List[Question]:
    return Question.query.order_by(Question.start_time.asc(), Question.id.asc()).all()


def next_upcoming(now=None) -> Optional[Question]:
    now = now or utcnow()
    return (
        Question.query
        .filter(Question.start_time > now)
        .order_by(Question.start_time.asc(), Question.id.asc())
        .first()
    )


def force_end(question_id, now=None) -> Question:
    question = get_question(question_id)
    question.end_time = now or utcnow()
    db.session.add(question)
    db.session.commit()
    current_app.logger.info(f"[question-force-end] id={question.id} end={question.end_time}")
    return question


def update_window(question_id, new_start, new_end, now=None) -> Question:
    now = now or utcnow()
    start = parse_instant(new_start)
    end = parse_instant(new_end)
    if end <= start:
        raise TimeOrderError()
    question = get_question(question_id)
    if question.end_time <= now:
        current_app.logger.info(f"[question-edit-reject] id={question.id} ended at {question.end_time}")
        raise AlreadyEndedError()
    question.start_time = start
    question.end_time = end
    db.session.add(question)
    db.session.commit()
    current_app.logger.info(f"[question-edit] id={question.id} start={start} end={end}")
    return question
