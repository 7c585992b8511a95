"""Participant and operator clients.

Each client derives its own view of the contest from store reads plus its
local clock; nothing here is shared between clients. Two timed inputs feed
one pure reducer:

* ``PollResult``: what the store says is active (slow, every ``ACTIVE_POLL_SEC``)
* ``ClockTick``: the local one-second countdown, which moves
  upcoming -> active -> ended on its own without waiting for the next poll.

Once a client has seen a question end, no later poll brings it back to active.
"""

import json
import logging
import os
import uuid
from collections import namedtuple
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import FrozenSet, Optional, Tuple

from trivia.errors import (
    AdminAuthError,
    ContestError,
    DuplicateSubmissionError,
    RevealNotAllowedError,
    SessionConflictError,
    StoreUnavailableError,
    ValidationError,
    WindowClosedError,
)
from trivia.services.clock import WindowState, classify, parse_instant, seconds_until, utcnow
from trivia.services.submissions import winner_of

logger = logging.getLogger(__name__)

PHASE_LOADING = 'loading'
PHASE_UPCOMING = 'upcoming'
PHASE_ACTIVE = 'active'
PHASE_ENDED = 'ended'
PHASE_NONE = 'none'

FEEDBACK_CORRECT = 'correct'
FEEDBACK_INCORRECT = 'incorrect'
FEEDBACK_NO_SUBMISSION = 'no_submission'


# ---- View state and events ----

@dataclass(frozen=True)
class ContestView:
    phase: str = PHASE_LOADING
    question: Optional[dict] = None
    remaining: Optional[int] = None
    submitted: bool = False
    feedback: Optional[str] = None
    feedback_pending: bool = False
    show_winner: bool = False
    winner_name: Optional[str] = None
    winner_question_id: Optional[int] = None
    ended_question_ids: FrozenSet[int] = frozenset()

    @property
    def question_id(self):
        return self.question['id'] if self.question else None


@dataclass(frozen=True)
class PollResult:
    now: object
    active: Optional[dict]
    schedule: Tuple[dict, ...] = ()
    submitted: Optional[bool] = None


@dataclass(frozen=True)
class ClockTick:
    now: object


@dataclass(frozen=True)
class SettingsResult:
    show_winner: bool
    winner_name: Optional[str] = None
    current_question_id: Optional[int] = None


@dataclass(frozen=True)
class FeedbackResolved:
    question_id: int
    outcome: Optional[str]


@dataclass(frozen=True)
class SubmissionAccepted:
    question_id: int


def _window(question):
    return parse_instant(question['start_time']), parse_instant(question['end_time'])


def pick_from_schedule(schedule, now):
    """Return ``(active, next_upcoming, last_ended)`` derived from a full schedule."""
    active = None
    upcoming = None
    last_ended = None
    for question in schedule:
        start, end = _window(question)
        state = classify(now, start, end)
        if state == WindowState.ACTIVE:
            if active is None or start >= _window(active)[0]:
                active = question
        elif state == WindowState.UPCOMING:
            if upcoming is None or start < _window(upcoming)[0]:
                upcoming = question
        elif last_ended is None or end >= _window(last_ended)[1]:
            last_ended = question
    return active, upcoming, last_ended


def _enter_ended(view, question):
    if view.phase == PHASE_ENDED and view.question_id == question['id']:
        return view
    return replace(
        view,
        phase=PHASE_ENDED,
        question=question,
        remaining=0,
        feedback=None,
        feedback_pending=True,
        ended_question_ids=view.ended_question_ids | {question['id']},
    )


def _enter_active(view, question, now, submitted):
    same = view.question_id == question['id']
    if submitted is None:
        submitted = view.submitted if same else False
    _, end = _window(question)
    return replace(
        view,
        phase=PHASE_ACTIVE,
        question=question,
        remaining=seconds_until(now, end),
        submitted=bool(submitted),
        feedback=None,
        feedback_pending=False,
    )


def _on_clock(view, now):
    if view.phase not in (PHASE_UPCOMING, PHASE_ACTIVE) or not view.question:
        return view
    start, end = _window(view.question)
    state = classify(now, start, end)
    if state == WindowState.ENDED:
        return _enter_ended(view, view.question)
    if state == WindowState.ACTIVE:
        if view.phase == PHASE_UPCOMING:
            return _enter_active(view, view.question, now, False)
        return replace(view, remaining=seconds_until(now, end))
    if view.phase == PHASE_ACTIVE:
        # Server reported it open before our clock did; keep counting to the close
        return replace(view, remaining=seconds_until(now, end))
    return replace(view, remaining=seconds_until(now, start))


def _closed_since_opened(view, event):
    """The on-screen question as the store now has it, if it closed early."""
    if view.phase != PHASE_ACTIVE or not view.question:
        return None
    if event.active is not None and event.active['id'] == view.question_id:
        return None
    for question in event.schedule:
        if question['id'] == view.question_id:
            start, end = _window(question)
            if classify(event.now, start, end) == WindowState.ENDED:
                return question
            return None
    return None


def _on_poll(view, event):
    now = event.now
    # A force-end moves the close earlier than the cached end_time our clock watches
    closed = _closed_since_opened(view, event)
    if closed is not None:
        return _enter_ended(view, closed)

    active = event.active
    upcoming = last_ended = None
    if active is None:
        active, upcoming, last_ended = pick_from_schedule(event.schedule, now)

    if active is not None:
        if active['id'] in view.ended_question_ids:
            if view.phase == PHASE_ENDED and view.question_id == active['id']:
                return view
            return _enter_ended(view, active)
        if view.phase == PHASE_ENDED and view.feedback_pending and view.question_id == active['id']:
            return view
        _, end = _window(active)
        if now >= end:
            return _enter_ended(view, active)
        return _enter_active(view, active, now, event.submitted)

    if view.phase == PHASE_ENDED and view.feedback_pending:
        return view
    if upcoming is not None:
        start, _ = _window(upcoming)
        return replace(
            view,
            phase=PHASE_UPCOMING,
            question=upcoming,
            remaining=seconds_until(now, start),
            submitted=False,
            feedback=None,
            feedback_pending=False,
        )
    if last_ended is not None:
        return _enter_ended(view, last_ended)
    if view.phase == PHASE_ENDED:
        return view
    return replace(view, phase=PHASE_NONE, question=None, remaining=None, submitted=False)


def reduce(view: ContestView, event) -> ContestView:
    """Fold one event into the view. Pure: no I/O, no clock reads."""
    if isinstance(event, ClockTick):
        return _on_clock(view, event.now)
    if isinstance(event, PollResult):
        return _on_poll(view, event)
    if isinstance(event, SettingsResult):
        show = bool(event.show_winner)
        return replace(
            view,
            show_winner=show,
            winner_name=event.winner_name if show else None,
            winner_question_id=event.current_question_id,
        )
    if isinstance(event, FeedbackResolved):
        if view.phase != PHASE_ENDED or view.question_id != event.question_id or not view.feedback_pending:
            return view
        return replace(view, feedback=event.outcome, feedback_pending=False)
    if isinstance(event, SubmissionAccepted):
        if view.question_id != event.question_id:
            return view
        return replace(view, submitted=True)
    raise TypeError(f'Unknown contest event: {event!r}')


# ---- Local advisory storage ----

class FlagCache:
    """Per-origin flags kept on the client device.

    Advisory only: every flag here can be rebuilt from the store, so losing the
    file costs at most one extra round trip.
    """

    def __init__(self, path=None):
        self.path = path
        self._data = {}
        if path and os.path.exists(path):
            try:
                with open(path, 'r', encoding='utf-8') as fh:
                    loaded = json.load(fh)
                if isinstance(loaded, dict):
                    self._data = loaded
            except (OSError, ValueError) as exc:
                logger.warning(f"[flags-load] ignoring unreadable flag file {path}: {exc}")

    def get(self, key, default=None):
        return self._data.get(key, default)

    def set(self, key, value):
        self._data[key] = value
        self._save()

    def remove(self, key):
        if self._data.pop(key, None) is not None:
            self._save()

    def _save(self):
        if not self.path:
            return
        with open(self.path, 'w', encoding='utf-8') as fh:
            json.dump(self._data, fh)


def submitted_key(question_id):
    return f'submitted:{question_id}'


def result_seen_key(question_id):
    return f'result_seen:{question_id}'


@dataclass
class ClientTiming:
    active_poll_sec: int = 60
    settings_poll_sec: int = 10
    heartbeat_sec: int = 15

    @classmethod
    def from_config(cls, config):
        return cls(
            active_poll_sec=int(config.get('ACTIVE_POLL_SEC', 60)),
            settings_poll_sec=int(config.get('SETTINGS_POLL_SEC', 10)),
            heartbeat_sec=int(config.get('HEARTBEAT_INTERVAL_SEC', 15)),
        )


SubmitOutcome = namedtuple('SubmitOutcome', ['submission', 'duplicate'])


# ---- Participant client ----

class ContestClient:
    """One participant on one device.

    The caller drives time by calling :meth:`tick` once per second; polls and
    heartbeats fire from there when they fall due.
    """

    def __init__(self, gateway, flags=None, timing=None):
        self.gateway = gateway
        self.flags = flags if flags is not None else FlagCache()
        self.timing = timing or ClientTiming()
        self.view = ContestView()
        self.user = self.flags.get('user')
        self.session_id = self.flags.get('session_id')
        self._next_active_poll = None
        self._next_settings_poll = None
        self._next_heartbeat = None

    # -- session lifecycle --

    def login(self, name, now=None):
        name = (name or '').strip()
        if not name:
            raise ValidationError('Please enter your name to continue')
        now = now or utcnow()
        previous = self.session_id
        if self.gateway.is_identity_live(name, previous, now):
            raise SessionConflictError()
        if previous:
            self._end_quietly(previous)
        session_id = uuid.uuid4().hex
        self.gateway.register_session(name, session_id, now)
        self.user = name
        self.session_id = session_id
        self.flags.set('user', name)
        self.flags.set('session_id', session_id)
        self._next_heartbeat = now + timedelta(seconds=self.timing.heartbeat_sec)
        self._next_active_poll = None
        self._next_settings_poll = None
        logger.info(f"[login] name={name} session={session_id}")
        return session_id

    def logout(self):
        if self.session_id:
            try:
                self.gateway.end_session(self.session_id)
            except StoreUnavailableError as exc:
                logger.warning(f"[logout] could not end session {self.session_id}: {exc}")
        self.user = None
        self.session_id = None
        self.flags.remove('user')
        self.flags.remove('session_id')
        self.view = ContestView()
        self._next_heartbeat = None

    def close(self):
        """Page teardown: fire-and-forget session delete, no retry."""
        if self.session_id:
            self._end_quietly(self.session_id)
            self.flags.remove('session_id')
            self.session_id = None

    def _end_quietly(self, session_id):
        try:
            self.gateway.end_session(session_id)
        except ContestError as exc:
            logger.warning(f"[session-end] best-effort delete failed for {session_id}: {exc}")

    # -- timed triggers --

    @staticmethod
    def _due(deadline, now):
        return deadline is None or now >= deadline

    def tick(self, now=None):
        now = now or utcnow()
        self.dispatch(ClockTick(now))
        if self._due(self._next_active_poll, now):
            self.poll_active(now)
        if self._due(self._next_settings_poll, now):
            self.poll_settings(now)
        if self.session_id and self._due(self._next_heartbeat, now):
            self.send_heartbeat(now)
        return self.view

    def poll_active(self, now=None):
        now = now or utcnow()
        self._next_active_poll = now + timedelta(seconds=self.timing.active_poll_sec)
        try:
            active = self.gateway.get_active(now)
            schedule = ()
            on_screen_gone = self.view.phase == PHASE_ACTIVE and (
                active is None or active['id'] != self.view.question_id
            )
            if active is None or on_screen_gone:
                schedule = tuple(self.gateway.list_schedule())
            shown = active or pick_from_schedule(schedule, now)[0]
            submitted = self._submitted_for(shown) if shown else None
        except StoreUnavailableError as exc:
            logger.warning(f"[poll-active] store unavailable, retrying next cycle: {exc}")
            return self.view
        return self.dispatch(PollResult(now=now, active=active, schedule=schedule, submitted=submitted))

    def poll_settings(self, now=None):
        now = now or utcnow()
        self._next_settings_poll = now + timedelta(seconds=self.timing.settings_poll_sec)
        try:
            settings = self.gateway.get_settings()
        except StoreUnavailableError as exc:
            logger.warning(f"[poll-settings] store unavailable, retrying next cycle: {exc}")
            return self.view
        return self.dispatch(SettingsResult(
            show_winner=settings.get('show_winner', False),
            winner_name=settings.get('winner_name'),
            current_question_id=settings.get('current_question_id'),
        ))

    def send_heartbeat(self, now=None):
        now = now or utcnow()
        self._next_heartbeat = now + timedelta(seconds=self.timing.heartbeat_sec)
        try:
            alive = self.gateway.heartbeat(self.session_id, now)
        except StoreUnavailableError as exc:
            logger.warning(f"[heartbeat] store unavailable: {exc}")
            return False
        if not alive:
            logger.info(f"[heartbeat] session {self.session_id} no longer registered")
        return alive

    def dispatch(self, event):
        self.view = reduce(self.view, event)
        if self.view.phase == PHASE_ENDED and self.view.feedback_pending:
            self._resolve_feedback()
        return self.view

    # -- answers and feedback --

    def _submitted_for(self, question):
        if not self.user:
            return False
        if self.flags.get(submitted_key(question['id'])):
            return True
        answered = self.gateway.has_answered(question['id'], self.user)
        if answered:
            self.flags.set(submitted_key(question['id']), True)
        return answered

    def submit(self, answer, now=None):
        """Submit an answer for the question on screen.

        A duplicate rejection means an earlier attempt already landed, so it is
        reported as a soft success carrying the stored submission.
        """
        if not self.user:
            raise ValidationError('Please enter your name first')
        if not (answer or '').strip():
            raise ValidationError('Please enter an answer')
        now = now or utcnow()
        self.dispatch(ClockTick(now))
        question = self.view.question
        if question is None or self.view.phase == PHASE_UPCOMING:
            raise ValidationError('There is no active question right now')
        if self.view.phase == PHASE_ENDED:
            raise WindowClosedError()

        try:
            submission = self.gateway.submit(self.user, question['id'], answer, now)
            duplicate = False
        except DuplicateSubmissionError:
            logger.info(f"[submit] duplicate for question={question['id']} name={self.user}, treating as accepted")
            submission = self.gateway.get_own(question['id'], self.user)
            duplicate = True
        self.flags.set(submitted_key(question['id']), True)
        self.dispatch(SubmissionAccepted(question['id']))
        return SubmitOutcome(submission, duplicate)

    def _resolve_feedback(self):
        question_id = self.view.question_id
        outcome = None
        if self.user and not self.flags.get(result_seen_key(question_id)):
            try:
                own = self.gateway.get_own(question_id, self.user)
                if own is None:
                    outcome = FEEDBACK_NO_SUBMISSION
                elif not own.get('result_viewed'):
                    outcome = FEEDBACK_CORRECT if own.get('is_correct') else FEEDBACK_INCORRECT
                    self.gateway.mark_viewed(own['id'])
            except StoreUnavailableError as exc:
                logger.warning(f"[feedback] store unavailable, will retry: {exc}")
                return
            self.flags.set(result_seen_key(question_id), True)
        self.view = reduce(self.view, FeedbackResolved(question_id, outcome))


# ---- Operator console ----

WinnerRecord = namedtuple('WinnerRecord', ['id', 'name', 'is_correct', 'submitted_at'])


class AdminConsole:
    """Operator workflow: schedule questions, close them, reveal winners."""

    def __init__(self, gateway, flags=None):
        self.gateway = gateway
        self.flags = flags if flags is not None else FlagCache()

    @property
    def is_authenticated(self):
        return bool(self.flags.get('admin_auth'))

    def authenticate(self, secret):
        if not self.gateway.verify_admin(secret):
            raise AdminAuthError()
        self.flags.set('admin_auth', True)
        return True

    def sign_out(self):
        self.flags.remove('admin_auth')

    def _require_auth(self):
        if not self.is_authenticated:
            raise AdminAuthError()

    def create_question(self, text, correct_answer, start_time, end_time, kind='free_text', options=None):
        self._require_auth()
        return self.gateway.create_question(text, kind, options, correct_answer, start_time, end_time)

    def force_end(self, question_id, now=None):
        self._require_auth()
        return self.gateway.force_end(question_id, now or utcnow())

    def update_window(self, question_id, start_time, end_time, now=None):
        self._require_auth()
        return self.gateway.update_window(question_id, start_time, end_time, now or utcnow())

    def winner_for(self, question_id, now=None):
        """The first correct submitter, or None while the question is still open."""
        self._require_auth()
        now = now or utcnow()
        question = self.gateway.get_question(question_id)
        start, end = _window(question)
        if classify(now, start, end) != WindowState.ENDED:
            return None
        records = [
            WinnerRecord(row['id'], row['name'], row['is_correct'], parse_instant(row['submitted_at']))
            for row in self.gateway.list_submissions(question_id)
        ]
        return winner_of(records)

    def toggle_reveal(self, question_id, now=None):
        self._require_auth()
        settings = self.gateway.get_settings()
        if settings.get('show_winner'):
            return self.gateway.toggle_show_winner(True)
        winner = self.winner_for(question_id, now)
        if winner is None:
            raise RevealNotAllowedError()
        self.gateway.set_current_question(question_id)
        return self.gateway.toggle_show_winner(False, winner.name)
