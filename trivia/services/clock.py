"""Window evaluation and instant helpers.

Instants are naive UTC datetimes everywhere inside the package; they cross the
wire as ISO-8601 strings with a trailing ``Z``.
"""

import math
from datetime import datetime, timezone
from enum import Enum

from trivia.errors import ValidationError


class WindowState(str, Enum):
    UPCOMING = 'upcoming'
    ACTIVE = 'active'
    ENDED = 'ended'


def classify(now: datetime, start_time: datetime, end_time: datetime) -> WindowState:
    """Place ``now`` relative to the half-open window ``[start_time, end_time)``."""
    if now < start_time:
        return WindowState.UPCOMING
    if now < end_time:
        return WindowState.ACTIVE
    return WindowState.ENDED


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_instant(value) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith('Z'):
            raw = raw[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            raise ValidationError(f'Invalid timestamp: {value!r}')
    else:
        raise ValidationError(f'Invalid timestamp: {value!r}')
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def format_instant(value):
    if value is None:
        return None
    return value.isoformat() + 'Z'


def seconds_until(now: datetime, target: datetime) -> int:
    # Countdown display: round up so "0" only shows once the target is reached
    return max(0, math.ceil((target - now).total_seconds()))
