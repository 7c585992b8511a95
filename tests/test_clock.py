from datetime import datetime, timedelta, timezone

import pytest

from trivia.errors import ValidationError
from trivia.services.clock import WindowState, classify, format_instant, parse_instant, seconds_until


START = datetime(2026, 3, 1, 20, 0, 0)
END = START + timedelta(seconds=60)


def test_classify_partitions_the_timeline():
    assert classify(START - timedelta(microseconds=1), START, END) == WindowState.UPCOMING
    assert classify(START, START, END) == WindowState.ACTIVE
    assert classify(END - timedelta(microseconds=1), START, END) == WindowState.ACTIVE
    assert classify(END, START, END) == WindowState.ENDED
    assert classify(END + timedelta(days=1), START, END) == WindowState.ENDED


def test_classify_every_second_has_exactly_one_state():
    # Walk across the window; each instant lands in the state its position dictates
    for offset in range(-5, 70):
        now = START + timedelta(seconds=offset)
        state = classify(now, START, END)
        if offset < 0:
            assert state == WindowState.UPCOMING
        elif offset < 60:
            assert state == WindowState.ACTIVE
        else:
            assert state == WindowState.ENDED


def test_parse_instant_accepts_z_and_offsets():
    assert parse_instant('2026-03-01T20:00:00Z') == START
    assert parse_instant('2026-03-01T22:00:00+02:00') == START
    assert parse_instant(datetime(2026, 3, 1, 20, 0, tzinfo=timezone.utc)) == START
    assert parse_instant(format_instant(START)) == START


@pytest.mark.parametrize('value', ['', 'tomorrow', None, 42])
def test_parse_instant_rejects_garbage(value):
    with pytest.raises(ValidationError):
        parse_instant(value)


def test_seconds_until_rounds_up_and_never_goes_negative():
    assert seconds_until(START, END) == 60
    assert seconds_until(START + timedelta(milliseconds=500), END) == 60
    assert seconds_until(END, END) == 0
    assert seconds_until(END + timedelta(seconds=3), END) == 0
