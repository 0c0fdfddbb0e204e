from datetime import datetime

import pytest

from microjob.utils.clock import FrozenClock, parse_utc

from conftest import T0


@pytest.mark.parametrize(
    "value",
    [
        "2026-01-05T12:00:00",
        "2026-01-05T12:00:00Z",
        "2026-01-05T12:00:00+00:00",
        "2026-01-05T14:00:00+02:00",
        "2026-01-05T07:00:00-05:00",
    ],
)
def test_parse_utc_returns_naive_utc(value):
    parsed = parse_utc(value)
    assert parsed == T0
    assert parsed.tzinfo is None


def test_parse_utc_rejects_garbage():
    with pytest.raises(ValueError):
        parse_utc("next tuesday")


def test_frozen_clock_advance():
    clock = FrozenClock(datetime(2026, 1, 5))
    assert clock.advance(hours=12) == T0
    assert clock.now() == T0
