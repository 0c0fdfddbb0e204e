from datetime import datetime, timedelta, timezone

from flask import current_app


def utc_now():
    # naive UTC, the way every timestamp column is stored
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_utc(value):
    """Parse an ISO timestamp into naive UTC.

    Offset-aware input is converted; a trailing `Z` means UTC. Naive input is
    taken as UTC already.
    """
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class SystemClock:
    def now(self):
        return utc_now()


class FrozenClock:
    """Clock that only moves when told to. Used by tests and dry runs."""

    def __init__(self, start=None):
        self.current = start or utc_now()

    def now(self):
        return self.current

    def set(self, when):
        self.current = when

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)
        return self.current


def get_clock():
    return current_app.extensions["clock"]


def now():
    return get_clock().now()
