"""
Clock abstraction.

WHAT: Injectable source of "now"
WHY: Priority, expiry and time-remaining values depend on wall-clock time
HOW: Protocol with a system implementation and a settable one for tests/tools
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """Anything that can tell the current UTC time."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock frozen at a moment until moved with advance()."""

    def __init__(self, moment: datetime):
        self._moment = ensure_utc(moment)

    def now(self) -> datetime:
        return self._moment

    def advance(self, **delta) -> datetime:
        """Move forward by timedelta(**delta) and return the new time."""
        self._moment = self._moment + timedelta(**delta)
        return self._moment


def ensure_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def to_iso(moment: datetime) -> str:
    """Fixed-width ISO-8601 so string order matches time order in the store."""
    return ensure_utc(moment).isoformat(timespec="microseconds")
