# backend/studiobook/core/clock.py
"""
Injectable time source.

Services never call ``datetime.now`` directly; they ask a Clock so tests can
pin "now" and exercise hold expiry, lot expiry and cancellation windows
deterministically.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol

from .timezone_utils import ensure_utc


class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current instant as an aware UTC datetime."""
        ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock frozen at a given instant; ``advance`` moves it forward."""

    def __init__(self, instant: datetime):
        self._instant = ensure_utc(instant)

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        self._instant = ensure_utc(instant)

    def advance(self, **delta: float) -> datetime:
        self._instant = self._instant + timedelta(**delta)
        return self._instant


system_clock = SystemClock()
