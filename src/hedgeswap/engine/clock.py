"""Clock abstraction. The engine never reads wall-clock time directly.

Production code uses SystemClock. Tests and simulations inject
ManualClock and move time explicitly.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """A source of timezone-aware time."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Current UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """Controllable clock for deterministic tests.

    Example:
        clock = ManualClock(start)
        clock.advance(timedelta(seconds=61))
        clock.set(deadline)
    """

    def __init__(self, start: Optional[datetime] = None) -> None:
        if start is None:
            start = datetime.now(timezone.utc)
        self._current = as_utc(start)

    def now(self) -> datetime:
        return self._current

    def set(self, moment: datetime) -> None:
        self._current = as_utc(moment)

    def advance(self, step: timedelta) -> None:
        if step < timedelta(0):
            raise ValueError("ManualClock cannot move backwards")
        self._current += step


def as_utc(moment: datetime) -> datetime:
    """Treat a naive datetime as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment
