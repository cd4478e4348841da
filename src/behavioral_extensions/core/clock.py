"""Time sources for timestampable fields and log entries."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


class IClock(Protocol):
    def now(self) -> datetime: ...


class WallClock:
    """Current UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Stamps every write with the same instant until moved forward.

    Useful for imports that must carry a source timestamp, and for tests.
    """

    def __init__(self, at: datetime) -> None:
        self._at = at

    def now(self) -> datetime:
        return self._at

    def advance(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("FixedClock only moves forward")
        self._at += timedelta(seconds=seconds)
