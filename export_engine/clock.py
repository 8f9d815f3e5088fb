"""
Time abstractions for deterministic invalidation behavior.

Notes
-----
Engine code must not read time directly. Callers provide a Clock for
wall-clock timestamps (display only) and a TimeSource for the monotonic
seconds that drive debounce deadlines. This keeps scheduler tests exact.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    """A source of wall-clock time for recorded timestamps."""

    def now(self) -> datetime:
        """
        Return the current time.

        Returns
        -------
        datetime
            A timezone-aware datetime.
        """
        ...


class TimeSource(Protocol):
    """A source of monotonic seconds for deadlines."""

    def monotonic(self) -> float:
        """
        Return monotonic seconds.

        Returns
        -------
        float
            Seconds from an arbitrary, never-decreasing origin.
        """
        ...


@dataclass(frozen=True, slots=True)
class SystemClock:
    """Clock that returns the current system time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class FixedClock:
    """Clock that always returns a fixed time (useful for tests)."""

    fixed_time: datetime

    def now(self) -> datetime:
        if self.fixed_time.tzinfo is None:
            return self.fixed_time.replace(tzinfo=timezone.utc)
        return self.fixed_time


@dataclass(frozen=True, slots=True)
class SystemTimeSource:
    """TimeSource backed by ``time.monotonic``."""

    def monotonic(self) -> float:
        return time.monotonic()


@dataclass(slots=True)
class ManualTimeSource:
    """
    TimeSource advanced explicitly by the caller.

    Attributes
    ----------
    current:
        Current monotonic reading in seconds.
    """

    current: float = field(default=0.0)

    def monotonic(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        """
        Move time forward.

        Parameters
        ----------
        seconds:
            Non-negative number of seconds to add.

        Raises
        ------
        ValueError
            If seconds is negative.
        """
        if seconds < 0:
            raise ValueError("ManualTimeSource cannot move backwards.")
        self.current += seconds
