"""
Debounced flushing of pending profile rescans.

The scheduler coalesces bursts of "something changed" notifications into one
flush per quiet period. It owns its pending set and drives an explicit Ticker
that it starts on the Idle -> Armed transition and stops when it returns to
Idle, so no periodic hook stays registered while nothing is pending.

State machine
-------------
- Idle   -- notify --> Armed  (deadline = now + quiet_period, ticker started)
- Armed  -- notify --> Armed  (deadline = now + quiet_period)
- Armed  -- tick, now >= deadline --> Idle (ticker stopped, flush invoked once)

This is a debounce, not a rate limiter: an unbroken stream of notifications
defers the flush indefinitely.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Protocol

from .clock import SystemTimeSource, TimeSource
from .data_models import ProfileId
from .errors import FlushError

logger = logging.getLogger(__name__)

DEFAULT_QUIET_PERIOD_SECONDS = 0.75

FlushCallback = Callable[[tuple[ProfileId, ...]], None]
ErrorCallback = Callable[[FlushError], None]


class Ticker(Protocol):
    """
    A periodic hook supplied by the host execution model.

    Implementations call the registered callback repeatedly on the host's
    single logical thread between start() and stop().
    """

    @property
    def is_running(self) -> bool: ...

    def start(self, callback: Callable[[], object]) -> None: ...

    def stop(self) -> None: ...


class ManualTicker:
    """Ticker driven explicitly by the caller (headless hosts and tests)."""

    def __init__(self) -> None:
        self._callback: Callable[[], object] | None = None
        self.start_count = 0
        self.stop_count = 0

    @property
    def is_running(self) -> bool:
        return self._callback is not None

    def start(self, callback: Callable[[], object]) -> None:
        self._callback = callback
        self.start_count += 1

    def stop(self) -> None:
        if self._callback is not None:
            self.stop_count += 1
        self._callback = None

    def fire(self) -> bool:
        """
        Invoke the registered callback once.

        Returns
        -------
        bool
            False when the ticker is stopped and nothing ran.
        """
        callback = self._callback
        if callback is None:
            return False
        callback()
        return True


class DebounceScheduler:
    """
    Coalesces pending profile ids and flushes them after a quiet period.

    Parameters
    ----------
    ticker:
        Periodic hook used to poll the deadline.
    on_flush:
        Called with the drained pending ids, in first-notification order.
    quiet_period:
        Seconds without notifications before a flush fires.
    time_source:
        Monotonic time source.
    on_error:
        Receives a FlushError when on_flush raises. When omitted the error is
        re-raised to the ticker's caller.
    """

    def __init__(
        self,
        ticker: Ticker,
        on_flush: FlushCallback,
        *,
        quiet_period: float = DEFAULT_QUIET_PERIOD_SECONDS,
        time_source: TimeSource | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        if quiet_period < 0:
            raise ValueError("quiet_period must be non-negative.")
        self._ticker = ticker
        self._on_flush = on_flush
        self._quiet_period = float(quiet_period)
        self._time: TimeSource = time_source or SystemTimeSource()
        self._on_error = on_error
        # dict keys give ordered set semantics.
        self._pending: dict[ProfileId, None] = {}
        self._deadline: float | None = None

    @property
    def quiet_period(self) -> float:
        return self._quiet_period

    @property
    def is_armed(self) -> bool:
        return self._deadline is not None

    @property
    def deadline(self) -> float | None:
        return self._deadline

    @property
    def pending(self) -> tuple[ProfileId, ...]:
        return tuple(self._pending)

    def notify(self, profile_ids: Iterable[ProfileId]) -> bool:
        """
        Add ids to the pending set and arm or extend the deadline.

        Returns
        -------
        bool
            True if the scheduler is armed afterwards.
        """
        added = False
        for profile_id in profile_ids:
            self._pending.setdefault(profile_id, None)
            added = True
        if not added:
            return self.is_armed

        was_armed = self.is_armed
        self._deadline = self._time.monotonic() + self._quiet_period
        if not was_armed:
            logger.debug("Debounce armed (quiet period %.3fs)", self._quiet_period)
            self._ticker.start(self.tick)
        return True

    def tick(self) -> bool:
        """
        Poll the deadline and flush when it has passed.

        Returns
        -------
        bool
            True if a flush ran on this tick.
        """
        if self._deadline is None:
            # Stale wakeup after cancel(); make sure the hook is released.
            self._ticker.stop()
            return False
        if self._time.monotonic() < self._deadline:
            return False
        self._flush()
        return True

    def flush_now(self) -> bool:
        """Flush immediately if anything is pending."""
        if self._deadline is None:
            return False
        self._flush()
        return True

    def cancel(self) -> tuple[ProfileId, ...]:
        """
        Drop pending ids and return to Idle.

        Returns
        -------
        tuple[ProfileId, ...]
            The ids that were discarded.
        """
        dropped = tuple(self._pending)
        self._pending = {}
        self._deadline = None
        self._ticker.stop()
        return dropped

    def _flush(self) -> None:
        batch = tuple(self._pending)
        # Swap before calling out: notifications raised by the callback land in
        # a fresh set and re-arm the scheduler.
        self._pending = {}
        self._deadline = None
        self._ticker.stop()

        if not batch:
            return

        logger.debug("Debounce flushing %d profile(s)", len(batch))
        try:
            self._on_flush(batch)
        except Exception as exc:
            error = FlushError(f"Flush callback failed for {len(batch)} profile(s): {exc}")
            error.__cause__ = exc
            if self._on_error is None:
                raise error from exc
            self._on_error(error)
