"""
Per-profile scan state with a dirty flag.

The InvalidationStore is the source of truth for whether a profile's cached
discovery result can be trusted. Marking a profile dirty never discards its
cached result: stale data stays readable until a rescan replaces it, so
callers always have something to show while a recompute is pending.

Threading
---------
There is exactly one mutator context (the host's tick/notification thread).
The store performs no locking.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable

from .clock import Clock, SystemClock
from .data_models import ProfileId, ProfileScan


@dataclass(frozen=True, slots=True)
class ScanState:
    """
    Snapshot of one profile's scan state.

    Attributes
    ----------
    result:
        Last successful scan result, possibly stale.
    scanned:
        True once a scan has completed for this profile.
    dirty:
        True when a relevant change arrived after the last scan.
    scanned_at:
        Wall-clock time of the last successful scan (display only).
    """

    result: ProfileScan | None = None
    scanned: bool = False
    dirty: bool = False
    scanned_at: datetime | None = None


class InvalidationStore:
    """Tracks dirty/clean state and cached results per profile id."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock: Clock = clock or SystemClock()
        self._states: dict[ProfileId, ScanState] = {}

    def __contains__(self, profile_id: object) -> bool:
        return profile_id in self._states

    def __len__(self) -> int:
        return len(self._states)

    def track(self, profile_id: ProfileId) -> ScanState:
        """
        Return the state for profile_id, creating a clean entry if missing.
        """
        state = self._states.get(profile_id)
        if state is None:
            state = ScanState()
            self._states[profile_id] = state
        return state

    def state(self, profile_id: ProfileId) -> ScanState | None:
        return self._states.get(profile_id)

    def mark_dirty(self, profile_id: ProfileId) -> None:
        """
        Mark a profile's cached result as stale.

        Notes
        -----
        Idempotent. The cached result is kept.
        """
        state = self.track(profile_id)
        if not state.dirty:
            self._states[profile_id] = replace(state, dirty=True)

    def mark_clean(self, profile_id: ProfileId, result: ProfileScan) -> None:
        """
        Store a fresh scan result and clear the dirty flag.

        Parameters
        ----------
        profile_id:
            Profile the result belongs to.
        result:
            Newly computed discovery result.
        """
        self._states[profile_id] = ScanState(
            result=result,
            scanned=True,
            dirty=False,
            scanned_at=self._clock.now(),
        )

    def is_dirty(self, profile_id: ProfileId) -> bool:
        """Unknown ids are not dirty."""
        state = self._states.get(profile_id)
        return state is not None and state.dirty

    def needs_scan(self, profile_id: ProfileId) -> bool:
        """Return True when the profile is dirty or has never been scanned."""
        state = self._states.get(profile_id)
        return state is None or state.dirty or not state.scanned

    def cached_result(self, profile_id: ProfileId) -> ProfileScan | None:
        state = self._states.get(profile_id)
        return state.result if state is not None else None

    def dirty_ids(self) -> tuple[ProfileId, ...]:
        return tuple(pid for pid, state in self._states.items() if state.dirty)

    def forget(self, profile_id: ProfileId) -> None:
        """Drop all state for a profile that no longer exists."""
        self._states.pop(profile_id, None)

    def prune(self, existing_ids: Iterable[ProfileId]) -> tuple[ProfileId, ...]:
        """
        Drop entries for profiles not in existing_ids.

        Returns
        -------
        tuple[ProfileId, ...]
            The ids that were removed.
        """
        keep = set(existing_ids)
        removed = tuple(pid for pid in self._states if pid not in keep)
        for pid in removed:
            del self._states[pid]
        return removed
