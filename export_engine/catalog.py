"""
Profile catalog seam.

The host application owns export profiles and knows which of them are open and
which are visible in the detail UI. The engine only talks to this interface;
it never depends on how profiles are persisted.

Notes
-----
- ``tracked()`` returns the profiles the host wants change tracking for
  (typically the selected profile plus any multi-selection).
- ``is_displayed()`` is the display scope: displayed profiles are rescanned
  eagerly, everything else lazily on next display.
"""

from __future__ import annotations

from typing import Iterable, Protocol, Sequence

from .data_models import Profile, ProfileId


class ProfileCatalog(Protocol):
    """Read-only view of host profiles for the engine."""

    def get(self, profile_id: ProfileId) -> Profile | None:
        """
        Look up a profile.

        Parameters
        ----------
        profile_id:
            Identifier to look up.

        Returns
        -------
        Profile | None
            The profile, or None if it no longer exists.
        """
        raise NotImplementedError

    def tracked(self) -> Sequence[Profile]:
        """
        Return profiles currently open for change tracking, in stable order.
        """
        raise NotImplementedError

    def is_displayed(self, profile_id: ProfileId) -> bool:
        """
        Return True if the profile is visible in the detail UI.
        """
        raise NotImplementedError


class InMemoryProfileCatalog(ProfileCatalog):
    """
    Dict-backed ProfileCatalog.

    Used by headless hosts, the CLI, and tests. Insertion order is the
    tracking order.
    """

    def __init__(self, profiles: Iterable[Profile] = ()) -> None:
        self._profiles: dict[ProfileId, Profile] = {}
        self._untracked: set[ProfileId] = set()
        self._displayed: set[ProfileId] = set()
        for profile in profiles:
            self.put(profile)

    def put(self, profile: Profile, *, tracked: bool = True) -> None:
        """Insert or replace a profile."""
        self._profiles[profile.profile_id] = profile
        if tracked:
            self._untracked.discard(profile.profile_id)
        else:
            self._untracked.add(profile.profile_id)

    def remove(self, profile_id: ProfileId) -> None:
        self._profiles.pop(profile_id, None)
        self._untracked.discard(profile_id)
        self._displayed.discard(profile_id)

    def set_displayed(self, profile_ids: Iterable[ProfileId]) -> None:
        """Replace the display scope."""
        self._displayed = set(profile_ids)

    def get(self, profile_id: ProfileId) -> Profile | None:
        return self._profiles.get(profile_id)

    def all(self) -> Sequence[Profile]:
        return list(self._profiles.values())

    def tracked(self) -> Sequence[Profile]:
        return [p for pid, p in self._profiles.items() if pid not in self._untracked]

    def is_displayed(self, profile_id: ProfileId) -> bool:
        return profile_id in self._displayed and profile_id in self._profiles
