"""Data models for the export engine.

Profiles are owned by the host application. The engine reads their export
roots and include references and keeps its own per-profile scan state in the
InvalidationStore, so the models here are immutable value objects.

The models in this module are intentionally standard-library-only (dataclasses)
to keep the engine lightweight and deterministic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Mapping

ProfileId = str

ProfileLookup = Callable[[ProfileId], "Profile | None"]


@dataclass(frozen=True, slots=True)
class Profile:
    """
    An export profile as seen by the engine.

    Attributes
    ----------
    profile_id:
        Stable identifier assigned by the host.
    name:
        Human-friendly display name (used in cycle messages).
    export_roots:
        Folder paths packaged by this profile, in authoring order.
    included_ids:
        Identifiers of bundled profiles, in authoring order. May reference
        profiles that no longer exist.
    """

    profile_id: ProfileId
    name: str = ""
    export_roots: tuple[str, ...] = ()
    included_ids: tuple[ProfileId, ...] = ()

    @property
    def display_name(self) -> str:
        return self.name or self.profile_id

    @property
    def is_composite(self) -> bool:
        return bool(self.included_ids)


@dataclass(frozen=True, slots=True)
class DiscoveredAsset:
    """
    A single asset found under a profile's export roots.

    Attributes
    ----------
    path:
        Project-relative path using '/' separators.
    size_bytes:
        File size in bytes.
    source_profile_id:
        Profile whose export root produced this asset.
    """

    path: str
    size_bytes: int
    source_profile_id: ProfileId


@dataclass(frozen=True, slots=True)
class ResolvedGraph:
    """
    Flattened include graph for one root profile.

    Attributes
    ----------
    root_id:
        The profile resolution started from.
    resolved:
        Included profiles reachable from the root, deduplicated, in
        first-discovery order. Never contains the root.
    cycles:
        Each cycle as the sequence of ids from the revisited profile back to
        itself, e.g. ``("A", "B", "A")``.
    missing:
        Dangling include references encountered, deduplicated.
    """

    root_id: ProfileId
    resolved: tuple[ProfileId, ...] = ()
    cycles: tuple[tuple[ProfileId, ...], ...] = ()
    missing: tuple[ProfileId, ...] = ()

    @property
    def has_cycles(self) -> bool:
        return bool(self.cycles)


@dataclass(frozen=True, slots=True)
class ProfileScan:
    """
    Cached discovery result for a profile.

    Attributes
    ----------
    profile_id:
        Profile the scan belongs to.
    assets:
        Merged assets (own roots plus bundled profiles), parent first.
    source_map:
        Lower-cased asset path -> id of the profile that contributed it.
    conflicts:
        Human-readable descriptions of assets contributed by several profiles.
    graph:
        Include graph used for the merge; ``None`` for non-composite profiles.
    """

    profile_id: ProfileId
    assets: tuple[DiscoveredAsset, ...] = ()
    source_map: Mapping[str, ProfileId] = field(default_factory=dict)
    conflicts: tuple[str, ...] = ()
    graph: ResolvedGraph | None = None

    @property
    def asset_paths(self) -> tuple[str, ...]:
        return tuple(asset.path for asset in self.assets)
