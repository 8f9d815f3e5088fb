"""
Composite (bundled) profile resolution.

A profile may include other profiles, which may include others in turn. This
module flattens that include graph into a deduplicated, cycle-free list and
reports cycles and dangling references as data. Nothing here raises on cyclic
or incomplete input.

Resolution rules
----------------
- Depth-first, visiting includes in authoring order, so results are stable.
- Profiles are recorded in first-discovery order and never descended twice.
- The root is never part of the result. Reaching a profile that is still on
  the traversal stack (the root included) records a cycle instead.
- Dangling ids are skipped and listed in ``missing``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from enum import Enum

from .data_models import (
    DiscoveredAsset,
    Profile,
    ProfileId,
    ProfileLookup,
    ProfileScan,
    ResolvedGraph,
)

CYCLE_ARROW = " → "

_END = object()


class ProfileStatus(str, Enum):
    """Resolution status of a profile, for display."""

    VALID = "valid"
    HAS_ERRORS = "has_errors"
    MISSING = "missing"
    CYCLE = "cycle"


def resolve_included_profiles(root: Profile, lookup: ProfileLookup) -> ResolvedGraph:
    """
    Flatten the include graph below root.

    Parameters
    ----------
    root:
        Profile to start from. Its own id is never part of the result.
    lookup:
        Maps an id to a Profile, or None for dangling references.

    Returns
    -------
    ResolvedGraph
        Included profiles in discovery order, plus cycles and missing ids.
    """
    resolved: dict[ProfileId, None] = {}
    missing: dict[ProfileId, None] = {}
    cycles: list[tuple[ProfileId, ...]] = []

    path: list[ProfileId] = [root.profile_id]
    on_path: set[ProfileId] = {root.profile_id}
    frames: list[Iterator[object]] = [iter(root.included_ids)]

    while frames:
        child_id = next(frames[-1], _END)
        if child_id is _END:
            frames.pop()
            on_path.discard(path.pop())
            continue
        if not isinstance(child_id, str) or not child_id:
            continue

        if child_id in on_path:
            start = path.index(child_id)
            cycles.append(tuple(path[start:]) + (child_id,))
            continue
        if child_id in resolved or child_id in missing:
            continue

        child = lookup(child_id)
        if child is None:
            missing[child_id] = None
            continue

        resolved[child_id] = None
        path.append(child_id)
        on_path.add(child_id)
        frames.append(iter(child.included_ids))

    return ResolvedGraph(
        root_id=root.profile_id,
        resolved=tuple(resolved),
        cycles=tuple(cycles),
        missing=tuple(missing),
    )


def would_create_cycle(parent: Profile, candidate_id: ProfileId, lookup: ProfileLookup) -> bool:
    """
    Return True if including candidate_id in parent would close a cycle.
    """
    if candidate_id == parent.profile_id:
        return True
    candidate = lookup(candidate_id)
    if candidate is None:
        return False
    return parent.profile_id in resolve_included_profiles(candidate, lookup).resolved


def format_cycle(cycle: Sequence[ProfileId], lookup: ProfileLookup) -> str:
    """
    Render a cycle with display names, e.g. ``"A → B → A"``.

    Parameters
    ----------
    cycle:
        Profile ids from the revisited profile back to itself.
    lookup:
        Maps an id to a Profile. Ids it cannot find are shown as-is.
    """
    names: list[str] = []
    for profile_id in cycle:
        profile = lookup(profile_id)
        names.append(profile.display_name if profile is not None else profile_id)
    return CYCLE_ARROW.join(names)


def validate_included_profiles(profile: Profile, lookup: ProfileLookup) -> tuple[str, ...]:
    """
    Describe problems in a profile's include graph.

    Returns
    -------
    tuple[str, ...]
        One message per cycle, plus one summarizing missing includes. Empty
        when the graph is sound.
    """
    if not profile.is_composite:
        return ()
    graph = resolve_included_profiles(profile, lookup)
    errors = [f"Cycle detected: {format_cycle(cycle, lookup)}" for cycle in graph.cycles]
    if graph.missing:
        errors.append(f"{len(graph.missing)} included profile(s) are missing or deleted")
    return tuple(errors)


def profile_status(profile_id: ProfileId, lookup: ProfileLookup) -> ProfileStatus:
    """
    Classify a profile for display.

    Returns
    -------
    ProfileStatus
        MISSING if the profile does not exist, CYCLE if its include graph has
        a cycle, HAS_ERRORS if it includes missing profiles, else VALID.
    """
    profile = lookup(profile_id)
    if profile is None:
        return ProfileStatus.MISSING
    graph = resolve_included_profiles(profile, lookup)
    if graph.has_cycles:
        return ProfileStatus.CYCLE
    if graph.missing:
        return ProfileStatus.HAS_ERRORS
    return ProfileStatus.VALID


def dependents_of(
    profile_id: ProfileId,
    profiles: Iterable[Profile],
    lookup: ProfileLookup,
) -> tuple[ProfileId, ...]:
    """
    Return ids of profiles whose include graph reaches profile_id.
    """
    out: list[ProfileId] = []
    for candidate in profiles:
        if candidate.profile_id == profile_id or not candidate.is_composite:
            continue
        if profile_id in resolve_included_profiles(candidate, lookup).resolved:
            out.append(candidate.profile_id)
    return tuple(out)


def detect_asset_conflicts(contributions: Mapping[str, Sequence[ProfileId]]) -> tuple[str, ...]:
    """
    Describe assets contributed by more than one profile.

    Parameters
    ----------
    contributions:
        Asset path -> ids of every profile that produced it.
    """
    return tuple(
        f"{path} appears in: {', '.join(sources)}"
        for path, sources in contributions.items()
        if len(sources) > 1
    )


def merge_asset_lists(
    parent: Profile,
    parent_assets: Sequence[DiscoveredAsset],
    included: Sequence[tuple[ProfileId, Sequence[DiscoveredAsset]]],
    graph: ResolvedGraph | None = None,
) -> ProfileScan:
    """
    Merge a parent's assets with those of its bundled profiles.

    Notes
    -----
    Paths are compared case-insensitively. The parent wins on conflicts;
    among bundled profiles the first contributor wins.

    Parameters
    ----------
    parent:
        The composite profile.
    parent_assets:
        Assets discovered under the parent's own export roots.
    included:
        (profile id, assets) for each resolved bundled profile, in
        resolution order.
    graph:
        Include graph the merge was computed from.

    Returns
    -------
    ProfileScan
        Merged result with source map and conflict descriptions.
    """
    merged: dict[str, DiscoveredAsset] = {}
    contributions: dict[str, list[ProfileId]] = {}
    display_paths: dict[str, str] = {}

    for source_id, assets in ((parent.profile_id, parent_assets), *included):
        for asset in assets:
            key = asset.path.casefold()
            display_paths.setdefault(key, asset.path)
            merged.setdefault(key, asset)
            sources = contributions.setdefault(key, [])
            if source_id not in sources:
                sources.append(source_id)

    return ProfileScan(
        profile_id=parent.profile_id,
        assets=tuple(merged.values()),
        source_map={key: sources[0] for key, sources in contributions.items()},
        conflicts=detect_asset_conflicts(
            {display_paths[key]: sources for key, sources in contributions.items()}
        ),
        graph=graph,
    )
