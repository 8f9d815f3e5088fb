"""
Change coordination for export profiles.

This module ties the engine together:
- raw change batches are matched against tracked profiles' export roots
- relevant profiles are marked dirty and queued on the debounce scheduler
- on flush, displayed profiles are rescanned (composite profiles re-resolve
  their include graph first); everything else stays dirty until displayed
- a details-changed notification fires after a batch with successful rescans

Error posture
-------------
- Unrooted/malformed paths, dangling includes, and include cycles are data,
  never exceptions.
- A failing AssetCollector is caught here, logged, and the profile is left
  dirty so a later flush or display retries it.
- Flush-level failures go to the ``on_error`` channel (logged by default).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence

from .catalog import ProfileCatalog
from .clock import TimeSource
from .collector import AssetCollector
from .composite import dependents_of, format_cycle, merge_asset_lists, resolve_included_profiles
from .data_models import DiscoveredAsset, Profile, ProfileId, ProfileScan
from .debounce import DEFAULT_QUIET_PERIOD_SECONDS, DebounceScheduler, Ticker
from .errors import ExportEngineError, FlushError, ProfileScanError
from .invalidation import InvalidationStore
from .paths import DEFAULT_LAYOUT, ProjectLayout, is_change_relevant
from .settings import EngineSettings

logger = logging.getLogger(__name__)

DetailsChangedCallback = Callable[[tuple[ProfileId, ...]], None]
RescanObserver = Callable[[ProfileId, ProfileScan], None]
EngineErrorCallback = Callable[[ExportEngineError], None]


def _never_busy() -> bool:
    return False


def _ignore_details(_ids: tuple[ProfileId, ...]) -> None:
    return None


def _ignore_rescan(_profile_id: ProfileId, _scan: ProfileScan) -> None:
    return None


def _log_engine_error(error: ExportEngineError) -> None:
    logger.error("%s", error, exc_info=error)


class ChangeCoordinator:
    """
    Entry point for host change notifications.

    Parameters
    ----------
    catalog:
        Host profiles, tracking set, and display scope.
    collector:
        Asset discovery for a single profile's export roots.
    ticker:
        Host periodic hook used by the debounce scheduler.
    store:
        Scan state store. A new one is created when omitted.
    layout:
        Project layout for path normalization.
    quiet_period:
        Debounce quiet period in seconds.
    time_source:
        Monotonic time for debounce deadlines.
    is_host_busy:
        Returns True while the host is recompiling/reloading; change batches
        arriving then are dropped.
    on_details_changed:
        Receives the ids rescanned in a flush.
    after_rescan:
        Optional observer invoked after every successful rescan.
    on_error:
        Error channel for flush failures. Defaults to logging.
    """

    def __init__(
        self,
        catalog: ProfileCatalog,
        collector: AssetCollector,
        *,
        ticker: Ticker,
        store: InvalidationStore | None = None,
        layout: ProjectLayout = DEFAULT_LAYOUT,
        quiet_period: float = DEFAULT_QUIET_PERIOD_SECONDS,
        time_source: TimeSource | None = None,
        is_host_busy: Callable[[], bool] | None = None,
        on_details_changed: DetailsChangedCallback | None = None,
        after_rescan: RescanObserver | None = None,
        on_error: EngineErrorCallback | None = None,
    ) -> None:
        self._catalog = catalog
        self._collector = collector
        self._store = store if store is not None else InvalidationStore()
        self._layout = layout
        self._is_host_busy = is_host_busy or _never_busy
        self._on_details_changed = on_details_changed or _ignore_details
        self._after_rescan = after_rescan or _ignore_rescan
        self._on_error = on_error or _log_engine_error
        self._scheduler = DebounceScheduler(
            ticker,
            self._flush,
            quiet_period=quiet_period,
            time_source=time_source,
            on_error=self._report_flush_error,
        )

    @classmethod
    def from_settings(
        cls,
        settings: EngineSettings,
        catalog: ProfileCatalog,
        collector: AssetCollector,
        *,
        ticker: Ticker,
        **kwargs: object,
    ) -> "ChangeCoordinator":
        """Build a coordinator using persisted quiet period and layout."""
        return cls(
            catalog,
            collector,
            ticker=ticker,
            layout=settings.layout(),
            quiet_period=settings.quiet_period_seconds,
            **kwargs,  # type: ignore[arg-type]
        )

    @property
    def store(self) -> InvalidationStore:
        return self._store

    @property
    def scheduler(self) -> DebounceScheduler:
        return self._scheduler

    @property
    def layout(self) -> ProjectLayout:
        return self._layout

    def handle_changes(self, changed_paths: Iterable[str] | None) -> tuple[ProfileId, ...]:
        """
        Process one batch of raw changed paths.

        Parameters
        ----------
        changed_paths:
            Paths reported by the host. May be empty.

        Returns
        -------
        tuple[ProfileId, ...]
            Profiles marked dirty and queued by this batch: those whose own
            export roots match, followed by tracked composites that bundle
            any of them.
        """
        if not changed_paths or isinstance(changed_paths, (str, bytes)):
            return ()
        batch = [p for p in changed_paths if isinstance(p, str) and p.strip()]
        if not batch:
            return ()
        if self._is_host_busy():
            logger.debug("Host busy; dropping %d changed path(s)", len(batch))
            return ()

        tracked: list[Profile] = []
        seen: set[ProfileId] = set()
        for profile in self._catalog.tracked():
            if profile.profile_id not in seen:
                seen.add(profile.profile_id)
                tracked.append(profile)

        affected: dict[ProfileId, None] = {}
        for profile in tracked:
            if not profile.export_roots:
                continue
            self._store.track(profile.profile_id)
            if is_change_relevant(profile.export_roots, batch, self._layout):
                affected[profile.profile_id] = None

        # Composite results embed their bundled profiles' assets.
        for profile_id in tuple(affected):
            for dependent_id in dependents_of(profile_id, tracked, self._catalog.get):
                affected.setdefault(dependent_id, None)

        for profile_id in affected:
            self._store.mark_dirty(profile_id)
        if affected:
            logger.debug("Changes affect %s", ", ".join(affected))
            self._scheduler.notify(affected)
        return tuple(affected)

    def handle_asset_postprocess(
        self,
        imported: Sequence[str] | None = None,
        deleted: Sequence[str] | None = None,
        moved: Sequence[str] | None = None,
        moved_from: Sequence[str] | None = None,
    ) -> tuple[ProfileId, ...]:
        """
        Process a host asset-postprocess callback.

        Imported, deleted, moved, and moved-from paths are combined into one
        batch; a move is relevant to both its old and new location.
        """
        changed: list[str] = []
        for group in (imported, deleted, moved, moved_from):
            if group:
                changed.extend(group)
        return self.handle_changes(changed)

    def notify_includes_changed(self, profile_id: ProfileId) -> tuple[ProfileId, ...]:
        """
        Invalidate a profile whose include list was edited.

        Tracked composite profiles that resolve through it are invalidated too.

        Returns
        -------
        tuple[ProfileId, ...]
            Profiles marked dirty and queued.
        """
        profile = self._catalog.get(profile_id)
        if profile is None:
            self._store.forget(profile_id)
            return ()

        affected = [profile_id]
        affected.extend(dependents_of(profile_id, self._catalog.tracked(), self._catalog.get))
        for pid in affected:
            self._store.mark_dirty(pid)
        self._scheduler.notify(affected)
        return tuple(affected)

    def invalidate_all(self) -> tuple[ProfileId, ...]:
        """
        Mark every tracked profile dirty and queue it.

        Used after a host reload boundary, when change batches were dropped.
        """
        affected = tuple(dict.fromkeys(p.profile_id for p in self._catalog.tracked()))
        for pid in affected:
            self._store.mark_dirty(pid)
        self._scheduler.notify(affected)
        return affected

    def rescan(self, profile_id: ProfileId) -> ProfileScan | None:
        """
        Rescan a profile now and store the result.

        Returns
        -------
        ProfileScan | None
            The new result, or None if the profile no longer exists.

        Raises
        ------
        ProfileScanError
            If the asset collector fails. The profile is left dirty.
        """
        profile = self._catalog.get(profile_id)
        if profile is None:
            self._store.forget(profile_id)
            return None

        scan = self._scan_profile(profile)
        self._store.mark_clean(profile_id, scan)
        logger.info("Rescanned %s: %d asset(s)", profile.display_name, len(scan.assets))
        self._after_rescan(profile_id, scan)
        return scan

    def ensure_scanned(self, profile_id: ProfileId) -> ProfileScan | None:
        """
        Return a current result for a profile that is being displayed.

        Rescans when the profile is dirty or was never scanned. On scan
        failure the stale cached result (if any) is returned.
        """
        if self._catalog.get(profile_id) is None:
            self._store.forget(profile_id)
            return None
        if self._store.needs_scan(profile_id):
            try:
                return self.rescan(profile_id)
            except ProfileScanError:
                return self._store.cached_result(profile_id)
        return self._store.cached_result(profile_id)

    def close(self) -> None:
        """Cancel pending work and release the host periodic hook."""
        dropped = self._scheduler.cancel()
        if dropped:
            logger.debug("Closing with %d pending profile(s) left dirty", len(dropped))

    def _flush(self, batch: tuple[ProfileId, ...]) -> None:
        rescanned: list[ProfileId] = []
        for profile_id in batch:
            if self._catalog.get(profile_id) is None:
                self._store.forget(profile_id)
                continue
            if not self._store.is_dirty(profile_id):
                continue
            if not self._catalog.is_displayed(profile_id):
                logger.debug("Profile %s not displayed; deferring rescan", profile_id)
                continue
            try:
                scan = self.rescan(profile_id)
            except ProfileScanError:
                continue
            if scan is not None:
                rescanned.append(profile_id)

        if rescanned:
            self._on_details_changed(tuple(rescanned))

    def _scan_profile(self, profile: Profile) -> ProfileScan:
        own = self._collect(profile)
        if not profile.is_composite:
            return merge_asset_lists(profile, own, ())

        graph = resolve_included_profiles(profile, self._catalog.get)
        for cycle in graph.cycles:
            logger.warning(
                "Include cycle in %s: %s",
                profile.display_name,
                format_cycle(cycle, self._catalog.get),
            )
        if graph.missing:
            logger.warning(
                "%s includes %d missing profile(s)", profile.display_name, len(graph.missing)
            )

        included: list[tuple[ProfileId, tuple[DiscoveredAsset, ...]]] = []
        for included_id in graph.resolved:
            child = self._catalog.get(included_id)
            if child is not None:
                included.append((included_id, self._collect(child)))
        return merge_asset_lists(profile, own, included, graph)

    def _collect(self, profile: Profile) -> tuple[DiscoveredAsset, ...]:
        try:
            return tuple(self._collector.scan(profile))
        except Exception as exc:
            logger.exception("Asset scan failed for profile %s", profile.profile_id)
            raise ProfileScanError(profile.profile_id, str(exc)) from exc

    def _report_flush_error(self, error: FlushError) -> None:
        self._on_error(error)
