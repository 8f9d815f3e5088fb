"""Qt adapter for the export engine's ChangeCoordinator.

The editor's asset-change hook and the profile panels talk to this adapter via
signals/slots. The adapter owns the coordinator and translates its callbacks
into Qt signals so panels can refresh without importing engine internals.

Threading model
--------------
- Everything runs on the GUI thread. There is no worker thread: the debounce
  scheduler polls through a QtTicker and rescans execute on its timeout.
- Change batches arriving while the host reports a reload/recompile are
  dropped by the coordinator; call ``invalidate_all`` after the reload.
"""

from __future__ import annotations

from typing import Callable

from PySide6.QtCore import QObject, Signal, Slot

from export_engine.catalog import ProfileCatalog
from export_engine.clock import TimeSource
from export_engine.collector import AssetCollector
from export_engine.coordinator import ChangeCoordinator
from export_engine.data_models import ProfileScan
from export_engine.errors import ExportEngineError
from export_engine.invalidation import InvalidationStore
from export_engine.settings import EngineSettings
from gui.adapters.qt_ticker import DEFAULT_TICK_INTERVAL_MS, QtTicker


class ChangeMonitorAdapter(QObject):
    """Qt facade over ChangeCoordinator."""

    # Results (coordinator callbacks, forwarded as signals)
    profile_details_changed = Signal(object)  # tuple[str, ...] of profile ids
    profile_rescanned = Signal(str, object)  # profile_id, ProfileScan
    error = Signal(str)  # message

    def __init__(
        self,
        catalog: ProfileCatalog,
        collector: AssetCollector,
        *,
        settings: EngineSettings | None = None,
        is_host_busy: Callable[[], bool] | None = None,
        time_source: TimeSource | None = None,
        tick_interval_ms: int = DEFAULT_TICK_INTERVAL_MS,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        resolved = settings or EngineSettings.defaults()
        self._ticker = QtTicker(interval_ms=tick_interval_ms, parent=self)
        self._coordinator = ChangeCoordinator(
            catalog,
            collector,
            ticker=self._ticker,
            store=InvalidationStore(),
            layout=resolved.layout(),
            quiet_period=resolved.quiet_period_seconds,
            time_source=time_source,
            is_host_busy=is_host_busy,
            on_details_changed=self._emit_details_changed,
            after_rescan=self._emit_rescanned,
            on_error=self._emit_error,
        )

    @property
    def coordinator(self) -> ChangeCoordinator:
        return self._coordinator

    @property
    def ticker(self) -> QtTicker:
        return self._ticker

    @Slot(object)
    def handle_changes(self, changed_paths: object) -> None:
        """Forward a batch of changed paths (any sequence of str)."""
        if not isinstance(changed_paths, (list, tuple)):
            return
        self._coordinator.handle_changes(changed_paths)

    @Slot(str)
    def notify_includes_changed(self, profile_id: str) -> None:
        """Invalidate a profile whose bundled-profile list was edited."""
        self._coordinator.notify_includes_changed(profile_id)

    @Slot(str)
    def request_display(self, profile_id: str) -> None:
        """
        Bring a profile's result up to date because it is being displayed.

        Emits profile_details_changed when a lazy rescan produced a new result.
        """
        needed = self._coordinator.store.needs_scan(profile_id)
        scan = self._coordinator.ensure_scanned(profile_id)
        if needed and scan is not None and not self._coordinator.store.is_dirty(profile_id):
            self.profile_details_changed.emit((profile_id,))

    @Slot()
    def invalidate_all(self) -> None:
        self._coordinator.invalidate_all()

    def shutdown(self) -> None:
        """Cancel pending work and stop the timer."""
        self._coordinator.close()

    def _emit_details_changed(self, profile_ids: tuple[str, ...]) -> None:
        self.profile_details_changed.emit(profile_ids)

    def _emit_rescanned(self, profile_id: str, scan: ProfileScan) -> None:
        self.profile_rescanned.emit(profile_id, scan)

    def _emit_error(self, error: ExportEngineError) -> None:
        self.error.emit(str(error))
