"""QTimer-backed Ticker for the export engine.

The debounce scheduler polls its deadline through a Ticker. In the Qt host the
periodic hook is a QTimer living on the GUI thread, so every tick and every
flush runs on the same logical thread as change notifications.

The timer only runs between start() and stop(); the scheduler stops it as soon
as its pending set drains, so an idle engine causes no wakeups.
"""

from __future__ import annotations

from typing import Callable

from PySide6.QtCore import QObject, QTimer, Slot

DEFAULT_TICK_INTERVAL_MS = 50


class QtTicker(QObject):
    """Ticker that invokes its callback on a repeating QTimer."""

    def __init__(
        self, interval_ms: int = DEFAULT_TICK_INTERVAL_MS, parent: QObject | None = None
    ) -> None:
        super().__init__(parent)
        self._callback: Callable[[], object] | None = None
        self._timer = QTimer(self)
        self._timer.setInterval(int(interval_ms))
        self._timer.timeout.connect(self._on_timeout)

    @property
    def interval_ms(self) -> int:
        return self._timer.interval()

    @property
    def is_running(self) -> bool:
        return self._timer.isActive()

    def start(self, callback: Callable[[], object]) -> None:
        """Register callback and start ticking."""
        self._callback = callback
        self._timer.start()

    def stop(self) -> None:
        """Stop ticking and drop the callback."""
        self._timer.stop()
        self._callback = None

    @Slot()
    def _on_timeout(self) -> None:
        callback = self._callback
        if callback is not None:
            callback()
