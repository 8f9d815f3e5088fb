"""
Domain exceptions for the export engine.

Notes
-----
Benign conditions (unrooted paths, dangling include references, include
cycles) are reported as data and never raised. Exceptions here cover
operational failures only.
"""

from __future__ import annotations


class ExportEngineError(RuntimeError):
    """Base exception for all export engine failures."""


class ProfileScanError(ExportEngineError):
    """Raised when the asset collector fails for a profile."""

    def __init__(self, profile_id: str, message: str) -> None:
        super().__init__(f"Scan failed for profile {profile_id!r}: {message}")
        self.profile_id = profile_id


class FlushError(ExportEngineError):
    """Raised when a debounced flush callback fails."""


class SettingsError(ExportEngineError):
    """Raised when engine settings cannot be written."""
