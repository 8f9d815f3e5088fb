"""
Engine settings.

The quiet period is the only behavioral tunable. The project layout values
are host facts persisted alongside it so headless hosts and the CLI can start
without an editor.

Notes
-----
Loading never fails: a missing or unreadable file yields defaults, and each
invalid value falls back to its own default.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from .debounce import DEFAULT_QUIET_PERIOD_SECONDS
from .errors import SettingsError
from .paths import DEFAULT_CONTENT_PREFIXES, ProjectLayout

SETTINGS_FILE_NAME = "engine_settings.json"


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """
    Persisted engine settings.

    Attributes
    ----------
    quiet_period_seconds:
        Debounce quiet period before a rescan flush.
    project_root:
        Absolute project directory, if known.
    content_prefixes:
        Top-level folders that hold exportable content.
    """

    quiet_period_seconds: float
    project_root: Path | None
    content_prefixes: tuple[str, ...]

    @staticmethod
    def defaults() -> "EngineSettings":
        return EngineSettings(
            quiet_period_seconds=DEFAULT_QUIET_PERIOD_SECONDS,
            project_root=None,
            content_prefixes=DEFAULT_CONTENT_PREFIXES,
        )

    def layout(self) -> ProjectLayout:
        return ProjectLayout(project_root=self.project_root, content_prefixes=self.content_prefixes)


def default_settings_root() -> Path:
    """
    Resolve the default settings directory.

    Preference order:
    1) %LOCALAPPDATA% if set
    2) %APPDATA% (Roaming)
    3) $XDG_CONFIG_HOME
    4) ~/.config
    """
    for variable in ("LOCALAPPDATA", "APPDATA", "XDG_CONFIG_HOME"):
        value = os.environ.get(variable)
        if value:
            return Path(value) / "pkgexport"
    return Path.home() / ".config" / "pkgexport"


def settings_path(settings_root: Path | None = None) -> Path:
    """
    Return the engine settings file path.

    Parameters
    ----------
    settings_root:
        Settings directory. Defaults to ``default_settings_root()``.
    """
    root = default_settings_root() if settings_root is None else settings_root
    return root / SETTINGS_FILE_NAME


def _quiet_period(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_QUIET_PERIOD_SECONDS
    if value < 0:
        return DEFAULT_QUIET_PERIOD_SECONDS
    return float(value)


def _project_root(value: object) -> Path | None:
    if isinstance(value, str) and value.strip():
        return Path(value)
    return None


def _content_prefixes(value: object) -> tuple[str, ...]:
    if not isinstance(value, list):
        return DEFAULT_CONTENT_PREFIXES
    cleaned = tuple(str(v).strip().strip("/\\") for v in value if isinstance(v, str) and v.strip())
    return cleaned or DEFAULT_CONTENT_PREFIXES


def load_engine_settings(path: Path) -> EngineSettings:
    """
    Load engine settings from disk.

    Parameters
    ----------
    path:
        Settings JSON file.

    Returns
    -------
    EngineSettings
        Loaded settings, or defaults if missing/unreadable.
    """
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return EngineSettings.defaults()
    if not isinstance(payload, dict):
        return EngineSettings.defaults()

    return EngineSettings(
        quiet_period_seconds=_quiet_period(payload.get("quiet_period_seconds")),
        project_root=_project_root(payload.get("project_root")),
        content_prefixes=_content_prefixes(payload.get("content_prefixes")),
    )


def save_engine_settings(path: Path, settings: EngineSettings) -> None:
    """
    Save engine settings to disk.

    Raises
    ------
    SettingsError
        If the file cannot be written.
    """
    payload = {
        "quiet_period_seconds": settings.quiet_period_seconds,
        "project_root": str(settings.project_root) if settings.project_root is not None else None,
        "content_prefixes": list(settings.content_prefixes),
    }
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    except OSError as exc:
        raise SettingsError(f"Could not write settings to {path}: {exc}") from exc
