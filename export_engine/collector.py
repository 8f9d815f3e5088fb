"""
Asset discovery under a profile's export roots.

The engine treats discovery as an external collaborator behind the
AssetCollector protocol. FolderAssetCollector is the default implementation:
it enumerates files under each export root in a deterministic manner. It
performs no writes and never deletes.

Policy
------
- Symlinks/reparse points are skipped.
- Enumeration order is deterministic: directory names and file names are sorted.
- Editor sidecar files (``.meta``) and tooling directories are excluded.
- Export roots that cannot be placed inside the project are skipped.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from .data_models import DiscoveredAsset, Profile
from .paths import ProjectLayout, normalize_project_path

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED_DIRECTORY_NAMES: frozenset[str] = frozenset(
    {
        ".git",
        ".vs",
        ".vscode",
        ".idea",
        "__pycache__",
    }
)

DEFAULT_EXCLUDED_SUFFIXES: frozenset[str] = frozenset({".meta"})


class AssetCollector(Protocol):
    """Discovers the assets under a single profile's own export roots."""

    def scan(self, profile: Profile) -> tuple[DiscoveredAsset, ...]:
        """
        Scan a profile's export roots.

        Parameters
        ----------
        profile:
            Profile to scan. Included profiles are not followed; the caller
            scans them separately.

        Returns
        -------
        tuple[DiscoveredAsset, ...]
            Assets in deterministic order.
        """
        ...


@dataclass(frozen=True, slots=True)
class FolderAssetCollector:
    """
    AssetCollector that walks export roots on disk.

    Attributes
    ----------
    layout:
        Project layout; ``layout.project_root`` must be set.
    excluded_directory_names:
        Directory names excluded from traversal anywhere in the tree.
    excluded_suffixes:
        File suffixes (lower-case, with dot) that are never reported.
    """

    layout: ProjectLayout
    excluded_directory_names: frozenset[str] = field(default=DEFAULT_EXCLUDED_DIRECTORY_NAMES)
    excluded_suffixes: frozenset[str] = field(default=DEFAULT_EXCLUDED_SUFFIXES)

    def scan(self, profile: Profile) -> tuple[DiscoveredAsset, ...]:
        if self.layout.project_root is None:
            raise ValueError("FolderAssetCollector requires a project root.")
        project_root = Path(self.layout.project_root).resolve(strict=True)

        seen: set[str] = set()
        assets: list[DiscoveredAsset] = []
        for raw_root in profile.export_roots:
            relative_root = normalize_project_path(raw_root, self.layout)
            if relative_root is None:
                logger.debug("Skipping export root outside project: %r", raw_root)
                continue
            absolute_root = project_root / relative_root
            if not absolute_root.is_dir():
                logger.debug("Skipping missing export root: %s", absolute_root)
                continue
            for asset in self._walk(project_root, absolute_root, profile.profile_id):
                key = asset.path.casefold()
                if key not in seen:
                    seen.add(key)
                    assets.append(asset)
        return tuple(assets)

    def _walk(self, project_root: Path, folder: Path, profile_id: str) -> list[DiscoveredAsset]:
        out: list[DiscoveredAsset] = []
        for directory_path, directory_names, file_names in os.walk(
            folder,
            topdown=True,
            followlinks=False,
        ):
            directory_names[:] = [
                name for name in directory_names if name not in self.excluded_directory_names
            ]
            directory_names.sort()
            file_names.sort()

            current_directory = Path(directory_path)
            for file_name in file_names:
                absolute_path = current_directory / file_name
                if absolute_path.suffix.lower() in self.excluded_suffixes:
                    continue
                if absolute_path.is_symlink():
                    continue
                try:
                    size = int(absolute_path.stat().st_size)
                except OSError as exc:
                    logger.warning("Failed to stat %s: %s", absolute_path, exc)
                    continue
                relative = absolute_path.relative_to(project_root).as_posix()
                out.append(
                    DiscoveredAsset(path=relative, size_bytes=size, source_profile_id=profile_id)
                )
        return out
