"""
Path normalization and change relevance.

This module is the single choke point for deciding whether a changed path
falls under a profile's export roots. It performs no filesystem access and
never raises for malformed input: anything it cannot place inside the project
is simply "not relevant".

Policy
------
- Backslashes become '/', repeated separators collapse, '.' and '..' segments
  are folded, trailing separators are stripped.
- Absolute paths are made project-relative by stripping the project root
  (case-insensitive). Paths outside the project root are rejected.
- Project-relative paths must start with a content prefix ("Assets",
  "Packages" by default), matched case-insensitively.
- Root comparison is case-insensitive: a change is relevant when it equals a
  root or starts with the root plus exactly one '/'.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import Iterable, Iterator

DEFAULT_CONTENT_PREFIXES: tuple[str, ...] = ("Assets", "Packages")

_DRIVE_ABSOLUTE = re.compile(r"^[A-Za-z]:/")


@dataclass(frozen=True, slots=True)
class ProjectLayout:
    """
    Describes where project content lives.

    Attributes
    ----------
    project_root:
        Absolute project directory used to relativize absolute paths. When
        None, absolute paths are never relevant.
    content_prefixes:
        Top-level folder names that project-relative paths must start with.
        An empty tuple accepts any project-relative path.
    """

    project_root: str | PurePath | None = None
    content_prefixes: tuple[str, ...] = DEFAULT_CONTENT_PREFIXES


DEFAULT_LAYOUT = ProjectLayout()


def _clean(path: object) -> str | None:
    if not isinstance(path, (str, PurePath)):
        return None
    text = str(path).strip().replace("\\", "/")
    if not text:
        return None
    cleaned = posixpath.normpath(text)
    if cleaned in {".", "/", "//"}:
        return None
    return cleaned.rstrip("/") or None


def _is_absolute(path: str) -> bool:
    return path.startswith("/") or bool(_DRIVE_ABSOLUTE.match(path))


def _relativize(path: str, project_root: str | PurePath | None) -> str | None:
    root = _clean(project_root)
    if root is None:
        return None
    # Compare per segment; casefold may change a segment's length.
    root_parts = root.split("/")
    path_parts = path.split("/")
    if len(path_parts) <= len(root_parts):
        return None
    for root_part, path_part in zip(root_parts, path_parts):
        if root_part.casefold() != path_part.casefold():
            return None
    return "/".join(path_parts[len(root_parts) :])


def normalize_project_path(path: object, layout: ProjectLayout = DEFAULT_LAYOUT) -> str | None:
    """
    Normalize a changed path to a project-relative form.

    Parameters
    ----------
    path:
        Raw path from the host (any casing or separator, absolute or
        project-relative).
    layout:
        Project layout used to relativize and validate the path.

    Returns
    -------
    str | None
        Project-relative path without a trailing separator, or None when the
        path is empty, malformed, or outside the project content.
    """
    cleaned = _clean(path)
    if cleaned is None:
        return None

    if _is_absolute(cleaned):
        relative = _relativize(cleaned, layout.project_root)
        if relative is None:
            return None
    else:
        relative = cleaned

    if relative == ".." or relative.startswith("../"):
        return None

    if layout.content_prefixes:
        head = relative.split("/", 1)[0].casefold()
        if head not in {prefix.casefold() for prefix in layout.content_prefixes}:
            return None
    return relative


def normalize_root(root: object, layout: ProjectLayout = DEFAULT_LAYOUT) -> str | None:
    """
    Normalize an export root for prefix comparison.

    Returns
    -------
    str | None
        Project-relative root with exactly one trailing '/', or None when the
        root cannot be placed inside the project.
    """
    normalized = normalize_project_path(root, layout)
    if normalized is None:
        return None
    return normalized + "/"


def _normalized_roots(export_roots: Iterable[object] | None, layout: ProjectLayout) -> list[str]:
    if not export_roots or isinstance(export_roots, (str, bytes)):
        return []
    roots: list[str] = []
    for raw in export_roots:
        root = normalize_root(raw, layout)
        if root is not None:
            roots.append(root.casefold())
    return roots


def _iter_relevant(
    export_roots: Iterable[object] | None,
    changed_paths: Iterable[object] | None,
    layout: ProjectLayout,
) -> Iterator[str]:
    roots = _normalized_roots(export_roots, layout)
    if not roots or not changed_paths or isinstance(changed_paths, (str, bytes)):
        return

    for raw in changed_paths:
        changed = normalize_project_path(raw, layout)
        if changed is None:
            continue
        folded = changed.casefold()
        if any(folded == root[:-1] or folded.startswith(root) for root in roots):
            yield changed


def relevant_paths(
    export_roots: Iterable[object] | None,
    changed_paths: Iterable[object] | None,
    layout: ProjectLayout = DEFAULT_LAYOUT,
) -> tuple[str, ...]:
    """
    Return the normalized changed paths that fall under any export root.

    Parameters
    ----------
    export_roots:
        Export roots declared by a profile.
    changed_paths:
        Raw changed paths reported by the host.
    layout:
        Project layout used for normalization.

    Returns
    -------
    tuple[str, ...]
        Matching paths in input order. Empty when nothing is relevant.
    """
    return tuple(_iter_relevant(export_roots, changed_paths, layout))


def is_change_relevant(
    export_roots: Iterable[object] | None,
    changed_paths: Iterable[object] | None,
    layout: ProjectLayout = DEFAULT_LAYOUT,
) -> bool:
    """
    Return True if at least one changed path falls under an export root.

    Notes
    -----
    Pure function. Malformed or empty inputs are "not relevant".
    """
    return next(_iter_relevant(export_roots, changed_paths, layout), None) is not None
