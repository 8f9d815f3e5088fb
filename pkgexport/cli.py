"""
Command-line interface for the export engine.

Notes
-----
The CLI is intentionally thin. It parses arguments and delegates to engine
modules. It never writes to the project.

Commands
--------
- relevant: classify changed paths against export roots.
- resolve:  flatten an include graph given as edges and report cycles.
- scan:     list the assets discovered under export roots.

Exit codes
----------
0 on success (relevant / no cycles), 1 for a negative answer (not relevant /
cycles found), 2 for usage or domain errors.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from export_engine.collector import FolderAssetCollector
from export_engine.composite import format_cycle, resolve_included_profiles
from export_engine.data_models import Profile
from export_engine.errors import ExportEngineError
from export_engine.paths import ProjectLayout, relevant_paths
from export_engine.settings import EngineSettings, load_engine_settings, settings_path


def build_parser() -> argparse.ArgumentParser:
    """
    Build and return the top-level argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Configured parser.
    """
    parser = argparse.ArgumentParser(
        prog="pkgexport",
        description="Export profile invalidation and bundling tools",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_layout_args(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--settings",
            type=Path,
            default=None,
            help="Engine settings JSON. Defaults to the per-user settings file.",
        )
        p.add_argument(
            "--project-root",
            type=Path,
            default=None,
            help="Absolute project directory (overrides settings).",
        )
        p.add_argument(
            "--prefix",
            action="append",
            default=[],
            help="Content prefix such as Assets. Repeatable (overrides settings).",
        )

    relevant_p = sub.add_parser(
        "relevant",
        help="Report which changed paths fall under the given export roots",
    )
    relevant_p.add_argument(
        "--root", action="append", default=[], required=True, help="Export root. Repeatable."
    )
    relevant_p.add_argument("paths", nargs="*", help="Changed paths")
    add_layout_args(relevant_p)

    resolve_p = sub.add_parser(
        "resolve",
        help="Flatten a profile include graph and report cycles",
    )
    resolve_p.add_argument("root", help="Profile id to resolve")
    resolve_p.add_argument(
        "--edge",
        action="append",
        default=[],
        help="Include edge PARENT:CHILD. Repeatable; order is include order.",
    )
    resolve_p.add_argument(
        "--missing",
        action="append",
        default=[],
        help="Profile id to treat as deleted. Repeatable.",
    )

    scan_p = sub.add_parser(
        "scan",
        help="List assets discovered under export roots",
    )
    scan_p.add_argument(
        "--root", action="append", default=[], required=True, help="Export root. Repeatable."
    )
    add_layout_args(scan_p)

    return parser


def _layout_from_args(args: argparse.Namespace) -> ProjectLayout:
    path = args.settings if args.settings is not None else settings_path()
    settings: EngineSettings = load_engine_settings(path)
    project_root = args.project_root if args.project_root is not None else settings.project_root
    prefixes = tuple(args.prefix) if args.prefix else settings.content_prefixes
    return ProjectLayout(project_root=project_root, content_prefixes=prefixes)


def _parse_edges(edges: list[str]) -> dict[str, list[str]]:
    graph: dict[str, list[str]] = {}
    for raw in edges:
        parent, sep, child = raw.partition(":")
        if not sep or not parent.strip() or not child.strip():
            raise ValueError(f"Invalid edge {raw!r}; expected PARENT:CHILD")
        graph.setdefault(parent.strip(), []).append(child.strip())
        graph.setdefault(child.strip(), [])
    return graph


def _run_relevant(args: argparse.Namespace) -> int:
    layout = _layout_from_args(args)
    matched = relevant_paths(args.root, args.paths, layout)
    for path in matched:
        print(path)
    print("relevant" if matched else "not relevant")
    return 0 if matched else 1


def _run_resolve(args: argparse.Namespace) -> int:
    graph = _parse_edges(args.edge)
    graph.setdefault(args.root, [])
    deleted = set(args.missing)
    profiles = {
        pid: Profile(profile_id=pid, included_ids=tuple(children))
        for pid, children in graph.items()
        if pid not in deleted
    }
    if args.root not in profiles:
        raise ValueError(f"Root profile {args.root!r} is marked missing")

    result = resolve_included_profiles(profiles[args.root], profiles.get)
    print(f"resolved: {', '.join(result.resolved) if result.resolved else '(none)'}")
    for cycle in result.cycles:
        print(f"cycle: {format_cycle(cycle, profiles.get)}")
    if result.missing:
        print(f"missing: {', '.join(result.missing)}")
    return 1 if result.has_cycles else 0


def _run_scan(args: argparse.Namespace) -> int:
    layout = _layout_from_args(args)
    if layout.project_root is None:
        raise ValueError("scan requires --project-root or a project_root in settings")
    collector = FolderAssetCollector(layout=layout)
    assets = collector.scan(Profile(profile_id="cli", export_roots=tuple(args.root)))
    for asset in assets:
        print(f"{asset.path}\t{asset.size_bytes}")
    print(f"{len(assets)} asset(s)")
    return 0


def main(argv: list[str] | None = None) -> int:
    """
    CLI entry point.

    Parameters
    ----------
    argv:
        Optional argument vector. If None, argparse uses sys.argv.

    Returns
    -------
    int
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    handlers = {
        "relevant": _run_relevant,
        "resolve": _run_resolve,
        "scan": _run_scan,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 0

    try:
        return handler(args)
    except (ExportEngineError, OSError, ValueError) as exc:
        print(f"ERROR: {exc}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
