"""
Module entrypoint for the pkgexport CLI.

This file exists so that `python -m pkgexport ...` works consistently in all
environments, including when the console-script wrapper is not installed.
"""

from __future__ import annotations

from pkgexport.cli import main


def _run() -> int:
    """
    Execute the command line interface.

    Returns
    -------
    int
        Process exit code.
    """
    return main()


if __name__ == "__main__":
    raise SystemExit(_run())
