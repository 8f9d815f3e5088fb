"""GUI adapter layer.

This package provides thin Qt-shaped adapters over the export engine.

Notes
-----
Adapters exist to:
- keep panel code free of engine internals,
- supply the host periodic hook (QTimer) the debounce scheduler polls,
- translate engine callbacks and errors into Qt signals.
"""
