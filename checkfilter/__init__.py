"""Public package surface for checkfilter.

Exports the controller and its notification hooks; ``main`` is imported
lazily so library use does not pull in argparse setup.
"""

from __future__ import annotations

from .controller import FilterCallbacks, FilterController
from .entries.handles import EntryHandle, MemoryEntry, MemorySearchBox


def main(*args, **kwargs):
    """Lazily import CLI entrypoint to keep package imports lightweight."""
    from .cli import main as _main

    return _main(*args, **kwargs)


__all__ = [
    "EntryHandle",
    "FilterCallbacks",
    "FilterController",
    "MemoryEntry",
    "MemorySearchBox",
    "main",
]
