"""Entry handle protocols and the in-memory implementation.

HTML-backed entries live in :mod:`checkfilter.entries.html` and are imported
explicitly so the core stays free of parser imports.
"""

from .handles import EntryHandle, MemoryEntry, MemorySearchBox, PageEntry, SearchBox

__all__ = [
    "EntryHandle",
    "MemoryEntry",
    "MemorySearchBox",
    "PageEntry",
    "SearchBox",
]
