"""Checked-state persistence across searches, rebuilds, and tag filters."""

from .cache import clear_checked_states, load_checked_states, save_checked_states
from .sync import StateSynchronizer

__all__ = [
    "StateSynchronizer",
    "clear_checked_states",
    "load_checked_states",
    "save_checked_states",
]
