"""Session cache for captured checked states.

Lives in the platform cache directory; like the config file, reads fall back
to an empty mapping and write errors are ignored.
"""

from __future__ import annotations

import json
from pathlib import Path

from platformdirs import user_cache_dir

from ..config import APP_NAME

CACHE_FILENAME = "checked_states.json"
CACHE_PATH = Path(user_cache_dir(APP_NAME, appauthor=False)) / CACHE_FILENAME


def load_checked_states() -> dict[str, dict[str, bool]]:
    """Load ``group -> label -> checked``; malformed entries are dropped."""
    try:
        data = json.loads(CACHE_PATH.read_text(encoding="utf-8"))
    except Exception:
        return {}
    if not isinstance(data, dict):
        return {}

    states: dict[str, dict[str, bool]] = {}
    for group_name, raw_states in data.items():
        if not isinstance(group_name, str) or not isinstance(raw_states, dict):
            continue
        states[group_name] = {
            label: checked
            for label, checked in raw_states.items()
            if isinstance(label, str) and label and isinstance(checked, bool)
        }
    return states


def save_checked_states(states: dict[str, dict[str, bool]]) -> None:
    try:
        CACHE_PATH.parent.mkdir(parents=True, exist_ok=True)
        CACHE_PATH.write_text(json.dumps(states, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    except Exception:
        pass


def clear_checked_states() -> None:
    try:
        CACHE_PATH.unlink()
    except OSError:
        pass


__all__ = [
    "CACHE_PATH",
    "clear_checked_states",
    "load_checked_states",
    "save_checked_states",
]
