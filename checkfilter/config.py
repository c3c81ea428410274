"""Persistent JSON config helpers.

Stores scoring threshold, debounce windows, worker-pool size, and debug
preference. All access is defensive: malformed or missing config falls back
to defaults.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path

from platformdirs import user_config_dir

from .search.pool import default_pool_size
from .search.scorer import DEFAULT_SCORE_THRESHOLD

APP_NAME = "checkfilter"
CONFIG_FILENAME = "config.json"
DEFAULT_CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
CONFIG_PATH = DEFAULT_CONFIG_PATH

DEFAULT_SEARCH_DEBOUNCE_MS = 150
DEFAULT_SYNC_DEBOUNCE_MS = 50


@dataclass(frozen=True)
class FilterSettings:
    """Typed view over the config file with defaults for every key."""

    score_threshold: float = DEFAULT_SCORE_THRESHOLD
    search_debounce_ms: int = DEFAULT_SEARCH_DEBOUNCE_MS
    sync_debounce_ms: int = DEFAULT_SYNC_DEBOUNCE_MS
    worker_pool_size: int = field(default_factory=default_pool_size)
    persist_checked_states: bool = False
    debug: bool = False

    @property
    def search_debounce_seconds(self) -> float:
        return self.search_debounce_ms / 1000.0

    @property
    def sync_debounce_seconds(self) -> float:
        return self.sync_debounce_ms / 1000.0


def load_config() -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except Exception:
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict[str, object]) -> None:
    """Persist config data as pretty-printed JSON.

    Any filesystem/serialization error is ignored to keep runtime behavior
    non-fatal when config cannot be written.
    """
    try:
        CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_PATH.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except Exception:
        pass


def _coerce_unit_float(value: object, default: float) -> float:
    """Accept numbers in ``[0, 1]``; booleans and anything else fall back."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if value < 0 or value > 1:
        return default
    return float(value)


def _coerce_nonnegative_int(value: object, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return default
    return max(0, value)


def _coerce_positive_int(value: object, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        return default
    return value


def _coerce_bool(value: object, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def load_settings() -> FilterSettings:
    """Build :class:`FilterSettings` from the config file, key by key."""
    data = load_config()
    defaults = FilterSettings()
    return FilterSettings(
        score_threshold=_coerce_unit_float(data.get("score_threshold"), defaults.score_threshold),
        search_debounce_ms=_coerce_nonnegative_int(data.get("search_debounce_ms"), defaults.search_debounce_ms),
        sync_debounce_ms=_coerce_nonnegative_int(data.get("sync_debounce_ms"), defaults.sync_debounce_ms),
        worker_pool_size=_coerce_positive_int(data.get("worker_pool_size"), defaults.worker_pool_size),
        persist_checked_states=_coerce_bool(data.get("persist_checked_states"), defaults.persist_checked_states),
        debug=_coerce_bool(data.get("debug"), defaults.debug),
    )


def save_settings(settings: FilterSettings) -> None:
    """Merge ``settings`` into the existing config object and persist it."""
    config = load_config()
    config.update(asdict(settings))
    save_config(config)


__all__ = [
    "APP_NAME",
    "CONFIG_PATH",
    "FilterSettings",
    "load_config",
    "load_settings",
    "save_config",
    "save_settings",
]
