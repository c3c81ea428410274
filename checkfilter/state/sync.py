"""Checked-state capture/restore and external tag reconciliation."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping

from ..entries.handles import EntryHandle
from ..model.store import FilterContext

logger = logging.getLogger(__name__)


class StateSynchronizer:
    """Keeps per-group ``label -> checked`` maps that outlive rendered entries.

    Tag reconciliation writes are queued and applied in one
    :meth:`flush_updates` pass, followed by a single sync-complete callback.
    """

    def __init__(
        self,
        context: FilterContext,
        *,
        on_checked_changed: Callable[[str, str, bool], None] | None = None,
        on_sync_complete: Callable[[float, int], None] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.context = context
        self.on_checked_changed = on_checked_changed
        self.on_sync_complete = on_sync_complete
        self._clock = clock
        self._states: dict[str, dict[str, bool]] = {}
        self._pending: dict[str, bool] = {}
        self._flush_scheduled = False

    @property
    def has_pending_updates(self) -> bool:
        return self._flush_scheduled

    def states(self, group_name: str) -> dict[str, bool]:
        return dict(self._states.get(group_name, {}))

    def export_states(self) -> dict[str, dict[str, bool]]:
        return {name: dict(states) for name, states in self._states.items()}

    def import_states(self, states: Mapping[str, Mapping[str, bool]]) -> None:
        for group_name, group_states in states.items():
            self._states.setdefault(group_name, {}).update(group_states)

    def capture_state(self, group_name: str) -> dict[str, bool]:
        """Record the live checked state of every item in the group, hidden ones included."""
        registry = self.context.registry
        store = self.context.store
        group_states = self._states.setdefault(group_name, {})
        for item in registry.items(group_name):
            handle = store.handle(item.id)
            checked = bool(handle.is_checked()) if handle is not None else item.is_checked
            item.is_checked = checked
            group_states[item.label_text] = checked
        return dict(group_states)

    def capture_all(self) -> None:
        for group_name in self.context.registry.names():
            self.capture_state(group_name)

    def restore_entry(self, group_name: str, handle: EntryHandle) -> bool:
        """Re-check one rendered entry if its label was recorded as checked."""
        group_states = self._states.get(group_name)
        if not group_states:
            return False
        label = handle.get_label()
        if not label or not group_states.get(label.strip()):
            return False
        handle.set_checked(True)
        return True

    def restore_state(self, group_name: str, handles: Iterable[EntryHandle] | None = None) -> int:
        """Reapply recorded ``True`` states to ``handles`` (default: the group's current handles)."""
        registry = self.context.registry
        store = self.context.store
        if handles is None:
            current = (store.handle(item.id) for item in registry.items(group_name))
            handles = [handle for handle in current if handle is not None]

        restored = 0
        for handle in handles:
            if not self.restore_entry(group_name, handle):
                continue
            restored += 1
            label = (handle.get_label() or "").strip()
            item_id = registry.item_id_for_label(group_name, label)
            item = store.get(item_id) if item_id is not None else None
            if item is not None and not item.is_checked:
                item.is_checked = True
                if self.on_checked_changed is not None:
                    self.on_checked_changed(group_name, label, True)
        return restored

    def reconcile_with_external_tags(
        self,
        active_values: Mapping[str, Iterable[str]],
        tag_labels: Iterable[str] = (),
    ) -> int:
        """Queue checked-state writes matching an external tag filter.

        Items exposing a ``(field, value)`` key whose field is active follow the
        active value set; every other item is checked iff its label appears in
        ``tag_labels``. Returns the number of queued writes.
        """
        active = {field: {value.lower() for value in values} for field, values in active_values.items()}
        active_tags = {text.strip().lower() for text in tag_labels if text and text.strip()}
        registry = self.context.registry
        store = self.context.store

        queued = 0
        decided: dict[tuple[str, str], bool] = {}
        for group_name in registry.names():
            for item in registry.items(group_name):
                handle = store.handle(item.id)
                if handle is None:
                    continue
                key = handle.filter_key()
                if key is not None and key[0] in active:
                    is_active = key[1].lower() in active[key[0]]
                else:
                    is_active = item.label_text.lower() in active_tags
                self._pending[item.id] = is_active
                decided[(group_name, item.label_text)] = is_active
                queued += 1

        # Labels without a live entry have no filter key; match them by text.
        for group_name, group_states in self._states.items():
            for label in list(group_states):
                if (group_name, label) in decided:
                    group_states[label] = decided[(group_name, label)]
                    continue
                folded = label.lower()
                group_states[label] = folded in active_tags or any(folded in values for values in active.values())

        self._flush_scheduled = True
        return queued

    def flush_updates(self, force: bool = False) -> int:
        """Apply queued writes in one pass and emit one sync-complete callback."""
        if not self._flush_scheduled and not force:
            return 0
        store = self.context.store
        updated = len(self._pending)
        for item_id, checked in self._pending.items():
            item = store.get(item_id)
            handle = store.handle(item_id)
            if item is None or handle is None:
                continue
            handle.set_checked(checked)
            if item.is_checked != checked:
                item.is_checked = checked
                if self.on_checked_changed is not None:
                    self.on_checked_changed(item.group_name, item.label_text, checked)
        self._pending.clear()
        self._flush_scheduled = False
        logger.debug("checked-state sync flushed %d entries", updated)
        if self.on_sync_complete is not None:
            self.on_sync_complete(self._clock(), updated)
        return updated


__all__ = ["StateSynchronizer"]
