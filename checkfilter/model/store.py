"""Item Store and Group Registry.

Both are mutated only from the interactive thread. Workers receive
``ScoringRecord`` snapshots built here and never see these objects.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from ..entries.handles import EntryHandle
from .types import Group, Item, ScoringRecord


class ItemStore:
    """Canonical items plus a side table of non-owning UI handles."""

    def __init__(self) -> None:
        self._items: dict[str, Item] = {}
        self._handles: dict[str, EntryHandle] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def add(self, item: Item, handle: EntryHandle) -> None:
        if item.id in self._items:
            raise ValueError(f"duplicate item id: {item.id}")
        self._items[item.id] = item
        self._handles[item.id] = handle

    def get(self, item_id: str) -> Item | None:
        return self._items.get(item_id)

    def handle(self, item_id: str) -> EntryHandle | None:
        return self._handles.get(item_id)

    def discard(self, item_id: str) -> Item | None:
        """Drop an item; callers go through :meth:`GroupRegistry.remove_item`."""
        self._handles.pop(item_id, None)
        return self._items.pop(item_id, None)

    def snapshot(self, item_ids: Iterable[str]) -> tuple[ScoringRecord, ...]:
        """Build immutable scoring records, refreshing ``is_checked`` from live handles."""
        records: list[ScoringRecord] = []
        for item_id in item_ids:
            item = self._items.get(item_id)
            if item is None:
                continue
            handle = self._handles.get(item_id)
            if handle is not None:
                item.is_checked = bool(handle.is_checked())
            records.append(item.to_record())
        return tuple(records)


class GroupRegistry:
    """Named groups of item ids with per-group label dedup."""

    def __init__(self, store: ItemStore) -> None:
        self.store = store
        self._groups: dict[str, Group] = {}
        self._labels: dict[str, dict[str, str]] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._groups

    def names(self) -> list[str]:
        return list(self._groups)

    def get(self, name: str) -> Group | None:
        return self._groups.get(name)

    def ensure_group(self, name: str) -> Group:
        group = self._groups.get(name)
        if group is None:
            group = Group(name=name)
            self._groups[name] = group
            self._labels[name] = {}
        return group

    def has_label(self, name: str, label_text: str) -> bool:
        return label_text in self._labels.get(name, {})

    def item_id_for_label(self, name: str, label_text: str) -> str | None:
        return self._labels.get(name, {}).get(label_text)

    def add_item(self, item: Item, handle: EntryHandle) -> bool:
        """Insert ``item`` into its group unless the label is already present.

        Returns ``False`` for duplicates; the store is left untouched then.
        """
        group = self.ensure_group(item.group_name)
        labels = self._labels[group.name]
        if item.label_text in labels:
            return False
        self.store.add(item, handle)
        labels[item.label_text] = item.id
        group.item_ids.append(item.id)
        group.display_ids.append(item.id)
        return True

    def remove_item(self, item_id: str) -> None:
        item = self.store.get(item_id)
        if item is None:
            return
        group = self._groups.get(item.group_name)
        if group is not None:
            group.item_ids = [other for other in group.item_ids if other != item_id]
            group.display_ids = [other for other in group.display_ids if other != item_id]
            labels = self._labels[group.name]
            if labels.get(item.label_text) == item_id:
                del labels[item.label_text]
        self.store.discard(item_id)

    def remove_group(self, name: str) -> None:
        group = self._groups.pop(name, None)
        self._labels.pop(name, None)
        if group is None:
            return
        for item_id in group.item_ids:
            self.store.discard(item_id)

    def items(self, name: str) -> list[Item]:
        group = self._groups.get(name)
        if group is None:
            return []
        out: list[Item] = []
        for item_id in group.item_ids:
            item = self.store.get(item_id)
            if item is not None:
                out.append(item)
        return out

    def displayed_items(self, name: str) -> list[Item]:
        group = self._groups.get(name)
        if group is None:
            return []
        items = (self.store.get(item_id) for item_id in group.display_ids)
        return [item for item in items if item is not None]

    def reset_display_order(self, name: str) -> None:
        group = self._groups.get(name)
        if group is not None:
            group.display_ids = list(group.item_ids)

    def set_display_order(self, name: str, leading_ids: Iterable[str]) -> None:
        """Put ``leading_ids`` first (in the given order), remaining ids after in registration order."""
        group = self._groups.get(name)
        if group is None:
            return
        members = set(group.item_ids)
        leading = [item_id for item_id in leading_ids if item_id in members]
        seen = set(leading)
        group.display_ids = leading + [item_id for item_id in group.item_ids if item_id not in seen]

    def bind_search_box(self, name: str, search_box: object) -> None:
        self.ensure_group(name).search_box = search_box

    def bind_clear_button(self, name: str, clear_button: object) -> None:
        self.ensure_group(name).clear_button = clear_button


@dataclass
class FilterContext:
    """Owned registries for one filter instance; nothing here is module-global."""

    store: ItemStore = field(default_factory=ItemStore)
    registry: GroupRegistry = field(init=False)

    def __post_init__(self) -> None:
        self.registry = GroupRegistry(self.store)


__all__ = [
    "FilterContext",
    "GroupRegistry",
    "ItemStore",
]
