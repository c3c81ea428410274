"""Handle protocols for the list entries and inputs owned by the host UI.

The filtering core never touches a concrete widget toolkit; it only asks a
handle for its label, reads or writes its checked state, and toggles its
visibility.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class EntryHandle(Protocol):
    """One selectable list entry rendered by the host UI."""

    def get_label(self) -> str | None: ...

    def is_checked(self) -> bool: ...

    def set_checked(self, checked: bool) -> None: ...

    def show(self) -> None: ...

    def hide(self) -> None: ...

    def filter_key(self) -> tuple[str, str] | None:
        """Return the ``(field, value)`` pair an external tag filter uses, if any."""
        ...


class PageEntry(EntryHandle, Protocol):
    """Entry discovered on a fetched page, able to serialize itself for later."""

    group_name: str

    def template(self) -> str: ...


class SearchBox(Protocol):
    def get_value(self) -> str: ...

    def set_value(self, value: str) -> None: ...


@dataclass
class MemoryEntry:
    """Plain in-memory entry used by the CLI and by embedders without a DOM."""

    label: str
    group_name: str = ""
    checked: bool = False
    visible: bool = True
    field: str | None = None
    value: str | None = None

    def get_label(self) -> str | None:
        return self.label

    def is_checked(self) -> bool:
        return self.checked

    def set_checked(self, checked: bool) -> None:
        self.checked = bool(checked)

    def show(self) -> None:
        self.visible = True

    def hide(self) -> None:
        self.visible = False

    def filter_key(self) -> tuple[str, str] | None:
        if self.field and self.value:
            return self.field, self.value
        return None

    def template(self) -> str:
        return self.label

    @classmethod
    def from_template(cls, template: str) -> MemoryEntry:
        return cls(label=template, visible=False)


@dataclass
class MemorySearchBox:
    value: str = ""

    def get_value(self) -> str:
        return self.value

    def set_value(self, value: str) -> None:
        self.value = value


__all__ = [
    "EntryHandle",
    "MemoryEntry",
    "MemorySearchBox",
    "PageEntry",
    "SearchBox",
]
