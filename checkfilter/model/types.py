"""Domain datatypes for filterable list items and the scoring wire format."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field

from .lexical import build_ngrams, normalize_text, tokenize

_ITEM_IDS = itertools.count(1)


def next_item_id() -> str:
    """Return a process-unique item identifier; identifiers are never reused."""
    return f"item_{next(_ITEM_IDS)}"


@dataclass(frozen=True)
class ScoringRecord:
    """Immutable per-item snapshot handed to scoring workers."""

    id: str
    normalized_text: str
    tokens: tuple[str, ...]
    ngrams: frozenset[str]
    is_checked: bool = False


@dataclass(frozen=True)
class ScoringRequest:
    """One scoring job: the only payload that crosses into a worker."""

    items: tuple[ScoringRecord, ...]
    search_term: str
    score_threshold: float


@dataclass(frozen=True)
class ScoredMatch:
    id: str
    score: float


@dataclass(frozen=True)
class ScoringResponse:
    filtered_items: tuple[ScoredMatch, ...]


@dataclass(frozen=True)
class FieldRecord:
    """Lightweight field data for a paginated entry not yet merged into a group.

    ``template`` is whatever the page source needs to rebuild a live handle
    later (serialized HTML for page documents); nothing is materialized until
    the record is merged.
    """

    group_name: str
    label_text: str
    normalized_text: str
    tokens: tuple[str, ...]
    ngrams: frozenset[str]
    template: str

    @classmethod
    def from_label(cls, group_name: str, label_text: str, template: str) -> FieldRecord:
        return cls(
            group_name=group_name,
            label_text=label_text,
            normalized_text=normalize_text(label_text),
            tokens=tokenize(label_text),
            ngrams=build_ngrams(label_text),
            template=template,
        )


@dataclass
class Item:
    """Canonical mutable state of one entry, owned by :class:`ItemStore`."""

    id: str
    group_name: str
    label_text: str
    normalized_text: str
    tokens: tuple[str, ...]
    ngrams: frozenset[str]
    is_checked: bool = False
    is_visible: bool = True
    is_paginated: bool = False

    @classmethod
    def from_label(cls, group_name: str, label_text: str, *, is_paginated: bool = False) -> Item:
        return cls(
            id=next_item_id(),
            group_name=group_name,
            label_text=label_text,
            normalized_text=normalize_text(label_text),
            tokens=tokenize(label_text),
            ngrams=build_ngrams(label_text),
            is_paginated=is_paginated,
            is_visible=not is_paginated,
        )

    @classmethod
    def from_record(cls, record: FieldRecord) -> Item:
        """Build a paginated item reusing features computed on the sweep thread."""
        return cls(
            id=next_item_id(),
            group_name=record.group_name,
            label_text=record.label_text,
            normalized_text=record.normalized_text,
            tokens=record.tokens,
            ngrams=record.ngrams,
            is_visible=False,
            is_paginated=True,
        )

    def to_record(self) -> ScoringRecord:
        return ScoringRecord(
            id=self.id,
            normalized_text=self.normalized_text,
            tokens=self.tokens,
            ngrams=self.ngrams,
            is_checked=self.is_checked,
        )


@dataclass
class Group:
    """Named filterable list; ``item_ids`` keeps registration/merge order."""

    name: str
    item_ids: list[str] = field(default_factory=list)
    display_ids: list[str] = field(default_factory=list)
    search_box: object | None = None
    clear_button: object | None = None


__all__ = [
    "FieldRecord",
    "Group",
    "Item",
    "ScoredMatch",
    "ScoringRecord",
    "ScoringRequest",
    "ScoringResponse",
    "next_item_id",
]
