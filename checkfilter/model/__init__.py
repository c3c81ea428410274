"""Item/group data model shared by the controller, merger, and workers."""

from .lexical import build_ngrams, normalize_text, query_ngrams, tokenize
from .store import FilterContext, GroupRegistry, ItemStore
from .types import (
    FieldRecord,
    Group,
    Item,
    ScoredMatch,
    ScoringRecord,
    ScoringRequest,
    ScoringResponse,
    next_item_id,
)

__all__ = [
    "FieldRecord",
    "FilterContext",
    "Group",
    "GroupRegistry",
    "Item",
    "ItemStore",
    "ScoredMatch",
    "ScoringRecord",
    "ScoringRequest",
    "ScoringResponse",
    "build_ngrams",
    "next_item_id",
    "normalize_text",
    "query_ngrams",
    "tokenize",
]
