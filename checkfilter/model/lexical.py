"""Lexical features derived from list labels.

Labels are folded once at registration time so scoring workers only compare
prebuilt strings and sets.
"""

from __future__ import annotations

NGRAM_SIZES = (2, 3)
QUERY_NGRAM_SIZE = 2


def normalize_text(text: str) -> str:
    """Return the lowercase, trimmed form used for exact/prefix/substring checks."""
    return text.lower().strip()


def tokenize(text: str) -> tuple[str, ...]:
    """Split lowercase text on runs of whitespace."""
    return tuple(text.lower().split())


def build_ngrams(text: str, sizes: tuple[int, ...] = NGRAM_SIZES) -> frozenset[str]:
    """Collect every contiguous substring of the given sizes from lowercase ``text``."""
    folded = text.lower()
    grams: set[str] = set()
    for size in sizes:
        for start in range(len(folded) - size + 1):
            grams.add(folded[start : start + size])
    return frozenset(grams)


def query_ngrams(normalized_query: str) -> frozenset[str]:
    """Return the set of 2-grams of an already normalized query."""
    return build_ngrams(normalized_query, sizes=(QUERY_NGRAM_SIZE,))


__all__ = [
    "NGRAM_SIZES",
    "QUERY_NGRAM_SIZE",
    "build_ngrams",
    "normalize_text",
    "query_ngrams",
    "tokenize",
]
