"""Layered lexical scorer run inside worker threads.

Heuristics, strongest first: exact, prefix, substring, token overlap, then a
2-gram fuzzy fallback. Cheap enough for a linear scan per keystroke; no edit
distance.
"""

from __future__ import annotations

from collections.abc import Iterable

from ..model.lexical import normalize_text, query_ngrams
from ..model.types import ScoredMatch, ScoringRecord, ScoringRequest, ScoringResponse

DEFAULT_SCORE_THRESHOLD = 0.3
CHECKED_SCORE = 1.1
EXACT_SCORE = 1.0
PREFIX_SCORE = 0.9
SUBSTRING_SCORE = 0.7
TOKEN_OVERLAP_WEIGHT = 0.8
FUZZY_FALLBACK_BELOW = 0.5
NGRAM_WEIGHT = 0.6


def score_record(record: ScoringRecord, query: str, query_tokens: list[str], query_grams: frozenset[str]) -> float:
    """Score one unchecked record against an already normalized, non-empty query."""
    text = record.normalized_text
    score = 0.0
    if text == query:
        score = EXACT_SCORE
    elif text.startswith(query):
        score = PREFIX_SCORE
    elif query in text:
        score = SUBSTRING_SCORE

    if len(query_tokens) > 1:
        matched = sum(1 for token in query_tokens if any(token in item_token for item_token in record.tokens))
        score = max(score, matched / len(query_tokens) * TOKEN_OVERLAP_WEIGHT)

    if score < FUZZY_FALLBACK_BELOW:
        matches = sum(1 for gram in query_grams if gram in record.ngrams)
        score = max(score, matches / max(len(query_grams), 1) * NGRAM_WEIGHT)

    return score


def score(
    items: Iterable[ScoringRecord],
    search_term: str,
    threshold: float = DEFAULT_SCORE_THRESHOLD,
) -> list[ScoredMatch]:
    """Return matches sorted by descending score; ties keep input order.

    An empty term returns every item with score 0 ("show all"). Checked
    items are always returned with :data:`CHECKED_SCORE` regardless of the
    threshold.
    """
    query = normalize_text(search_term)
    if not query:
        return [ScoredMatch(id=record.id, score=0.0) for record in items]

    query_tokens = query.split()
    query_grams = query_ngrams(query)

    results: list[ScoredMatch] = []
    for record in items:
        if record.is_checked:
            results.append(ScoredMatch(id=record.id, score=CHECKED_SCORE))
            continue
        value = score_record(record, query, query_tokens, query_grams)
        if value > threshold:
            results.append(ScoredMatch(id=record.id, score=value))

    results.sort(key=lambda match: -match.score)
    return results


def score_request(request: ScoringRequest) -> ScoringResponse:
    """Worker entry point: request snapshot in, plain result tuple out."""
    matches = score(request.items, request.search_term, request.score_threshold)
    return ScoringResponse(filtered_items=tuple(matches))


__all__ = [
    "CHECKED_SCORE",
    "DEFAULT_SCORE_THRESHOLD",
    "score",
    "score_record",
    "score_request",
]
