"""Scoring package exports: the worker-side scorer and the pool that runs it."""

from __future__ import annotations

from .pool import PoolStats, WorkerPool, WorkerTask, default_pool_size
from .scorer import CHECKED_SCORE, DEFAULT_SCORE_THRESHOLD, score, score_record, score_request

__all__ = [
    "CHECKED_SCORE",
    "DEFAULT_SCORE_THRESHOLD",
    "PoolStats",
    "WorkerPool",
    "WorkerTask",
    "default_pool_size",
    "score",
    "score_record",
    "score_request",
]
