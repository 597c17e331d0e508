"""Observability package."""

from repodocs.observability.metrics import (
    SYNC_RUNS,
    SYNC_FILES,
    SYNC_DURATION,
    EMBEDDING_BATCHES,
    RUNNER_CALLS,
    RUNNER_CONTINUATIONS,
    VERIFICATION_SCORE,
    WEBHOOK_EVENTS,
    get_metrics,
)

__all__ = [
    "SYNC_RUNS",
    "SYNC_FILES",
    "SYNC_DURATION",
    "EMBEDDING_BATCHES",
    "RUNNER_CALLS",
    "RUNNER_CONTINUATIONS",
    "VERIFICATION_SCORE",
    "WEBHOOK_EVENTS",
    "get_metrics",
]
