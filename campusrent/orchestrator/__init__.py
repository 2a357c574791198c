"""Saved-search notification batch: frequency gate, per-search loop and runner."""

from campusrent.orchestrator.batch import (
    BatchStats,
    SearchOutcome,
    process_saved_search,
    run_batch,
)
from campusrent.orchestrator.frequency import is_due
from campusrent.orchestrator.runner import run_once

__all__ = [
    "BatchStats",
    "SearchOutcome",
    "is_due",
    "process_saved_search",
    "run_batch",
    "run_once",
]
