"""Structured log event name constants for the notification batch.

Every key transition in the orchestrator emits a log record with an
``event`` field (passed via ``extra={"event": events.X}``).  In
``LOG_FORMAT=json`` mode the value surfaces as ``extra.event``; in text mode
the message itself is self-describing.

Usage example::

    import logging
    from campusrent.core import events

    logger = logging.getLogger(__name__)

    logger.info("Batch started", extra={"event": events.BATCH_START})
"""

from __future__ import annotations

__all__ = [
    # Batch lifecycle
    "BATCH_START",
    "BATCH_COMPLETE",
    "BATCH_ABORT",
    # Per-search stages
    "SEARCH_NOT_DUE",
    "SEARCH_USER_MISSING",
    "SEARCH_NO_MATCH",
    "SEARCH_NOTIFIED",
    "SEARCH_SIMULATED",
    "SEARCH_SEND_ERROR",
    "SEARCH_ERROR",
    # Trigger
    "TRIGGER_UNAUTHORIZED",
]

# ---------------------------------------------------------------------------
# Batch lifecycle
# ---------------------------------------------------------------------------

#: Emitted once at the start of :func:`~campusrent.orchestrator.runner.run_once`.
BATCH_START: str = "BATCH_START"

#: Emitted once when the batch finishes and logs its summary.
BATCH_COMPLETE: str = "BATCH_COMPLETE"

#: Emitted when the batch cannot run (config error, store unreadable).
BATCH_ABORT: str = "BATCH_ABORT"

# ---------------------------------------------------------------------------
# Per-search stages
# ---------------------------------------------------------------------------

#: Frequency window has not elapsed; record untouched.
SEARCH_NOT_DUE: str = "SEARCH_NOT_DUE"

#: Owning user could not be resolved; record skipped.
SEARCH_USER_MISSING: str = "SEARCH_USER_MISSING"

#: No recent property matched; no email, watermark not advanced.
SEARCH_NO_MATCH: str = "SEARCH_NO_MATCH"

#: Digest sent and ``last_notified`` advanced.
SEARCH_NOTIFIED: str = "SEARCH_NOTIFIED"

#: Dry-run: digest logged instead of sent; watermark not advanced.
SEARCH_SIMULATED: str = "SEARCH_SIMULATED"

#: Digest send failed; watermark not advanced.
SEARCH_SEND_ERROR: str = "SEARCH_SEND_ERROR"

#: Any other per-record failure (lookup, fetch, watermark write).
SEARCH_ERROR: str = "SEARCH_ERROR"

# ---------------------------------------------------------------------------
# Trigger
# ---------------------------------------------------------------------------

#: Trigger endpoint called without the correct bearer secret.
TRIGGER_UNAUTHORIZED: str = "TRIGGER_UNAUTHORIZED"
