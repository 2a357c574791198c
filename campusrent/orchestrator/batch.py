"""Saved-search notification batch: gate → resolve → match → send → record.

This module implements the per-search processing loop for one batch
invocation.  Each saved search with email notifications enabled goes through
the following stages:

1. **Gate**: skip the search unless :func:`~campusrent.orchestrator.frequency.is_due`.
2. **Resolve**: look up the owner's contact; skip if the user is unknown.
3. **Match**: fetch the newest ``window`` properties with the search's
   equality and range constraints pushed down, then re-apply the Filter
   Engine in :attr:`~campusrent.filters.engine.FilterScope.NOTIFICATION`
   scope.
4. **Send**: deliver one digest with every matching property.
5. **Record**: set ``last_notified`` to the batch start time, only after a
   successful send.  A dry-run digest is logged but never recorded, so a
   later live run still delivers it.

A search with no matches gets no email and keeps its watermark, so re-running
the batch against an unchanged catalog is a no-op.

Failures are **isolated** per search: a lookup, fetch, send or watermark
failure is caught, logged with the search id and counted; the batch moves on.

Searches are processed sequentially so writes to the single ``aiosqlite``
connection stay serialised.

Typical usage::

    stats = await run_batch(
        await searches.fetch_active(),
        properties=properties,
        users=users,
        searches=searches,
        notifier=notifier,
        window=settings.notification_window,
    )
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from campusrent.core import events
from campusrent.core.criteria import spec_from_saved_filters
from campusrent.core.exceptions import NotificationError
from campusrent.core.models import NotificationDigest, SavedSearch
from campusrent.filters.engine import FilterScope, PropertyFilter
from campusrent.notifiers.notifier import DigestNotifier
from campusrent.orchestrator.frequency import is_due
from campusrent.storage.repository import (
    PropertyRepository,
    SavedSearchRepository,
    UserRepository,
)

__all__ = [
    "DEFAULT_WINDOW",
    "SearchOutcome",
    "BatchStats",
    "process_saved_search",
    "run_batch",
]

logger = logging.getLogger(__name__)

#: Number of newest properties each saved search is matched against.
DEFAULT_WINDOW: int = 10


class SearchOutcome(StrEnum):
    """What happened to one saved search in a batch."""

    NOT_DUE = "not_due"
    USER_MISSING = "user_missing"
    NO_MATCH = "no_match"
    NOTIFIED = "notified"
    SIMULATED = "simulated"
    SEND_FAILED = "send_failed"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


@dataclass
class BatchStats:
    """Counters for one batch invocation.

    Attributes:
        total: Active saved searches considered.
        notified: Digests sent with watermark advanced.
        simulated: Dry-run digests logged instead of sent; watermark untouched.
        not_due: Searches skipped by the frequency gate.
        user_missing: Searches whose owner could not be resolved.
        no_match: Due searches with no matching recent property.
        send_failed: Digests the transport rejected.
        errors: Any other per-search failure.
        properties_sent: Total properties across all sent digests.
        duration_s: Wall-clock duration, filled in by the runner.
    """

    total: int = 0
    notified: int = 0
    simulated: int = 0
    not_due: int = 0
    user_missing: int = 0
    no_match: int = 0
    send_failed: int = 0
    errors: int = 0
    properties_sent: int = 0
    duration_s: float = 0.0

    def record(self, outcome: SearchOutcome) -> None:
        """Increment the counter for *outcome*."""
        field_name = {
            SearchOutcome.NOT_DUE: "not_due",
            SearchOutcome.USER_MISSING: "user_missing",
            SearchOutcome.NO_MATCH: "no_match",
            SearchOutcome.NOTIFIED: "notified",
            SearchOutcome.SIMULATED: "simulated",
            SearchOutcome.SEND_FAILED: "send_failed",
            SearchOutcome.ERROR: "errors",
        }[outcome]
        setattr(self, field_name, getattr(self, field_name) + 1)

    @property
    def failed(self) -> int:
        return self.send_failed + self.errors

    def as_dict(self) -> dict[str, Any]:
        """JSON-friendly summary used by the HTTP trigger."""
        return {
            "total": self.total,
            "notified": self.notified,
            "simulated": self.simulated,
            "notDue": self.not_due,
            "userMissing": self.user_missing,
            "noMatch": self.no_match,
            "sendFailed": self.send_failed,
            "errors": self.errors,
            "propertiesSent": self.properties_sent,
            "durationSeconds": round(self.duration_s, 3),
        }

    def format_report(self) -> str:
        """One-line human-readable summary."""
        return (
            f"Batch complete: total={self.total} notified={self.notified} "
            f"simulated={self.simulated} "
            f"not_due={self.not_due} user_missing={self.user_missing} "
            f"no_match={self.no_match} send_failed={self.send_failed} "
            f"errors={self.errors} properties_sent={self.properties_sent} "
            f"duration={self.duration_s:.2f}s"
        )


# ---------------------------------------------------------------------------
# Per-search processing
# ---------------------------------------------------------------------------


async def process_saved_search(
    search: SavedSearch,
    *,
    properties: PropertyRepository,
    users: UserRepository,
    searches: SavedSearchRepository,
    notifier: DigestNotifier,
    window: int = DEFAULT_WINDOW,
    now: datetime,
) -> tuple[SearchOutcome, int]:
    """Run one saved search through gate → resolve → match → send → record.

    Send failures are handled here.  Any other exception propagates so
    :func:`run_batch` can count it against this search alone.

    Args:
        search: Active saved search.
        properties: Catalog access.
        users: Contact lookup.
        searches: Used only to advance ``last_notified``.
        notifier: Digest delivery.
        window: Newest-properties cap.
        now: Batch start time; also the new watermark value.

    Returns:
        ``(outcome, properties_in_digest)``.
    """
    if not is_due(search, now):
        logger.debug(
            "Search %s not due (%s, last_notified=%s)",
            search.id,
            search.notification_frequency,
            search.last_notified,
            extra={"event": events.SEARCH_NOT_DUE},
        )
        return SearchOutcome.NOT_DUE, 0

    contact = await users.get_contact(search.user_id)
    if contact is None:
        logger.warning(
            "Search %s: user %s not found, skipped",
            search.id,
            search.user_id,
            extra={"event": events.SEARCH_USER_MISSING},
        )
        return SearchOutcome.USER_MISSING, 0

    spec = spec_from_saved_filters(search.filters)
    recent = await properties.fetch_recent(window, spec)
    matched = PropertyFilter(spec, FilterScope.NOTIFICATION).filter_many(recent)
    if not matched:
        logger.debug(
            "Search %s: no match among %d recent properties",
            search.id,
            len(recent),
            extra={"event": events.SEARCH_NO_MATCH},
        )
        return SearchOutcome.NO_MATCH, 0

    digest = NotificationDigest(
        search_id=search.id,
        search_name=search.name,
        contact=contact,
        properties=matched,
    )
    try:
        delivered = await notifier.send_digest(digest)
    except NotificationError as exc:
        logger.error(
            "Search %s: digest not sent, watermark unchanged: %s",
            search.id,
            exc,
            extra={"event": events.SEARCH_SEND_ERROR},
        )
        return SearchOutcome.SEND_FAILED, 0

    if not delivered:
        logger.info(
            "Search %s: dry-run, %d properties logged, watermark unchanged",
            search.id,
            len(matched),
            extra={"event": events.SEARCH_SIMULATED},
        )
        return SearchOutcome.SIMULATED, 0

    await searches.set_last_notified(search.id, now)
    logger.info(
        "Search %s: notified %s with %d properties",
        search.id,
        contact.email,
        len(matched),
        extra={"event": events.SEARCH_NOTIFIED},
    )
    return SearchOutcome.NOTIFIED, len(matched)


# ---------------------------------------------------------------------------
# Batch entry-point
# ---------------------------------------------------------------------------


async def run_batch(
    active_searches: Iterable[SavedSearch],
    *,
    properties: PropertyRepository,
    users: UserRepository,
    searches: SavedSearchRepository,
    notifier: DigestNotifier,
    window: int = DEFAULT_WINDOW,
    now: datetime | None = None,
) -> BatchStats:
    """Process every active saved search once.

    Args:
        active_searches: Searches with email notifications enabled.
        now: Batch start time.  Defaults to the current UTC time.

    Returns:
        A :class:`BatchStats` for the invocation.
    """
    if now is None:
        now = datetime.now(UTC)
    stats = BatchStats()

    for search in active_searches:
        stats.total += 1
        try:
            outcome, sent = await process_saved_search(
                search,
                properties=properties,
                users=users,
                searches=searches,
                notifier=notifier,
                window=window,
                now=now,
            )
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Search %s: unexpected error, skipped: %s",
                search.id,
                exc,
                exc_info=True,
                extra={"event": events.SEARCH_ERROR},
            )
            outcome, sent = SearchOutcome.ERROR, 0
        stats.record(outcome)
        stats.properties_sent += sent

    return stats
