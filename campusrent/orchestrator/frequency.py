"""Notification frequency gate.

Decides whether a saved search is due for a digest given its
``notification_frequency`` and ``last_notified`` watermark:

* ``instant``: always due.
* ``daily``: due if never notified, or notified more than 24 hours ago.
* ``weekly``: due if never notified, or notified more than 7 days ago.

The comparison is strict: a search notified exactly 24 hours ago is not yet
due under ``daily``.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Final

from campusrent.core.models import NotificationFrequency, SavedSearch

__all__ = ["FREQUENCY_WINDOWS", "is_due", "next_due_at"]

#: Minimum gap between two digests per frequency.  ``instant`` has none.
FREQUENCY_WINDOWS: Final[dict[NotificationFrequency, timedelta]] = {
    NotificationFrequency.DAILY: timedelta(days=1),
    NotificationFrequency.WEEKLY: timedelta(days=7),
}


def next_due_at(search: SavedSearch) -> datetime | None:
    """Return the instant after which *search* becomes due.

    ``None`` means "due now": the search is ``instant`` or has never been
    notified.
    """
    window = FREQUENCY_WINDOWS.get(search.notification_frequency)
    if window is None or search.last_notified is None:
        return None
    return search.last_notified + window


def is_due(search: SavedSearch, now: datetime | None = None) -> bool:
    """Return ``True`` if *search* may receive a digest at *now*."""
    if now is None:
        now = datetime.now(UTC)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    threshold = next_due_at(search)
    return threshold is None or now > threshold
