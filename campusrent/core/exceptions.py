"""Campusrent exception taxonomy.

Every custom exception inherits from :class:`CampusRentError`.  Exceptions are
organised by architectural layer so callers can catch at the right granularity:

    Layer hierarchy
    ---------------
    CampusRentError
    ├── ConfigError
    ├── StorageError
    │   ├── RecordNotFoundError
    │   ├── PermissionDeniedError
    │   └── MalformedRecordError
    ├── NotificationError
    │   └── EmailDeliveryError
    └── BatchError

The Filter Engine has no error path: malformed filter input degrades to "no
constraint" and malformed property fields fail the predicate that reads them.

Usage:

    from campusrent.core.exceptions import EmailDeliveryError

    raise EmailDeliveryError("student@example.edu", "Connection refused") from exc
"""

from __future__ import annotations

import logging

__all__ = [
    "CampusRentError",
    # Config
    "ConfigError",
    # Storage
    "StorageError",
    "RecordNotFoundError",
    "PermissionDeniedError",
    "MalformedRecordError",
    # Notification
    "NotificationError",
    "EmailDeliveryError",
    # Batch
    "BatchError",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class CampusRentError(Exception):
    """Root exception for all Campusrent errors.

    Catch this to handle any application-level error uniformly.  Prefer
    catching layer-specific subclasses wherever possible.
    """


# ---------------------------------------------------------------------------
# Config layer
# ---------------------------------------------------------------------------


class ConfigError(CampusRentError):
    """Raised when the application configuration is invalid or incomplete.

    Examples:
        - ``CRON_SECRET`` is unset while the trigger endpoint is called.
        - SMTP credentials are missing in live mode.

    Fatal for the current batch invocation; surfaced as HTTP 500 by the
    trigger endpoint.
    """


# ---------------------------------------------------------------------------
# Storage layer
# ---------------------------------------------------------------------------


class StorageError(CampusRentError):
    """Raised when a database or persistence operation fails."""


class RecordNotFoundError(StorageError):
    """Raised when a document looked up by id does not exist.

    Args:
        collection: Logical collection name (``"properties"``, ...).
        record_id: The identifier that was not found.
    """

    def __init__(self, collection: str, record_id: str) -> None:
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"{collection}/{record_id} not found")


class PermissionDeniedError(StorageError):
    """Raised when a non-owner attempts to mutate a record.

    Args:
        collection: Logical collection name.
        record_id: The record the caller tried to mutate.
        actor_id: The user who attempted the mutation.
    """

    def __init__(self, collection: str, record_id: str, actor_id: str) -> None:
        self.collection = collection
        self.record_id = record_id
        self.actor_id = actor_id
        super().__init__(f"{actor_id!r} may not modify {collection}/{record_id}")


class MalformedRecordError(StorageError):
    """Raised when a stored document cannot be parsed into its model.

    Read paths that iterate over many documents log and skip these instead of
    propagating; single-record reads raise them.

    Args:
        collection: Logical collection name.
        record_id: Identifier of the broken document.
        detail: Validation error summary.
    """

    def __init__(self, collection: str, record_id: str, detail: str) -> None:
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"Malformed {collection}/{record_id}: {detail}")


# ---------------------------------------------------------------------------
# Notification layer
# ---------------------------------------------------------------------------


class NotificationError(CampusRentError):
    """Base class for notification delivery errors."""


class EmailDeliveryError(NotificationError):
    """Raised when the mail transport rejects or cannot deliver a digest.

    Args:
        recipient: Destination address.
        message: Human-readable error description.
    """

    def __init__(self, recipient: str, message: str) -> None:
        self.recipient = recipient
        super().__init__(f"Email to {recipient} failed: {message}")


# ---------------------------------------------------------------------------
# Batch layer
# ---------------------------------------------------------------------------


class BatchError(CampusRentError):
    """Raised when the saved-search batch cannot run at all.

    Examples:
        - The saved-search collection cannot be listed.

    Per-record failures never raise this; they are counted and logged.
    """
