"""Repositories for properties, saved searches and user contacts.

Each repository is the single data-access object for one table.  None of them
owns the connection lifecycle: the caller supplies an open
:class:`aiosqlite.Connection` (see :func:`~campusrent.storage.database.open_db`)
and closes it when done.

Rows are validated into the pydantic models of :mod:`campusrent.core.models`
at this boundary.  Multi-row reads log and **skip** rows that fail
validation, so one malformed document never hides the rest of a collection;
single-row reads raise :exc:`~campusrent.core.exceptions.MalformedRecordError`.

The notification batch depends on four calls:

* :meth:`PropertyRepository.fetch_recent`
* :meth:`SavedSearchRepository.fetch_active`
* :meth:`SavedSearchRepository.set_last_notified`
* :meth:`UserRepository.get_contact`

Typical usage::

    conn = await open_db(settings.database_path_resolved)
    properties = PropertyRepository(conn)
    recent = await properties.fetch_recent(10)
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

import aiosqlite
from pydantic import ValidationError

from campusrent.core.criteria import FilterSpec
from campusrent.core.exceptions import (
    MalformedRecordError,
    PermissionDeniedError,
    RecordNotFoundError,
    StorageError,
)
from campusrent.core.models import (
    NotificationFrequency,
    Property,
    SavedSearch,
    SavedSearchFilters,
    UserContact,
)

__all__ = [
    "PropertyRepository",
    "SavedSearchRepository",
    "UserRepository",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ts(value: datetime) -> str:
    """Serialise a timestamp as ISO-8601 UTC so string order equals time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def _placeholders(values: Iterable[Any]) -> tuple[str, list[Any]]:
    items = sorted(values)
    return ",".join("?" * len(items)), items


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------

_PROPERTY_COLUMNS = (
    "id",
    "landlord_id",
    "title",
    "description",
    "price",
    "location",
    "property_type",
    "bedrooms",
    "bathrooms",
    "area",
    "distance",
    "amenities",
    "image_urls",
    "available_from",
    "lease_term",
    "deposit",
    "created_at",
    "deleted",
)

_UPDATABLE_PROPERTY_FIELDS = frozenset(_PROPERTY_COLUMNS) - {"id", "landlord_id", "created_at", "deleted"}


def _property_to_row(prop: Property) -> tuple[Any, ...]:
    return (
        prop.id,
        prop.landlord_id,
        prop.title,
        prop.description,
        prop.price,
        prop.location,
        prop.property_type,
        prop.bedrooms,
        prop.bathrooms,
        prop.area,
        prop.distance,
        json.dumps(prop.amenities),
        json.dumps(prop.image_urls),
        prop.available_from,
        prop.lease_term,
        prop.deposit,
        _ts(prop.created_at),
        int(prop.deleted),
    )


def _row_to_property(row: aiosqlite.Row) -> Property:
    data = dict(row)
    try:
        data["amenities"] = json.loads(data.get("amenities") or "{}")
        data["image_urls"] = json.loads(data.get("image_urls") or "[]")
        data["deleted"] = bool(data.get("deleted"))
        return Property.model_validate(data)
    except (ValueError, ValidationError) as exc:
        raise MalformedRecordError("properties", str(data.get("id")), str(exc)) from exc


class PropertyRepository:
    """Data-access object for the ``properties`` table.

    Landlord-side mutations (:meth:`update`, :meth:`delete`) are restricted
    to the owning landlord.  Deletion is logical: the row stays, flagged
    ``deleted``, and disappears from every catalog read.

    Args:
        conn: Open, configured :class:`aiosqlite.Connection`.
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def add(self, prop: Property) -> str:
        """Insert a new property and return its id.

        Raises:
            StorageError: If a property with the same id already exists.
        """
        placeholders = ",".join("?" * len(_PROPERTY_COLUMNS))
        try:
            await self._conn.execute(
                f"INSERT INTO properties ({','.join(_PROPERTY_COLUMNS)}) VALUES ({placeholders})",
                _property_to_row(prop),
            )
        except aiosqlite.IntegrityError as exc:
            raise StorageError(f"Property {prop.id!r} already exists") from exc
        await self._conn.commit()
        logger.debug("Inserted property %s (landlord=%s)", prop.id, prop.landlord_id)
        return prop.id

    async def get(self, property_id: str, *, include_deleted: bool = False) -> Property:
        """Return one property by id.

        Raises:
            RecordNotFoundError: If absent, or logically deleted and
                *include_deleted* is false.
            MalformedRecordError: If the stored row fails validation.
        """
        cursor = await self._conn.execute(
            "SELECT * FROM properties WHERE id = ?",
            (property_id,),
        )
        row = await cursor.fetchone()
        if row is None or (row["deleted"] and not include_deleted):
            raise RecordNotFoundError("properties", property_id)
        return _row_to_property(row)

    async def update(self, property_id: str, actor_id: str, **changes: Any) -> Property:
        """Apply *changes* to a property owned by *actor_id*.

        Only listing fields may change; ``id``, ``landlord_id``,
        ``created_at`` and ``deleted`` are rejected.

        Raises:
            ValueError: On an unknown or immutable field, or a value the
                model rejects.
            RecordNotFoundError: If the property does not exist.
            PermissionDeniedError: If *actor_id* is not the owner.
        """
        unknown = set(changes) - _UPDATABLE_PROPERTY_FIELDS
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        current = await self.get(property_id)
        if current.landlord_id != actor_id:
            raise PermissionDeniedError("properties", property_id, actor_id)

        updated = Property.model_validate({**current.model_dump(), **changes})
        assignments = ",".join(f"{col} = ?" for col in _PROPERTY_COLUMNS[1:])
        await self._conn.execute(
            f"UPDATE properties SET {assignments} WHERE id = ?",
            (*_property_to_row(updated)[1:], property_id),
        )
        await self._conn.commit()
        logger.debug("Updated property %s fields=%s", property_id, sorted(changes))
        return updated

    async def delete(self, property_id: str, actor_id: str) -> None:
        """Logically delete a property owned by *actor_id*.

        Raises:
            RecordNotFoundError: If the property does not exist.
            PermissionDeniedError: If *actor_id* is not the owner.
        """
        current = await self.get(property_id)
        if current.landlord_id != actor_id:
            raise PermissionDeniedError("properties", property_id, actor_id)
        await self._conn.execute(
            "UPDATE properties SET deleted = 1 WHERE id = ?",
            (property_id,),
        )
        await self._conn.commit()
        logger.info("Property %s removed from catalog by %s", property_id, actor_id)

    async def list_active(self) -> list[Property]:
        """Return the whole active catalog, newest first."""
        cursor = await self._conn.execute(
            "SELECT * FROM properties WHERE deleted = 0 ORDER BY created_at DESC, id"
        )
        return self._parse_rows(await cursor.fetchall())

    async def list_by_landlord(self, landlord_id: str) -> list[Property]:
        """Return one landlord's active properties, newest first."""
        cursor = await self._conn.execute(
            "SELECT * FROM properties WHERE deleted = 0 AND landlord_id = ? "
            "ORDER BY created_at DESC, id",
            (landlord_id,),
        )
        return self._parse_rows(await cursor.fetchall())

    async def fetch_recent(self, limit: int, spec: FilterSpec | None = None) -> list[Property]:
        """Return up to *limit* of the newest active properties.

        When *spec* is given, its type, price range, bedroom set and bathroom
        set are pushed down into the query, so the window holds the newest
        *matching* properties.  Other spec fields are ignored here.

        Args:
            limit: Window size (must be ≥ 1).
            spec: Optional equality / range constraints.

        Returns:
            Properties ordered newest first.
        """
        if limit < 1:
            raise ValueError(f"limit must be ≥ 1, got {limit!r}")

        clauses = ["deleted = 0"]
        params: list[Any] = []
        if spec is not None:
            if spec.property_type is not None:
                marks, values = _placeholders(spec.property_type)
                clauses.append(f"property_type IN ({marks})")
                params.extend(values)
            if spec.price_min is not None:
                clauses.append("price >= ?")
                params.append(spec.price_min)
            if spec.price_max is not None:
                clauses.append("price <= ?")
                params.append(spec.price_max)
            if spec.bedrooms is not None:
                marks, values = _placeholders(spec.bedrooms)
                clauses.append(f"bedrooms IN ({marks})")
                params.extend(values)
            if spec.bathrooms is not None:
                marks, values = _placeholders(spec.bathrooms)
                clauses.append(f"bathrooms IN ({marks})")
                params.extend(values)

        params.append(limit)
        cursor = await self._conn.execute(
            f"SELECT * FROM properties WHERE {' AND '.join(clauses)} "
            "ORDER BY created_at DESC, id LIMIT ?",
            params,
        )
        return self._parse_rows(await cursor.fetchall())

    @staticmethod
    def _parse_rows(rows: Iterable[aiosqlite.Row]) -> list[Property]:
        properties: list[Property] = []
        for row in rows:
            try:
                properties.append(_row_to_property(row))
            except MalformedRecordError as exc:
                logger.warning("Skipping unreadable property: %s", exc)
        return properties


# ---------------------------------------------------------------------------
# Saved searches
# ---------------------------------------------------------------------------

_SAVED_SEARCH_COLUMNS = (
    "id",
    "user_id",
    "name",
    "filters",
    "email_notifications",
    "notification_frequency",
    "last_notified",
    "created_at",
    "updated_at",
)


def _row_to_saved_search(row: aiosqlite.Row) -> SavedSearch:
    data = dict(row)
    try:
        data["filters"] = json.loads(data.get("filters") or "{}")
        data["email_notifications"] = bool(data.get("email_notifications"))
        return SavedSearch.model_validate(data)
    except (ValueError, ValidationError) as exc:
        raise MalformedRecordError("saved_searches", str(data.get("id")), str(exc)) from exc


class SavedSearchRepository:
    """Data-access object for the ``saved_searches`` table.

    User-facing edits go through :meth:`update` (and its thin wrappers) and
    bump ``updated_at``.  The batch's only write is :meth:`set_last_notified`,
    which leaves ``updated_at`` alone.

    Args:
        conn: Open, configured :class:`aiosqlite.Connection`.
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create(self, search: SavedSearch) -> str:
        """Persist a new saved search and return its id.

        Raises:
            StorageError: If the id is already taken.
        """
        placeholders = ",".join("?" * len(_SAVED_SEARCH_COLUMNS))
        try:
            await self._conn.execute(
                f"INSERT INTO saved_searches ({','.join(_SAVED_SEARCH_COLUMNS)}) "
                f"VALUES ({placeholders})",
                (
                    search.id,
                    search.user_id,
                    search.name,
                    search.filters.model_dump_json(exclude_none=True),
                    int(search.email_notifications),
                    str(search.notification_frequency),
                    _ts(search.last_notified) if search.last_notified else None,
                    _ts(search.created_at),
                    _ts(search.updated_at),
                ),
            )
        except aiosqlite.IntegrityError as exc:
            raise StorageError(f"Saved search {search.id!r} already exists") from exc
        await self._conn.commit()
        logger.debug("Created saved search %s for user %s", search.id, search.user_id)
        return search.id

    async def get(self, search_id: str) -> SavedSearch:
        """Return one saved search.

        Raises:
            RecordNotFoundError: If absent.
            MalformedRecordError: If the stored row fails validation.
        """
        cursor = await self._conn.execute(
            "SELECT * FROM saved_searches WHERE id = ?",
            (search_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            raise RecordNotFoundError("saved_searches", search_id)
        return _row_to_saved_search(row)

    async def list_for_user(self, user_id: str) -> list[SavedSearch]:
        """Return a user's saved searches, newest first."""
        cursor = await self._conn.execute(
            "SELECT * FROM saved_searches WHERE user_id = ? ORDER BY created_at DESC, id",
            (user_id,),
        )
        return self._parse_rows(await cursor.fetchall())

    async def update(
        self,
        search_id: str,
        actor_id: str,
        *,
        name: str | None = None,
        filters: SavedSearchFilters | None = None,
        email_notifications: bool | None = None,
        notification_frequency: NotificationFrequency | str | None = None,
    ) -> SavedSearch:
        """Edit a saved search owned by *actor_id* and bump ``updated_at``.

        Arguments left as ``None`` are not changed.

        Raises:
            RecordNotFoundError: If the search does not exist.
            PermissionDeniedError: If *actor_id* is not the owner.
            ValueError: If *notification_frequency* is not a known value.
        """
        current = await self.get(search_id)
        if current.user_id != actor_id:
            raise PermissionDeniedError("saved_searches", search_id, actor_id)

        changes: dict[str, Any] = {"updated_at": datetime.now(UTC)}
        if name is not None:
            changes["name"] = name
        if filters is not None:
            changes["filters"] = filters
        if email_notifications is not None:
            changes["email_notifications"] = email_notifications
        if notification_frequency is not None:
            changes["notification_frequency"] = NotificationFrequency(notification_frequency)

        updated = current.model_copy(update=changes)
        await self._conn.execute(
            """
            UPDATE saved_searches
               SET name = ?, filters = ?, email_notifications = ?,
                   notification_frequency = ?, updated_at = ?
             WHERE id = ?
            """,
            (
                updated.name,
                updated.filters.model_dump_json(exclude_none=True),
                int(updated.email_notifications),
                str(updated.notification_frequency),
                _ts(updated.updated_at),
                search_id,
            ),
        )
        await self._conn.commit()
        logger.debug("Updated saved search %s fields=%s", search_id, sorted(changes))
        return updated

    async def set_email_notifications(self, search_id: str, actor_id: str, enabled: bool) -> SavedSearch:
        """Toggle digest emails for a saved search."""
        return await self.update(search_id, actor_id, email_notifications=enabled)

    async def set_frequency(
        self,
        search_id: str,
        actor_id: str,
        frequency: NotificationFrequency | str,
    ) -> SavedSearch:
        """Change how often a saved search may produce a digest."""
        return await self.update(search_id, actor_id, notification_frequency=frequency)

    async def delete(self, search_id: str, actor_id: str) -> None:
        """Delete a saved search owned by *actor_id*.

        Raises:
            RecordNotFoundError: If the search does not exist.
            PermissionDeniedError: If *actor_id* is not the owner.
        """
        current = await self.get(search_id)
        if current.user_id != actor_id:
            raise PermissionDeniedError("saved_searches", search_id, actor_id)
        await self._conn.execute("DELETE FROM saved_searches WHERE id = ?", (search_id,))
        await self._conn.commit()
        logger.debug("Deleted saved search %s", search_id)

    async def fetch_active(self) -> list[SavedSearch]:
        """Return every saved search with email notifications enabled.

        Unreadable rows are logged and skipped.
        """
        cursor = await self._conn.execute(
            "SELECT * FROM saved_searches WHERE email_notifications = 1 ORDER BY created_at, id"
        )
        return self._parse_rows(await cursor.fetchall())

    async def set_last_notified(self, search_id: str, when: datetime) -> bool:
        """Advance the notification watermark of one saved search.

        The update is conditional on notifications still being enabled, so a
        user who switched them off mid-batch never has the watermark moved.

        Returns:
            ``True`` if a row was updated.
        """
        cursor = await self._conn.execute(
            "UPDATE saved_searches SET last_notified = ? "
            "WHERE id = ? AND email_notifications = 1",
            (_ts(when), search_id),
        )
        await self._conn.commit()
        updated = cursor.rowcount > 0
        if updated:
            logger.debug("last_notified for %s → %s", search_id, _ts(when))
        else:
            logger.warning(
                "last_notified not recorded for %s (deleted or notifications disabled)",
                search_id,
            )
        return updated

    @staticmethod
    def _parse_rows(rows: Iterable[aiosqlite.Row]) -> list[SavedSearch]:
        searches: list[SavedSearch] = []
        for row in rows:
            try:
                searches.append(_row_to_saved_search(row))
            except MalformedRecordError as exc:
                logger.warning("Skipping unreadable saved search: %s", exc)
        return searches


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserRepository:
    """Data-access object for the ``users`` contact table.

    Account management belongs to the external auth service; this table only
    mirrors what a digest email needs.

    Args:
        conn: Open, configured :class:`aiosqlite.Connection`.
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def upsert(self, contact: UserContact) -> None:
        """Insert or replace the contact record for ``contact.user_id``."""
        await self._conn.execute(
            """
            INSERT INTO users (id, email, display_name) VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                email = excluded.email,
                display_name = excluded.display_name
            """,
            (contact.user_id, contact.email, contact.display_name),
        )
        await self._conn.commit()

    async def get_contact(self, user_id: str) -> UserContact | None:
        """Return the contact for *user_id*, or ``None`` if unknown.

        Raises:
            MalformedRecordError: If the stored row is unusable (e.g. blank
                email).
        """
        cursor = await self._conn.execute(
            "SELECT id, email, display_name FROM users WHERE id = ?",
            (user_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        try:
            return UserContact(
                user_id=row["id"],
                email=row["email"],
                display_name=row["display_name"] or "",
            )
        except ValidationError as exc:
            raise MalformedRecordError("users", user_id, str(exc)) from exc
