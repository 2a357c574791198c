"""SQLite database initialisation for Campusrent.

This module is responsible for:

* Opening (or creating) the SQLite file.
* Configuring low-level PRAGMA settings (WAL journal mode, foreign keys).
* Bootstrapping the schema via ``CREATE TABLE IF NOT EXISTS``; the statements are
  idempotent, so this runs on every startup.

The store stands in for a hosted document database: list-valued fields
(amenities, image URLs, saved-search filters) are kept as JSON text, while
the scalar fields the notification batch pushes down into queries are real
columns.

Typical usage::

    from campusrent.storage.database import open_db

    async def main() -> None:
        conn = await open_db()
        # ... pass conn to the repositories ...
        await conn.close()
"""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

__all__ = [
    "DEFAULT_DB_PATH",
    "open_db",
    "create_schema",
]

logger = logging.getLogger(__name__)

#: Fallback database path when no explicit path is passed to :func:`open_db`.
DEFAULT_DB_PATH: Path = Path("campusrent.db")

# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

#: Column notes
#: ------------
#: amenities     JSON object ``{"wifi": true, ...}``.
#: image_urls    JSON array of hosted image URLs.
#: created_at    ISO-8601 UTC timestamp; newest-first ordering relies on every
#:               value being written through the repository in UTC.
#: deleted       Logical-delete flag (0/1).  Deleted rows leave the catalog.
_DDL_PROPERTIES = """\
CREATE TABLE IF NOT EXISTS properties (
    id             TEXT     NOT NULL PRIMARY KEY,
    landlord_id    TEXT     NOT NULL DEFAULT '',
    title          TEXT     NOT NULL DEFAULT '',
    description    TEXT     NOT NULL DEFAULT '',
    price          REAL     NOT NULL,
    location       TEXT     NOT NULL DEFAULT '',
    property_type  TEXT     NOT NULL DEFAULT 'other',
    bedrooms       INTEGER,
    bathrooms      INTEGER,
    area           REAL,
    distance       REAL,
    amenities      TEXT     NOT NULL DEFAULT '{}',
    image_urls     TEXT     NOT NULL DEFAULT '[]',
    available_from TEXT,
    lease_term     TEXT,
    deposit        REAL,
    created_at     TEXT     NOT NULL,
    deleted        INTEGER  NOT NULL DEFAULT 0
)"""

_DDL_PROPERTIES_INDEX = """\
CREATE INDEX IF NOT EXISTS idx_properties_created_at
    ON properties (deleted, created_at DESC)"""

#: filters                JSON object matching ``SavedSearchFilters``.
#: notification_frequency instant | daily | weekly.
#: last_notified          ISO-8601 UTC watermark; NULL until the first digest.
_DDL_SAVED_SEARCHES = """\
CREATE TABLE IF NOT EXISTS saved_searches (
    id                     TEXT     NOT NULL PRIMARY KEY,
    user_id                TEXT     NOT NULL,
    name                   TEXT     NOT NULL DEFAULT '',
    filters                TEXT     NOT NULL DEFAULT '{}',
    email_notifications    INTEGER  NOT NULL DEFAULT 0,
    notification_frequency TEXT     NOT NULL DEFAULT 'daily',
    last_notified          TEXT,
    created_at             TEXT     NOT NULL,
    updated_at             TEXT     NOT NULL
)"""

_DDL_SAVED_SEARCHES_INDEX = """\
CREATE INDEX IF NOT EXISTS idx_saved_searches_active
    ON saved_searches (email_notifications)"""

_DDL_USERS = """\
CREATE TABLE IF NOT EXISTS users (
    id            TEXT     NOT NULL PRIMARY KEY,
    email         TEXT     NOT NULL,
    display_name  TEXT     NOT NULL DEFAULT ''
)"""

_SCHEMA: tuple[str, ...] = (
    _DDL_PROPERTIES,
    _DDL_PROPERTIES_INDEX,
    _DDL_SAVED_SEARCHES,
    _DDL_SAVED_SEARCHES_INDEX,
    _DDL_USERS,
)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def open_db(path: Path | str | None = None) -> aiosqlite.Connection:
    """Open (or create) the SQLite database and configure it.

    Args:
        path: Filesystem path for the SQLite file, or ``":memory:"``.
            Defaults to :data:`DEFAULT_DB_PATH`.

    Returns:
        An open, configured :class:`aiosqlite.Connection` with
        ``row_factory = aiosqlite.Row``.  The caller is responsible for
        closing it.

    Raises:
        aiosqlite.OperationalError: If the database file cannot be opened or
            created.
    """
    if path == ":memory:":
        target: Path | str = ":memory:"
    else:
        target = Path(path or DEFAULT_DB_PATH)
        target.parent.mkdir(parents=True, exist_ok=True)

    logger.debug("Opening SQLite database at %s", target)

    conn: aiosqlite.Connection = await aiosqlite.connect(target)
    conn.row_factory = aiosqlite.Row

    await _configure_pragmas(conn)
    await create_schema(conn)

    logger.info("SQLite database ready at %s", target)
    return conn


async def create_schema(conn: aiosqlite.Connection) -> None:
    """Create all required tables and indexes if they do not already exist.

    Idempotent; existing data is untouched.
    """
    for statement in _SCHEMA:
        await conn.execute(statement)
    await conn.commit()
    logger.debug("Schema bootstrap complete (properties, saved_searches, users)")


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------


async def _configure_pragmas(conn: aiosqlite.Connection) -> None:
    """Enable WAL journal mode and foreign-key enforcement."""
    result = await conn.execute("PRAGMA journal_mode=WAL")
    row = await result.fetchone()
    mode = row[0] if row else "unknown"
    if mode != "wal":
        logger.warning(
            "Requested WAL journal mode but SQLite reported: %r. "
            "This is expected for in-memory databases.",
            mode,
        )
    await conn.execute("PRAGMA foreign_keys=ON")
