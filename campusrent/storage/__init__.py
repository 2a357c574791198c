"""SQLite-backed repositories for properties, saved searches and user contacts."""

from campusrent.storage.database import DEFAULT_DB_PATH, create_schema, open_db
from campusrent.storage.repository import (
    PropertyRepository,
    SavedSearchRepository,
    UserRepository,
)

__all__ = [
    "DEFAULT_DB_PATH",
    "open_db",
    "create_schema",
    "PropertyRepository",
    "SavedSearchRepository",
    "UserRepository",
]
