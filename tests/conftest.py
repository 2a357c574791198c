"""Shared pytest fixtures and configuration for the Campusrent test suite.

This file is loaded automatically by pytest before any test module.
It provides project-wide fixtures used across unit and integration tests.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite
import pytest
from pydantic_settings import SettingsConfigDict

from campusrent.core import configure_logging
from campusrent.core.settings import Settings
from campusrent.storage.database import open_db

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _configure_test_logging() -> None:
    """Force DEBUG logging in text format for every test.

    ``force=True`` applies the configuration even when pytest's own
    ``log_cli`` handler is already present.
    """
    configure_logging(level="DEBUG", fmt="text", force=True)


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove Campusrent env vars and disable ``.env`` loading for one test.

    Keeps credentials from the developer's shell or a local ``.env`` file out
    of Settings isolation tests.
    """
    sensitive_prefixes = (
        "CRON_",
        "SMTP_",
        "APP_",
        "DATABASE_",
        "NOTIFICATION_",
        "API_",
        "DRY_RUN",
        "LOG_LEVEL",
        "LOG_FORMAT",
    )
    for key in list(os.environ):
        if any(key.startswith(prefix) for prefix in sensitive_prefixes):
            monkeypatch.delenv(key, raising=False)

    # pydantic-settings reads the .env file directly, not via os.environ.
    monkeypatch.setattr(
        Settings,
        "model_config",
        SettingsConfigDict(
            env_file=None,
            env_file_encoding="utf-8",
            extra="ignore",
        ),
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture()
async def conn(tmp_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """Provide a real WAL-mode SQLite DB in a temp directory."""
    connection = await open_db(tmp_path / "test.db")
    try:
        yield connection
    finally:
        await connection.close()


# ---------------------------------------------------------------------------
# Misc helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def now() -> datetime:
    """A fixed batch start time."""
    return datetime(2026, 3, 2, 12, 0, 0, tzinfo=UTC)


@pytest.fixture()
def logger() -> logging.Logger:
    """Return a ``logging.Logger`` scoped to test code."""
    return logging.getLogger("tests")
