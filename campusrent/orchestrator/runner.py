"""Orchestrator entry-point: assemble all components and execute one batch.

This module provides :func:`run_once`, the top-level async function invoked
by :mod:`campusrent.__main__` and by the HTTP trigger for each batch.

Component wiring
----------------
Each call to :func:`run_once`:

1. Loads :class:`~campusrent.core.settings.Settings` (or uses the supplied
   instance).
2. Tags every log record of the invocation with a fresh run id.
3. Opens the SQLite database via :func:`~campusrent.storage.database.open_db`
   unless a connection is supplied.
4. Builds the repositories, the :class:`~campusrent.notifiers.mailer.SmtpMailer`
   and the :class:`~campusrent.notifiers.notifier.DigestNotifier`.
5. Lists the active saved searches and hands them to
   :func:`~campusrent.orchestrator.batch.run_batch`.
6. Closes the connection it opened, including on exceptions.

SMTP / dry-run behaviour
------------------------
In **live mode** ``SMTP_HOST`` and ``SMTP_FROM`` must be configured, or
:func:`run_once` raises :exc:`~campusrent.core.exceptions.ConfigError` before
any I/O.  In **dry-run** mode no mailer is built and SMTP settings are
optional.

Typical usage::

    import asyncio
    from campusrent.core.run_context import RunContext
    from campusrent.orchestrator.runner import run_once

    stats = asyncio.run(run_once(RunContext(dry_run=True)))
    print(stats.format_report())
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import UTC, datetime

import aiosqlite

from campusrent.core import events
from campusrent.core.exceptions import BatchError, ConfigError
from campusrent.core.logging_config import RUN_ID_CTX
from campusrent.core.run_context import RunContext
from campusrent.core.settings import Settings
from campusrent.notifiers.mailer import SmtpMailer
from campusrent.notifiers.notifier import DigestNotifier, MailTransport
from campusrent.orchestrator.batch import BatchStats, run_batch
from campusrent.storage.database import open_db
from campusrent.storage.repository import (
    PropertyRepository,
    SavedSearchRepository,
    UserRepository,
)

__all__ = ["new_run_id", "run_once"]

logger = logging.getLogger(__name__)


def new_run_id() -> str:
    """Return a short random id used to correlate one batch's log lines."""
    return uuid.uuid4().hex[:8]


async def run_once(
    ctx: RunContext,
    settings: Settings | None = None,
    *,
    conn: aiosqlite.Connection | None = None,
    mailer: MailTransport | None = None,
    now: datetime | None = None,
) -> BatchStats:
    """Execute a single notification batch.

    Args:
        ctx: Runtime operating-mode flags (dry-run / live).
        settings: Pre-loaded settings.  If ``None``, loaded from the
            environment and ``.env``.
        conn: Open database connection to use.  When ``None`` the database
            at ``settings.database_path_resolved`` is opened and closed here.
        mailer: Transport override.  When ``None`` in live mode an
            :class:`SmtpMailer` is built from settings.
        now: Batch start time; defaults to the current UTC time.

    Returns:
        The batch's :class:`~campusrent.orchestrator.batch.BatchStats`.

    Raises:
        ConfigError: Live mode without SMTP configuration.
        BatchError: The active saved searches could not be listed.
    """
    if settings is None:
        settings = Settings()

    token = RUN_ID_CTX.set(new_run_id())
    t0 = time.monotonic()
    try:
        logger.info(
            "run_once starting: mode=%s window=%d",
            ctx.mode_label,
            settings.notification_window,
            extra={"event": events.BATCH_START},
        )

        if ctx.should_send and mailer is None:
            if not settings.smtp_configured:
                logger.error(
                    "Live mode requires SMTP_HOST and SMTP_FROM",
                    extra={"event": events.BATCH_ABORT},
                )
                raise ConfigError(
                    "Live mode requires SMTP settings. "
                    "Set SMTP_HOST and SMTP_FROM in .env (or env vars), or use --dry-run."
                )
            mailer = SmtpMailer.from_settings(settings)

        notifier = DigestNotifier(mailer, ctx, app_base_url=settings.app_base_url)

        owns_conn = conn is None
        if conn is None:
            conn = await open_db(settings.database_path_resolved)
        try:
            searches = SavedSearchRepository(conn)
            try:
                active = await searches.fetch_active()
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "Could not list saved searches: %s",
                    exc,
                    extra={"event": events.BATCH_ABORT},
                )
                raise BatchError(f"Could not list saved searches: {exc}") from exc

            logger.info("%d saved search(es) with notifications enabled", len(active))
            stats = await run_batch(
                active,
                properties=PropertyRepository(conn),
                users=UserRepository(conn),
                searches=searches,
                notifier=notifier,
                window=settings.notification_window,
                now=now or datetime.now(UTC),
            )
        finally:
            if owns_conn:
                await conn.close()
                logger.debug("Database connection closed.")

        stats.duration_s = time.monotonic() - t0
        logger.info("%s", stats.format_report(), extra={"event": events.BATCH_COMPLETE})
        return stats
    finally:
        RUN_ID_CTX.reset(token)
