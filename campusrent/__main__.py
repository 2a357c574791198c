"""Campusrent process entry-point.

Usage:
    python -m campusrent [--once | --serve] [--dry-run] [--log-level LEVEL] [--log-format FORMAT]

The orchestration logic lives in ``campusrent.orchestrator``.  This module
calls ``configure_logging()`` first so that every subsequent import already
has a working logger, then either runs one batch (``--once``, the default)
or serves the HTTP API with uvicorn (``--serve``) so an external scheduler
can trigger batches over HTTP.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pydantic import ValidationError

from campusrent.core import configure_logging
from campusrent.core.exceptions import BatchError, ConfigError
from campusrent.core.run_context import RunContext
from campusrent.core.settings import Settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="campusrent",
        description="Saved-search email notifications for campus rentals.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--once",
        action="store_true",
        help="Run a single notification batch and exit (default).",
    )
    mode.add_argument(
        "--serve",
        action="store_true",
        help="Serve the HTTP API, including the batch trigger endpoint.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log digest emails instead of sending them.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        metavar="LEVEL",
        help="Override LOG_LEVEL env var (DEBUG|INFO|WARNING|ERROR).",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        metavar="FORMAT",
        help="Override LOG_FORMAT env var (text|json).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry-point registered in ``pyproject.toml``.

    Returns:
        Process exit status: 0 on success, 1 on configuration or batch failure.
    """
    args = build_parser().parse_args(argv)

    try:
        configure_logging(level=args.log_level, fmt=args.log_format)
    except ValueError as exc:
        print(f"campusrent: configuration error: {exc}", file=sys.stderr)  # noqa: T201
        return 1

    logger = logging.getLogger(__name__)

    try:
        settings = Settings()
    except ValidationError as exc:
        logger.critical("Invalid configuration: %s", exc)
        return 1

    if args.dry_run:
        settings = settings.model_copy(update={"dry_run": True})
    ctx = RunContext(dry_run=settings.dry_run)
    logger.info("Campusrent starting up: %s", ctx)

    if args.serve:
        import uvicorn  # noqa: PLC0415

        from campusrent.api.app import create_app  # noqa: PLC0415

        uvicorn.run(create_app(settings), host=settings.api_host, port=settings.api_port)
        return 0

    from campusrent.orchestrator.runner import run_once  # noqa: PLC0415

    try:
        asyncio.run(run_once(ctx, settings))
    except ConfigError as exc:
        logger.critical("Configuration error: %s", exc)
        return 1
    except BatchError as exc:
        logger.critical("Batch aborted: %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting.")
        return 0
    return 0


if __name__ == "__main__":
    sys.exit(main())
