"""Campusrent logging configuration.

Call ``configure_logging()`` once at process startup (CLI entry-point or the
ASGI app factory).  Every other module defines its own logger at module
scope:

    import logging
    logger = logging.getLogger(__name__)

Supported environment variables (read at call time):
    LOG_LEVEL   DEBUG | INFO | WARNING | ERROR   (default: INFO)
    LOG_FORMAT  text | json                      (default: text)
"""

from __future__ import annotations

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

__all__ = ["configure_logging", "JsonFormatter", "RUN_ID_CTX", "RunContextFilter"]

# ---------------------------------------------------------------------------
# Run-scoped context variable
# ---------------------------------------------------------------------------

#: Async-safe context variable holding the current batch-run identifier.
#: Set to ``uuid4().hex[:8]`` at the start of every
#: :func:`~campusrent.orchestrator.runner.run_once` call and reset on exit.
#: Defaults to ``"-"`` outside a run (HTTP search requests, startup, tests).
RUN_ID_CTX: ContextVar[str] = ContextVar("run_id", default="-")

logger = logging.getLogger(__name__)

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_VALID_FORMATS = {"text", "json"}
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "aiosqlite", "uvicorn.access")

_TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(run_id)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class RunContextFilter(logging.Filter):
    """Inject the current batch-run id into every log record.

    Installed on the handler by :func:`configure_logging` so the
    ``%(run_id)s`` token always resolves, and so JSON output carries
    ``run_id`` under ``extra``.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.run_id = RUN_ID_CTX.get("-")
        return True


def configure_logging(
    level: str | None = None,
    fmt: str | None = None,
    *,
    force: bool = False,
) -> None:
    """Configure the root logger for the entire process.

    Args:
        level: Logging level string (DEBUG/INFO/WARNING/ERROR/CRITICAL).
            Falls back to ``$LOG_LEVEL`` env var, then "INFO".
        fmt: Output format ("text" or "json").
            Falls back to ``$LOG_FORMAT`` env var, then "text".
        force: If True, reconfigure even if logging has already been set up.

    Raises:
        ValueError: If *level* or *fmt* contain an unrecognised value.
    """
    resolved_level = _resolve("LOG_LEVEL", level, "INFO", _VALID_LEVELS).upper()
    resolved_fmt = _resolve("LOG_FORMAT", fmt, "text", _VALID_FORMATS).lower()

    root = logging.getLogger()
    root.setLevel(resolved_level)
    if root.handlers and not force:
        # uvicorn or pytest already installed handlers; keep them.
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(RunContextFilter())
    handler.setFormatter(
        JsonFormatter()
        if resolved_fmt == "json"
        else logging.Formatter(fmt=_TEXT_FORMAT, datefmt=_DATE_FORMAT)
    )
    root.handlers[:] = [handler]

    quiet_level = logging.NOTSET if resolved_level == "DEBUG" else logging.WARNING
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)


def _resolve(env_var: str, value: str | None, default: str, allowed: set[str]) -> str:
    resolved = value or os.environ.get(env_var, default)
    if resolved.upper() not in allowed and resolved.lower() not in allowed:
        raise ValueError(
            f"Unknown {env_var} {resolved!r}. Must be one of: {', '.join(sorted(allowed))}"
        )
    return resolved


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------

#: Attributes every ``LogRecord`` carries; anything else came from ``extra``.
_STANDARD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """One JSON object per record: ``ts``, ``level``, ``logger``, ``message``, ``extra``.

    ``extra`` holds the caller's ``extra={...}`` keys plus ``run_id``.  An
    ``exc_info`` string is added only for records logged with a traceback.
    Values that are not JSON-native are rendered with ``str``.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        created = datetime.fromtimestamp(record.created, tz=UTC)
        payload: dict[str, Any] = {
            "ts": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "extra": {k: v for k, v in vars(record).items() if k not in _STANDARD_ATTRS},
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)
