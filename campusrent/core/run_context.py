"""Runtime context for a single Campusrent batch invocation.

Encapsulates the operating mode that alters notifier behaviour without
changing any configuration values.  A single :class:`RunContext` is created by
the caller (CLI or HTTP trigger) and threaded through the orchestrator to the
notifier.

Current flags
-------------
dry_run
    Run the full batch including digest rendering, but **log the email**
    instead of handing it to the SMTP relay.  Nothing was delivered, so
    ``last_notified`` is never written and a later live run still sends
    the digest.

:attr:`should_send` is the single property every layer should read:

    >>> RunContext().should_send
    True

    >>> RunContext(dry_run=True).should_send
    False
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

__all__ = ["RunContext"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunContext:
    """Immutable container for per-invocation operating-mode flags.

    Attributes:
        dry_run: When ``True``, digests are rendered and logged but no email
            leaves the process.
    """

    dry_run: bool = field(default=False)

    @property
    def should_send(self) -> bool:
        """Return ``True`` if the notifier should hand mail to the transport."""
        return not self.dry_run

    @property
    def mode_label(self) -> str:
        """Human-readable label for the current mode: ``"dry-run"`` or ``"live"``."""
        return "dry-run" if self.dry_run else "live"

    def __str__(self) -> str:
        return f"RunContext(mode={self.mode_label})"
