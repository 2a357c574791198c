"""High-level digest entry point.

Provides :class:`DigestNotifier`, the single object the notification batch
calls to deliver one saved-search digest.  It owns the decision of *whether*
to send (based on :class:`~campusrent.core.run_context.RunContext`) and
delegates to:

* :func:`~campusrent.notifiers.formatter.render_digest` for rendering.
* A mail transport (normally :class:`~campusrent.notifiers.mailer.SmtpMailer`)
  for delivery.

The notifier applies no filter logic and holds no search state.

Typical usage::

    notifier = DigestNotifier(SmtpMailer.from_settings(settings), ctx,
                              app_base_url=settings.app_base_url)
    await notifier.send_digest(digest)
"""

from __future__ import annotations

import logging
from typing import Protocol

from campusrent.core.exceptions import EmailDeliveryError
from campusrent.core.models import NotificationDigest
from campusrent.core.run_context import RunContext
from campusrent.notifiers.formatter import render_digest

__all__ = ["MailTransport", "DigestNotifier"]

logger = logging.getLogger(__name__)


class MailTransport(Protocol):
    """Anything with an async ``send(to, subject, html_body, text_body)``."""

    async def send(self, to: str, subject: str, html_body: str, text_body: str) -> None: ...


class DigestNotifier:
    """Renders and delivers saved-search digests.

    Respects the :class:`~campusrent.core.run_context.RunContext` operating
    mode:

    * **dry-run mode** (``ctx.dry_run=True``) renders the email and logs it
      at ``INFO`` instead of sending it.  Nothing was delivered, so
      :meth:`send_digest` reports ``False`` and the caller must not record
      the search as notified.
    * **live mode** renders and hands the email to the transport.

    Args:
        mailer: Transport to deliver through.  May be ``None`` in dry-run
            mode only.
        ctx: Runtime operating mode flags.
        app_base_url: Public base URL used for links inside the email.

    Raises:
        ValueError: If *mailer* is ``None`` in live mode.
    """

    def __init__(
        self,
        mailer: MailTransport | None,
        ctx: RunContext,
        *,
        app_base_url: str,
    ) -> None:
        if mailer is None and ctx.should_send:
            raise ValueError("DigestNotifier needs a mailer in live mode.")
        self._mailer = mailer
        self._ctx = ctx
        self._app_base_url = app_base_url.rstrip("/")

    async def send_digest(self, digest: NotificationDigest) -> bool:
        """Render and deliver *digest*.

        Returns:
            ``True`` once the email was handed to the transport, ``False``
            when it was only logged (dry-run).

        Raises:
            EmailDeliveryError: Propagated from the transport.  An ``ERROR``
                log entry is emitted first, so callers need not repeat it.
        """
        email = render_digest(digest, self._app_base_url)
        recipient = digest.contact.email

        if not self._ctx.should_send:
            logger.info(
                "[dry-run] Would email %s for search %s (%d properties)\nSubject: %s\n%s",
                recipient,
                digest.search_id,
                len(digest.properties),
                email.subject,
                email.text,
            )
            return False

        assert self._mailer is not None
        logger.debug("Sending digest for search %s to %s", digest.search_id, recipient)
        try:
            await self._mailer.send(recipient, email.subject, email.html, email.text)
        except EmailDeliveryError as exc:
            logger.error("Digest for search %s not delivered: %s", digest.search_id, exc)
            raise
        logger.info(
            "Digest sent for search %s to %s (%d properties)",
            digest.search_id,
            recipient,
            len(digest.properties),
        )
        return True
