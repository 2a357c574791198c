"""SMTP transport for digest emails.

Provides :class:`SmtpMailer`, a thin async wrapper around :mod:`smtplib`.  It
handles:

* Implicit TLS (``SMTP_SSL``) or an optional STARTTLS upgrade.
* Optional login.
* A per-connection timeout budget.
* Mapping every transport failure to
  :class:`~campusrent.core.exceptions.EmailDeliveryError`.

:mod:`smtplib` is blocking, so each send runs in a worker thread through
:func:`asyncio.to_thread`.  One connection is opened per message; digests are
sent sequentially and volumes are small.  There is no retry: a failed send
leaves the saved search's watermark untouched and the next batch tries again.

This module owns *transport* concerns only.  Message rendering lives in
:mod:`campusrent.notifiers.formatter`.

Typical usage::

    mailer = SmtpMailer.from_settings(settings)
    await mailer.send("student@example.edu", subject, html_body, text_body)
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import TYPE_CHECKING, Final

from campusrent.core.exceptions import EmailDeliveryError

if TYPE_CHECKING:
    from campusrent.core.settings import Settings

__all__ = ["SmtpMailer"]

logger = logging.getLogger(__name__)

#: Default seconds before an SMTP connection attempt is abandoned.
_DEFAULT_TIMEOUT: Final[float] = 30.0


class SmtpMailer:
    """Send multipart (HTML + text) emails through an SMTP relay.

    Args:
        host: Relay hostname (non-empty).
        port: Relay port.
        sender: ``From`` address (non-empty).
        username: Login user.  Login is skipped when empty.
        password: Login password.
        secure: Connect with implicit TLS (``SMTP_SSL``).
        starttls: Upgrade a plain connection with STARTTLS.  Ignored when
            *secure* is set.
        timeout: Socket timeout in seconds.

    Raises:
        ValueError: If *host* or *sender* is empty, or *timeout* ≤ 0.
    """

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        *,
        username: str = "",
        password: str = "",
        secure: bool = False,
        starttls: bool = True,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        if not host:
            raise ValueError("SmtpMailer requires a non-empty host.")
        if not sender:
            raise ValueError("SmtpMailer requires a non-empty sender address.")
        if timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {timeout!r}.")

        self._host = host
        self._port = port
        self._sender = sender
        self._username = username
        self._password = password
        self._secure = secure
        self._starttls = starttls
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> SmtpMailer:
        """Build a mailer from the ``SMTP_*`` settings."""
        return cls(
            settings.smtp_host,
            settings.smtp_port,
            settings.smtp_from,
            username=settings.smtp_username,
            password=settings.smtp_password,
            secure=settings.smtp_secure,
            starttls=settings.smtp_starttls,
            timeout=settings.smtp_timeout,
        )

    def __repr__(self) -> str:
        mode = "ssl" if self._secure else ("starttls" if self._starttls else "plain")
        return f"SmtpMailer(host={self._host!r}, port={self._port}, mode={mode})"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build_message(self, to: str, subject: str, html_body: str, text_body: str) -> EmailMessage:
        """Assemble a ``multipart/alternative`` message."""
        message = EmailMessage()
        message["From"] = self._sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text_body)
        message.add_alternative(html_body, subtype="html")
        return message

    async def send(self, to: str, subject: str, html_body: str, text_body: str) -> None:
        """Deliver one email.

        Raises:
            EmailDeliveryError: The relay refused the message, the connection
                failed, or the login was rejected.
        """
        message = self.build_message(to, subject, html_body, text_body)
        logger.debug("SMTP send to %s via %r", to, self)
        try:
            await asyncio.to_thread(self._deliver, message)
        except smtplib.SMTPRecipientsRefused as exc:
            raise EmailDeliveryError(to, "recipient refused by relay") from exc
        except smtplib.SMTPAuthenticationError as exc:
            raise EmailDeliveryError(to, f"SMTP authentication failed ({exc.smtp_code})") from exc
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(to, str(exc) or type(exc).__name__) from exc

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _connect(self) -> smtplib.SMTP:
        if self._secure:
            return smtplib.SMTP_SSL(
                self._host,
                self._port,
                timeout=self._timeout,
                context=ssl.create_default_context(),
            )
        return smtplib.SMTP(self._host, self._port, timeout=self._timeout)

    def _deliver(self, message: EmailMessage) -> None:
        """Blocking send; runs in a worker thread."""
        with self._connect() as smtp:
            if not self._secure and self._starttls:
                smtp.starttls(context=ssl.create_default_context())
            if self._username:
                smtp.login(self._username, self._password)
            smtp.send_message(message)
