"""Digest email rendering and SMTP delivery."""

from campusrent.notifiers.formatter import RenderedEmail, render_digest
from campusrent.notifiers.mailer import SmtpMailer
from campusrent.notifiers.notifier import DigestNotifier, MailTransport

__all__ = [
    "DigestNotifier",
    "MailTransport",
    "RenderedEmail",
    "SmtpMailer",
    "render_digest",
]
