"""Digest email formatter.

Converts a :class:`~campusrent.core.models.NotificationDigest` into a
ready-to-send email: a subject line, an HTML body and a plain-text
alternative.

Escaping rules
--------------
Every value that originates from a user (search name, property title,
description, location) is passed through :func:`html.escape` before it is
embedded in the HTML body.  Property ids are URL-quoted before they become
part of a link.  The plain-text body is never escaped.

Public API
----------
:func:`format_subject`: Subject line for a digest.

:func:`format_html`: HTML body with one card per property.

:func:`format_text`: Plain-text alternative.

:func:`render_digest`: All three at once as a :class:`RenderedEmail`.

Typical usage::

    from campusrent.notifiers.formatter import render_digest

    email = render_digest(digest, app_base_url=settings.app_base_url)
    await mailer.send(digest.contact.email, email.subject, email.html, email.text)
"""

from __future__ import annotations

import html
import logging
from typing import NamedTuple
from urllib.parse import quote

from campusrent.core.models import NotificationDigest, Property

__all__ = [
    "RenderedEmail",
    "format_subject",
    "format_html",
    "format_text",
    "render_digest",
]

logger = logging.getLogger(__name__)

#: Descriptions longer than this are cut in the plain-text body.
DESCRIPTION_MAX_CHARS: int = 300

_BRAND_COLOUR = "#002f6c"


class RenderedEmail(NamedTuple):
    """The three parts of a digest email."""

    subject: str
    html: str
    text: str


# ---------------------------------------------------------------------------
# Field formatters
# ---------------------------------------------------------------------------


def _fmt_price(price: float) -> str:
    """Format rent as ``$N/mo``, dropping a zero fractional part."""
    if float(price).is_integer():
        return f"${int(price):,}/mo"
    return f"${price:,.2f}/mo"


def _fmt_count(value: int | None, singular: str, plural: str) -> str | None:
    if value is None:
        return None
    return f"{value} {singular if value == 1 else plural}"


def _detail_parts(prop: Property) -> list[str]:
    parts = [_fmt_price(prop.price)]
    beds = _fmt_count(prop.bedrooms, "bed", "beds")
    if beds:
        parts.append(beds)
    baths = _fmt_count(prop.bathrooms, "bath", "baths")
    if baths:
        parts.append(baths)
    return parts


def _property_url(app_base_url: str, prop: Property) -> str:
    return f"{app_base_url}/properties/{quote(prop.id, safe='')}"


def _preferences_url(app_base_url: str) -> str:
    return f"{app_base_url}/saved-searches"


def _summary_line(digest: NotificationDigest) -> str:
    count = len(digest.properties)
    noun = "property" if count == 1 else "properties"
    return f"We found {count} new {noun} matching your saved search \"{digest.search_name}\"."


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------


def format_subject(digest: NotificationDigest) -> str:
    """Return the digest subject line.

    Line breaks in the search name are collapsed so the header stays valid.
    """
    name = " ".join(digest.search_name.split())
    return f"New Properties Matching Your Search: {name}"


def _html_card(prop: Property, app_base_url: str) -> str:
    spans = "".join(
        f'<span style="color: #6b7280; margin-right: 20px;">{html.escape(part)}</span>'
        for part in _detail_parts(prop)
    )
    description = ""
    if prop.description:
        description = (
            f'<p style="margin: 0 0 10px 0; color: #4b5563;">{html.escape(prop.description)}</p>'
        )
    href = html.escape(_property_url(app_base_url, prop), quote=True)
    return (
        '<div style="margin-bottom: 20px; padding: 15px; border: 1px solid #e5e7eb; '
        'border-radius: 8px;">'
        f'<h3 style="margin: 0 0 10px 0; color: {_BRAND_COLOUR};">{html.escape(prop.title)}</h3>'
        f"{description}"
        f'<div style="margin-bottom: 10px;">{spans}</div>'
        f'<a href="{href}" style="display: inline-block; padding: 8px 16px; '
        f'background-color: {_BRAND_COLOUR}; color: white; text-decoration: none; '
        'border-radius: 4px;">View Property</a>'
        "</div>"
    )


def format_html(digest: NotificationDigest, app_base_url: str) -> str:
    """Return the HTML body: heading, summary, one card per property, footer."""
    base = app_base_url.rstrip("/")
    cards = "".join(_html_card(prop, base) for prop in digest.properties)
    prefs = html.escape(_preferences_url(base), quote=True)
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f'<h2 style="color: {_BRAND_COLOUR}; margin-bottom: 20px;">New Properties Found</h2>'
        f'<p style="color: #4b5563; margin-bottom: 20px;">{html.escape(_summary_line(digest))}</p>'
        f"{cards}"
        '<p style="color: #6b7280; margin-top: 20px; font-size: 14px;">'
        "You're receiving this email because you have saved search notifications enabled. "
        f'<a href="{prefs}" style="color: {_BRAND_COLOUR};">Manage your notification preferences</a>'
        "</p>"
        "</div>"
    )


def format_text(digest: NotificationDigest, app_base_url: str) -> str:
    """Return the plain-text alternative body."""
    base = app_base_url.rstrip("/")
    lines: list[str] = ["New Properties Found", "", _summary_line(digest), ""]

    for prop in digest.properties:
        lines.append(prop.title or prop.id)
        lines.append(" | ".join(_detail_parts(prop)))
        if prop.description:
            snippet = prop.description.strip()
            if len(snippet) > DESCRIPTION_MAX_CHARS:
                snippet = snippet[:DESCRIPTION_MAX_CHARS].rstrip() + "..."
            lines.append(snippet)
        lines.append(f"View Property: {_property_url(base, prop)}")
        lines.append("")

    lines.append("You're receiving this email because you have saved search notifications enabled.")
    lines.append(f"Manage your notification preferences: {_preferences_url(base)}")
    return "\n".join(lines)


def render_digest(digest: NotificationDigest, app_base_url: str) -> RenderedEmail:
    """Render subject, HTML and plain text for *digest*.

    Args:
        digest: Selected properties for one saved search.
        app_base_url: Public base URL links are built from.

    Returns:
        A :class:`RenderedEmail`.
    """
    return RenderedEmail(
        subject=format_subject(digest),
        html=format_html(digest, app_base_url),
        text=format_text(digest, app_base_url),
    )
