"""Campusrent core domain models.

This module defines the canonical :class:`Property` and :class:`SavedSearch`
models and the related types shared across the storage, filter, notification
and API layers.

Documents read from the store are validated into these models once, at the
repository boundary.  Everything downstream can rely on the declared types.

Typical usage::

    from campusrent.core.models import Property

    prop = Property(
        id="p-1",
        title="2 bed apartment near the north gate",
        price=40000,
        property_type="apartment",
        bedrooms=2,
        bathrooms=1,
        landlord_id="landlord-7",
    )
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

__all__ = [
    "PropertyType",
    "Property",
    "NotificationFrequency",
    "PriceRange",
    "SavedSearchFilters",
    "SavedSearch",
    "UserContact",
    "NotificationDigest",
]

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: object) -> object:
    """Attach UTC to naive datetimes so comparisons never mix aware and naive."""
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class PropertyType(StrEnum):
    """Property categories offered by the listing form."""

    APARTMENT = "apartment"
    HOUSE = "house"
    STUDIO = "studio"
    TOWNHOUSE = "townhouse"
    OTHER = "other"


class NotificationFrequency(StrEnum):
    """How often a saved search may produce a digest email."""

    INSTANT = "instant"
    DAILY = "daily"
    WEEKLY = "weekly"


# ---------------------------------------------------------------------------
# Property
# ---------------------------------------------------------------------------


class Property(BaseModel):
    """A rental listing as stored in the ``properties`` collection.

    ``property_type`` is kept as the raw stored string rather than coerced to
    :class:`PropertyType`: type filtering is a case-sensitive exact match on
    whatever the document holds.  Use :attr:`type_enum` for the typed view.

    Optional numeric fields are ``None`` when the document omits them.  The
    Filter Engine treats ``None`` as failing any predicate on that field.

    Attributes:
        id: Document identifier.
        title: Listing headline.
        description: Body text; empty string when absent.
        price: Monthly rent (non-negative).
        location: Free-text location; empty string when absent.
        property_type: Category string (see :class:`PropertyType`).
        bedrooms: Bedroom count.
        bathrooms: Bathroom count.
        area: Floor area.
        distance: Distance from campus in km.
        amenities: Mapping of amenity id to presence flag.
        image_urls: Hosted image URLs.
        landlord_id: Owning landlord's user id.
        available_from: Free-text availability date from the listing form.
        lease_term: Free-text lease term.
        deposit: Security deposit amount.
        created_at: Creation timestamp (UTC).
        deleted: Logical-delete flag; deleted properties leave the catalog.
    """

    model_config = {"frozen": True}

    id: str = Field(..., min_length=1)
    title: str = Field(default="")
    description: str = Field(default="")
    price: float = Field(..., ge=0)
    location: str = Field(default="")
    property_type: str = Field(default=PropertyType.OTHER.value)
    bedrooms: int | None = Field(None, ge=0)
    bathrooms: int | None = Field(None, ge=0)
    area: float | None = Field(None, ge=0)
    distance: float | None = Field(None, ge=0)
    amenities: dict[str, bool] = Field(default_factory=dict)
    image_urls: list[str] = Field(default_factory=list)
    landlord_id: str = Field(default="")
    available_from: str | None = None
    lease_term: str | None = None
    deposit: float | None = Field(None, ge=0)
    created_at: datetime = Field(default_factory=_utcnow)
    deleted: bool = False

    @field_validator("title", "description", "location", mode="before")
    @classmethod
    def _none_to_empty(cls, v: object) -> object:
        """Missing text fields match as empty strings."""
        return "" if v is None else v

    @field_validator("amenities", mode="before")
    @classmethod
    def _coerce_amenities(cls, v: object) -> object:
        """Accept a list of amenity ids (older documents) as a presence map."""
        if v is None:
            return {}
        if isinstance(v, (list, tuple, set, frozenset)):
            return {str(name): True for name in v}
        return v

    @field_validator("created_at", mode="after")
    @classmethod
    def _created_at_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)  # type: ignore[return-value]

    @property
    def type_enum(self) -> PropertyType | None:
        """Return the typed category, or ``None`` for an unknown string."""
        try:
            return PropertyType(self.property_type)
        except ValueError:
            return None

    def has_amenity(self, name: str) -> bool:
        """Return ``True`` only if *name* is present and set to true."""
        return self.amenities.get(name) is True


# ---------------------------------------------------------------------------
# Saved searches
# ---------------------------------------------------------------------------


class PriceRange(BaseModel):
    """Inclusive price bounds stored on a saved search."""

    model_config = {"frozen": True}

    min: float | None = Field(None, ge=0)
    max: float | None = Field(None, ge=0)


class SavedSearchFilters(BaseModel):
    """Filter specification persisted with a saved search.

    Every field is optional; ``None`` (or an empty list) means no constraint.
    Only ``property_types``, ``price_range``, ``bedrooms`` and ``bathrooms``
    take part in notification matching.  The rest are kept so the search can
    be replayed interactively.
    """

    model_config = {"frozen": True, "populate_by_name": True}

    property_types: list[str] | None = Field(None, alias="propertyType")
    price_range: PriceRange | None = Field(None, alias="priceRange")
    bedrooms: list[int] | None = None
    bathrooms: list[int] | None = None
    amenities: list[str] | None = None
    location: str | None = None
    distance: float | None = Field(None, ge=0)

    @field_validator("property_types", mode="before")
    @classmethod
    def _wrap_single_type(cls, v: object) -> object:
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("bedrooms", "bathrooms", mode="before")
    @classmethod
    def _wrap_single_count(cls, v: object) -> object:
        if isinstance(v, int):
            return [v]
        return v


class SavedSearch(BaseModel):
    """A named, persisted filter specification owned by one user.

    ``last_notified`` is the watermark advanced by the notification batch
    after a digest was sent successfully.  Nothing else in the batch mutates
    the record.
    """

    model_config = {"frozen": True}

    id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    name: str = Field(default="")
    filters: SavedSearchFilters = Field(default_factory=SavedSearchFilters)
    email_notifications: bool = False
    notification_frequency: NotificationFrequency = NotificationFrequency.DAILY
    last_notified: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("last_notified", "created_at", "updated_at", mode="after")
    @classmethod
    def _timestamps_utc(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Users and digests
# ---------------------------------------------------------------------------


class UserContact(BaseModel):
    """Contact details needed to address a digest email."""

    model_config = {"frozen": True}

    user_id: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    display_name: str = Field(default="")

    @field_validator("email", mode="before")
    @classmethod
    def _email_has_at(cls, v: object) -> object:
        if isinstance(v, str) and "@" not in v:
            raise ValueError("email must contain '@'")
        return v


class NotificationDigest(BaseModel):
    """Properties selected for one saved search at notification time.

    Built per search by the batch, consumed once by the notifier, never
    persisted.
    """

    model_config = {"frozen": True}

    search_id: str
    search_name: str
    contact: UserContact
    properties: list[Property]
