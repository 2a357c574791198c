"""Campusrent filter specification model.

Defines :class:`FilterSpec`, the single structured description of *what a
tenant is looking for*.  Every recognised option is enumerated here and is
explicitly optional; a FilterSpec is resolved once and then handed to the Filter
Engine (:mod:`campusrent.filters.engine`), which never mutates it.

Two callers build specs:

* the interactive search endpoint, from query-string values (scalars);
* the notification batch, from a stored
  :class:`~campusrent.core.models.SavedSearchFilters` (sets), via
  :func:`spec_from_saved_filters`.

``bedrooms``, ``bathrooms`` and ``property_type`` accept either a scalar or a
collection and are normalised to a ``frozenset``.  A scalar ``N`` therefore
means "exactly N", the same predicate as the set ``{N}``.

Typical usage::

    from campusrent.core.criteria import FilterSpec

    spec = FilterSpec(
        price_min=30000,
        price_max=50000,
        bedrooms=2,
        property_type="apartment",
    )
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from pydantic import BaseModel, field_validator

if TYPE_CHECKING:
    from campusrent.core.models import SavedSearchFilters

__all__ = ["FilterSpec", "spec_from_saved_filters"]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_frozenset(value: object) -> object:
    """Wrap a scalar into a one-element set; collapse empty collections to None."""
    if value is None:
        return None
    if isinstance(value, (str, int, float)):
        return frozenset({value})
    if isinstance(value, Iterable):
        items = frozenset(value)
        return items or None
    return value


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------


class FilterSpec(BaseModel):
    """Structured, immutable filter configuration.

    ``None`` on any field means "no constraint on this axis".  All bounds are
    inclusive.  An inverted price range is accepted and simply matches
    nothing; filter input never raises.

    Attributes:
        price_min: Lower bound on monthly price.
        price_max: Upper bound on monthly price.
        bedrooms: Accepted bedroom counts (exact match, not "at least").
        bathrooms: Accepted bathroom counts (exact match).
        property_type: Accepted property-type strings (case-sensitive).
        max_distance: Upper bound on distance from campus.
        amenities: Amenities that must all be present and true.
        search_query: Case-insensitive substring looked up in title,
            location and description.
        exclude_ids: Property ids to leave out (e.g. the listing being
            viewed when computing similar listings).
    """

    model_config = {"frozen": True}

    price_min: float | None = None
    price_max: float | None = None
    bedrooms: frozenset[int] | None = None
    bathrooms: frozenset[int] | None = None
    property_type: frozenset[str] | None = None
    max_distance: float | None = None
    amenities: frozenset[str] | None = None
    search_query: str | None = None
    exclude_ids: frozenset[str] | None = None

    @field_validator(
        "bedrooms",
        "bathrooms",
        "property_type",
        "amenities",
        "exclude_ids",
        mode="before",
    )
    @classmethod
    def _normalise_sets(cls, v: object) -> object:
        return _to_frozenset(v)

    @field_validator("search_query", mode="before")
    @classmethod
    def _blank_query_to_none(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v


def spec_from_saved_filters(filters: SavedSearchFilters) -> FilterSpec:
    """Translate stored saved-search filters into a :class:`FilterSpec`.

    Every stored field is carried over; which of them apply is decided by the
    engine's scope, not here.  ``location`` becomes the text query and
    ``distance`` the distance bound.
    """
    price = filters.price_range
    return FilterSpec(
        price_min=price.min if price is not None else None,
        price_max=price.max if price is not None else None,
        bedrooms=filters.bedrooms,
        bathrooms=filters.bathrooms,
        property_type=filters.property_types,
        max_distance=filters.distance,
        amenities=filters.amenities,
        search_query=filters.location,
    )
