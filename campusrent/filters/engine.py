"""Property Filter Engine.

One predicate-composition function shared by the interactive search endpoint
and the saved-search notification batch.  A :class:`~campusrent.core.criteria.FilterSpec`
is turned into an **ordered list of predicate closures**, which is then folded
over the catalog.  Absent spec fields contribute no predicate.

Predicate order (each is a pure narrowing step):

1. ``price >= price_min``
2. ``price <= price_max``
3. ``bedrooms`` in the accepted set (exact match, **not** "at least")
4. ``bathrooms`` in the accepted set (exact match)
5. ``property_type`` in the accepted set (case-sensitive)
6. ``distance <= max_distance``
7. ``id`` not in ``exclude_ids``
8. ``search_query`` is a case-insensitive substring of title, location or
   description
9. every requested amenity is present and ``True``

:class:`FilterScope` selects which predicates are active.  The notification
batch runs with :attr:`FilterScope.NOTIFICATION`, which keeps only price,
bedrooms, bathrooms and type.

The engine never raises on input: a property whose field is ``None`` simply
fails the predicate that reads it.  Output is a stable filter of the input;
no re-sorting, no pagination.

Typical usage::

    from campusrent.core.criteria import FilterSpec
    from campusrent.filters.engine import filter_properties

    spec = FilterSpec(price_max=50000, bedrooms=2, amenities=["wifi"])
    matches = filter_properties(catalog, spec)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum

from campusrent.core.criteria import FilterSpec
from campusrent.core.models import Property

__all__ = [
    "FilterScope",
    "Predicate",
    "build_predicates",
    "filter_properties",
    "similar_properties",
    "PropertyFilter",
]

logger = logging.getLogger(__name__)

#: Fraction either side of the reference price accepted by :func:`similar_properties`.
SIMILAR_PRICE_TOLERANCE: float = 0.2

#: Default number of similar listings returned.
SIMILAR_DEFAULT_LIMIT: int = 3


# ---------------------------------------------------------------------------
# Scope
# ---------------------------------------------------------------------------


class FilterScope(StrEnum):
    """Which predicate subset :func:`build_predicates` emits."""

    INTERACTIVE = "interactive"
    NOTIFICATION = "notification"


_NOTIFICATION_PREDICATES: frozenset[str] = frozenset(
    {"price_min", "price_max", "bedrooms", "bathrooms", "property_type"}
)


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Predicate:
    """A named narrowing step.

    Attributes:
        name: Spec field the predicate was built from.
        test: Returns ``True`` when the property survives this step.
    """

    name: str
    test: Callable[[Property], bool]

    def __call__(self, prop: Property) -> bool:
        return self.test(prop)


def _text_contains(needle: str) -> Callable[[Property], bool]:
    def test(prop: Property) -> bool:
        for haystack in (prop.title, prop.location, prop.description):
            if needle in (haystack or "").lower():
                return True
        return False

    return test


def build_predicates(
    spec: FilterSpec,
    scope: FilterScope = FilterScope.INTERACTIVE,
) -> list[Predicate]:
    """Build the ordered predicate list for *spec* within *scope*.

    Args:
        spec: Resolved filter configuration.
        scope: Predicate subset to emit.

    Returns:
        Predicates in evaluation order.  Empty when nothing constrains.
    """
    predicates: list[Predicate] = []

    if spec.price_min is not None:
        lo = spec.price_min
        predicates.append(Predicate("price_min", lambda p: p.price >= lo))
    if spec.price_max is not None:
        hi = spec.price_max
        predicates.append(Predicate("price_max", lambda p: p.price <= hi))
    if spec.bedrooms is not None:
        beds = spec.bedrooms
        predicates.append(Predicate("bedrooms", lambda p: p.bedrooms is not None and p.bedrooms in beds))
    if spec.bathrooms is not None:
        baths = spec.bathrooms
        predicates.append(Predicate("bathrooms", lambda p: p.bathrooms is not None and p.bathrooms in baths))
    if spec.property_type is not None:
        types = spec.property_type
        predicates.append(Predicate("property_type", lambda p: p.property_type in types))
    if spec.max_distance is not None:
        max_d = spec.max_distance
        predicates.append(Predicate("max_distance", lambda p: p.distance is not None and p.distance <= max_d))
    if spec.exclude_ids is not None:
        excluded = spec.exclude_ids
        predicates.append(Predicate("exclude_ids", lambda p: p.id not in excluded))
    if spec.search_query is not None:
        predicates.append(Predicate("search_query", _text_contains(spec.search_query.lower())))
    if spec.amenities is not None:
        wanted = sorted(spec.amenities)
        predicates.append(
            Predicate("amenities", lambda p: all(p.has_amenity(name) for name in wanted))
        )

    if scope == FilterScope.NOTIFICATION:
        predicates = [pred for pred in predicates if pred.name in _NOTIFICATION_PREDICATES]

    return predicates


def filter_properties(
    properties: Iterable[Property],
    spec: FilterSpec,
    *,
    scope: FilterScope = FilterScope.INTERACTIVE,
) -> list[Property]:
    """Return the properties that satisfy every active predicate of *spec*.

    Args:
        properties: Catalog snapshot, in the order it should be returned.
        spec: Filter configuration.
        scope: Predicate subset to apply.

    Returns:
        Surviving properties in their original relative order.
    """
    survivors = list(properties)
    for predicate in build_predicates(spec, scope):
        survivors = [prop for prop in survivors if predicate(prop)]
        if not survivors:
            break
    return survivors


def similar_properties(
    catalog: Iterable[Property],
    reference: Property,
    *,
    limit: int = SIMILAR_DEFAULT_LIMIT,
) -> list[Property]:
    """Return up to *limit* listings resembling *reference*.

    Same type, price within ±20%, same bedroom count, reference excluded.
    """
    spec = FilterSpec(
        property_type=reference.property_type,
        price_min=reference.price * (1 - SIMILAR_PRICE_TOLERANCE),
        price_max=reference.price * (1 + SIMILAR_PRICE_TOLERANCE),
        bedrooms=reference.bedrooms,
        exclude_ids=[reference.id],
    )
    return filter_properties(catalog, spec)[: max(limit, 0)]


# ---------------------------------------------------------------------------
# Stateful wrapper
# ---------------------------------------------------------------------------


class PropertyFilter:
    """A filter bound to one spec and scope, with an audit log per batch.

    The predicate list is built once at construction, so reusing an instance
    across many catalogs does not rebuild closures.  The instance holds no
    mutable state and is safe to share between coroutines.

    Args:
        spec: Filter configuration.
        scope: Predicate subset to apply.
    """

    def __init__(
        self,
        spec: FilterSpec,
        scope: FilterScope = FilterScope.INTERACTIVE,
    ) -> None:
        self._spec = spec
        self._scope = scope
        self._predicates = build_predicates(spec, scope)

    @property
    def predicate_names(self) -> list[str]:
        """Names of the active predicates, in evaluation order."""
        return [pred.name for pred in self._predicates]

    def matches(self, prop: Property) -> bool:
        """Return ``True`` if *prop* passes every active predicate."""
        return all(pred(prop) for pred in self._predicates)

    def filter_many(self, properties: Sequence[Property]) -> list[Property]:
        """Filter *properties*, logging a one-line summary."""
        if not properties:
            logger.debug("filter_many called with an empty catalog")
            return []

        passing = [prop for prop in properties if self.matches(prop)]
        logger.debug(
            "Property filter (%s, predicates=%s): %d/%d passed",
            self._scope,
            ",".join(self.predicate_names) or "none",
            len(passing),
            len(properties),
        )
        return passing
