"""Property filter engine shared by interactive search and notifications."""

from campusrent.filters.engine import (
    FilterScope,
    PropertyFilter,
    build_predicates,
    filter_properties,
    similar_properties,
)

__all__ = [
    "FilterScope",
    "PropertyFilter",
    "build_predicates",
    "filter_properties",
    "similar_properties",
]
