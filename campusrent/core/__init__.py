"""Core domain models, settings, logging configuration, and shared utilities."""

from campusrent.core.criteria import FilterSpec, spec_from_saved_filters
from campusrent.core.exceptions import (
    BatchError,
    CampusRentError,
    ConfigError,
    EmailDeliveryError,
    MalformedRecordError,
    NotificationError,
    PermissionDeniedError,
    RecordNotFoundError,
    StorageError,
)
from campusrent.core.logging_config import JsonFormatter, configure_logging
from campusrent.core.models import (
    NotificationDigest,
    NotificationFrequency,
    PriceRange,
    Property,
    PropertyType,
    SavedSearch,
    SavedSearchFilters,
    UserContact,
)
from campusrent.core.settings import Settings

__all__ = [
    # Logging
    "configure_logging",
    "JsonFormatter",
    # Domain models
    "Property",
    "PropertyType",
    "PriceRange",
    "SavedSearch",
    "SavedSearchFilters",
    "NotificationFrequency",
    "UserContact",
    "NotificationDigest",
    # Settings
    "Settings",
    # Filter specification
    "FilterSpec",
    "spec_from_saved_filters",
    # Exceptions
    "CampusRentError",
    "ConfigError",
    "StorageError",
    "RecordNotFoundError",
    "PermissionDeniedError",
    "MalformedRecordError",
    "NotificationError",
    "EmailDeliveryError",
    "BatchError",
]
