"""Unit tests for the core package.

Covers:
- :class:`~campusrent.core.models.Property` validation and coercions.
- :class:`~campusrent.core.models.SavedSearchFilters` aliases and wrapping.
- :class:`~campusrent.core.criteria.FilterSpec` normalisation and
  :func:`~campusrent.core.criteria.spec_from_saved_filters`.
- :class:`~campusrent.core.run_context.RunContext` mode logic.
- :class:`~campusrent.core.settings.Settings` loading and validation.
- :class:`~campusrent.core.logging_config.JsonFormatter` output.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from campusrent.core.criteria import FilterSpec, spec_from_saved_filters
from campusrent.core.logging_config import (
    RUN_ID_CTX,
    JsonFormatter,
    RunContextFilter,
    configure_logging,
)
from campusrent.core.models import (
    NotificationFrequency,
    Property,
    PropertyType,
    SavedSearch,
    SavedSearchFilters,
    UserContact,
)
from campusrent.core.run_context import RunContext
from campusrent.core.settings import Settings

# ===========================================================================
# Property
# ===========================================================================


class TestProperty:
    def test_minimal_property(self) -> None:
        prop = Property(id="p1", price=100)
        assert prop.title == ""
        assert prop.description == ""
        assert prop.location == ""
        assert prop.property_type == "other"
        assert prop.bedrooms is None
        assert prop.amenities == {}
        assert prop.deleted is False
        assert prop.created_at.tzinfo is not None

    def test_negative_price_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Property(id="p1", price=-1)

    def test_none_text_fields_become_empty(self) -> None:
        prop = Property(id="p1", price=1, title=None, description=None, location=None)
        assert (prop.title, prop.description, prop.location) == ("", "", "")

    def test_amenity_list_coerced_to_presence_map(self) -> None:
        prop = Property(id="p1", price=1, amenities=["wifi", "parking"])
        assert prop.amenities == {"wifi": True, "parking": True}

    def test_has_amenity_requires_true(self) -> None:
        prop = Property(id="p1", price=1, amenities={"wifi": True, "gym": False})
        assert prop.has_amenity("wifi")
        assert not prop.has_amenity("gym")
        assert not prop.has_amenity("pool")

    def test_naive_created_at_gets_utc(self) -> None:
        prop = Property(id="p1", price=1, created_at=datetime(2026, 1, 1, 9, 0))
        assert prop.created_at.tzinfo == UTC

    def test_type_enum(self) -> None:
        assert Property(id="p1", price=1, property_type="studio").type_enum is PropertyType.STUDIO
        assert Property(id="p1", price=1, property_type="Studio").type_enum is None

    def test_frozen(self) -> None:
        prop = Property(id="p1", price=1)
        with pytest.raises(ValidationError):
            prop.price = 2  # type: ignore[misc]


# ===========================================================================
# Saved searches
# ===========================================================================


class TestSavedSearchModels:
    def test_filters_accept_stored_aliases(self) -> None:
        filters = SavedSearchFilters.model_validate(
            {"propertyType": "apartment", "priceRange": {"min": 100, "max": 500}, "bedrooms": 2}
        )
        assert filters.property_types == ["apartment"]
        assert filters.price_range is not None
        assert filters.price_range.max == 500
        assert filters.bedrooms == [2]

    def test_filters_accept_field_names(self) -> None:
        filters = SavedSearchFilters(property_types=["house"], bathrooms=[1, 2])
        assert filters.property_types == ["house"]
        assert filters.bathrooms == [1, 2]

    def test_saved_search_defaults(self) -> None:
        search = SavedSearch(id="s1", user_id="u1")
        assert search.notification_frequency is NotificationFrequency.DAILY
        assert search.email_notifications is False
        assert search.last_notified is None

    def test_unknown_frequency_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SavedSearch(id="s1", user_id="u1", notification_frequency="hourly")

    def test_contact_requires_at_sign(self) -> None:
        with pytest.raises(ValidationError):
            UserContact(user_id="u1", email="not-an-email")


# ===========================================================================
# FilterSpec
# ===========================================================================


class TestFilterSpec:
    def test_empty_spec(self) -> None:
        assert FilterSpec() == FilterSpec(bedrooms=[], amenities=(), search_query="")

    def test_scalar_bedrooms_normalised_to_set(self) -> None:
        assert FilterSpec(bedrooms=2).bedrooms == frozenset({2})

    def test_scalar_type_normalised_to_set(self) -> None:
        assert FilterSpec(property_type="apartment").property_type == frozenset({"apartment"})

    def test_empty_collections_mean_no_constraint(self) -> None:
        spec = FilterSpec(bedrooms=[], amenities=[], property_type=[])
        assert spec.bedrooms is None
        assert spec.amenities is None
        assert spec.property_type is None
        assert spec == FilterSpec()

    def test_blank_query_is_no_constraint(self) -> None:
        assert FilterSpec(search_query="   ").search_query is None

    def test_inverted_range_accepted(self) -> None:
        spec = FilterSpec(price_min=500, price_max=100)
        assert spec.price_min == 500

    def test_spec_from_saved_filters(self) -> None:
        filters = SavedSearchFilters.model_validate(
            {
                "propertyType": ["apartment", "studio"],
                "priceRange": {"min": 100, "max": 900},
                "bedrooms": [1, 2],
                "bathrooms": [1],
                "amenities": ["wifi"],
                "location": "North Gate",
                "distance": 2.5,
            }
        )
        spec = spec_from_saved_filters(filters)
        assert spec.property_type == frozenset({"apartment", "studio"})
        assert (spec.price_min, spec.price_max) == (100, 900)
        assert spec.bedrooms == frozenset({1, 2})
        assert spec.bathrooms == frozenset({1})
        assert spec.amenities == frozenset({"wifi"})
        assert spec.search_query == "North Gate"
        assert spec.max_distance == 2.5

    def test_spec_from_empty_filters(self) -> None:
        assert spec_from_saved_filters(SavedSearchFilters()) == FilterSpec()


# ===========================================================================
# RunContext
# ===========================================================================


class TestRunContext:
    def test_live_by_default(self) -> None:
        ctx = RunContext()
        assert ctx.should_send
        assert ctx.mode_label == "live"

    def test_dry_run(self) -> None:
        ctx = RunContext(dry_run=True)
        assert not ctx.should_send
        assert str(ctx) == "RunContext(mode=dry-run)"


# ===========================================================================
# Settings
# ===========================================================================


@pytest.mark.usefixtures("clean_env")
class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.smtp_port == 587
        assert settings.notification_window == 10
        assert not settings.smtp_configured
        assert not settings.cron_configured
        assert settings.log_level == "INFO"

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CRON_SECRET", "s3cret")
        monkeypatch.setenv("SMTP_HOST", "smtp.example.edu")
        monkeypatch.setenv("SMTP_FROM", "noreply@example.edu")
        monkeypatch.setenv("NOTIFICATION_WINDOW", "25")
        settings = Settings()
        assert settings.cron_configured
        assert settings.smtp_configured
        assert settings.notification_window == 25

    def test_trailing_slash_stripped(self) -> None:
        assert Settings(app_base_url="https://rent.example.edu/").app_base_url == (
            "https://rent.example.edu"
        )

    def test_log_level_normalised(self) -> None:
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_bad_log_format_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(log_format="xml")

    def test_username_without_password_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(smtp_username="mailer")

    def test_window_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            Settings(notification_window=0)

    def test_database_path_resolved(self, tmp_path) -> None:  # noqa: ANN001
        settings = Settings(database_path=str(tmp_path / "x.db"))
        assert settings.database_path_resolved == (tmp_path / "x.db").resolve()


# ===========================================================================
# Logging
# ===========================================================================


class TestJsonFormatter:
    def _record(self, **extra: object) -> logging.LogRecord:
        record = logging.LogRecord(
            name="campusrent.test",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="hello %s",
            args=("world",),
            exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_shape(self) -> None:
        payload = json.loads(JsonFormatter().format(self._record(event="BATCH_START")))
        assert payload["level"] == "INFO"
        assert payload["logger"] == "campusrent.test"
        assert payload["message"] == "hello world"
        assert payload["extra"]["event"] == "BATCH_START"
        assert payload["ts"].endswith("Z")

    def test_run_id_filter_reads_context(self) -> None:
        token = RUN_ID_CTX.set("abcd1234")
        try:
            record = self._record()
            RunContextFilter().filter(record)
        finally:
            RUN_ID_CTX.reset(token)
        assert record.run_id == "abcd1234"  # type: ignore[attr-defined]
        payload = json.loads(JsonFormatter().format(record))
        assert payload["extra"]["run_id"] == "abcd1234"

    def test_standard_attributes_not_in_extra(self) -> None:
        payload = json.loads(JsonFormatter().format(self._record()))
        assert payload["extra"] == {}
        assert "exc_info" not in payload

    def test_non_json_extra_rendered_as_string(self) -> None:
        when = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)
        payload = json.loads(JsonFormatter().format(self._record(due_at=when)))
        assert payload["extra"]["due_at"] == str(when)

    def test_exception_included(self) -> None:
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = self._record()
            record.exc_info = sys.exc_info()
        payload = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in payload["exc_info"]


class TestConfigureLogging:
    def test_json_format_installs_single_handler(self) -> None:
        configure_logging(level="info", fmt="JSON", force=True)
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert logging.getLogger("aiosqlite").level == logging.WARNING

    def test_env_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        configure_logging(force=True)
        assert logging.getLogger().level == logging.WARNING

    @pytest.mark.parametrize(("level", "fmt"), [("LOUD", "text"), ("INFO", "xml")])
    def test_unknown_values_rejected(self, level: str, fmt: str) -> None:
        with pytest.raises(ValueError, match="Unknown LOG_"):
            configure_logging(level=level, fmt=fmt, force=True)
