"""Unit tests for the saved-search notification batch.

Covers:
- :func:`~campusrent.orchestrator.frequency.is_due` for every frequency.
- :func:`~campusrent.orchestrator.batch.run_batch` end to end against a real
  SQLite DB with a mocked mail transport:
  send-then-record, no-match idempotency, frequency gating, per-search
  failure isolation, the newest-properties window and notification scope.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import aiosqlite
import pytest

from campusrent.core.exceptions import EmailDeliveryError
from campusrent.core.models import (
    NotificationFrequency,
    PriceRange,
    Property,
    SavedSearch,
    SavedSearchFilters,
    UserContact,
)
from campusrent.core.run_context import RunContext
from campusrent.notifiers.notifier import DigestNotifier
from campusrent.orchestrator.batch import BatchStats, SearchOutcome, run_batch
from campusrent.orchestrator.frequency import is_due, next_due_at
from campusrent.storage.repository import (
    PropertyRepository,
    SavedSearchRepository,
    UserRepository,
)

_NOW = datetime(2026, 3, 2, 12, 0, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Factories / helpers
# ---------------------------------------------------------------------------


def _make_search(id: str = "s1", **overrides: object) -> SavedSearch:
    data: dict[str, object] = {
        "id": id,
        "user_id": "u1",
        "name": f"Search {id}",
        "filters": SavedSearchFilters(
            property_types=["apartment"],
            price_range=PriceRange(min=30000, max=50000),
            bedrooms=[2],
        ),
        "email_notifications": True,
        "notification_frequency": NotificationFrequency.INSTANT,
        "created_at": _NOW - timedelta(days=30),
        "updated_at": _NOW - timedelta(days=30),
    }
    data.update(overrides)
    return SavedSearch.model_validate(data)


def _make_property(id: str, *, hours_ago: float = 1, **overrides: object) -> Property:
    data: dict[str, object] = {
        "id": id,
        "title": f"Listing {id}",
        "price": 40000,
        "property_type": "apartment",
        "bedrooms": 2,
        "bathrooms": 1,
        "landlord_id": "l1",
        "created_at": _NOW - timedelta(hours=hours_ago),
    }
    data.update(overrides)
    return Property.model_validate(data)


class _Env:
    """Repositories plus a live notifier over a mocked transport."""

    def __init__(self, conn: aiosqlite.Connection, *, dry_run: bool = False) -> None:
        self.properties = PropertyRepository(conn)
        self.searches = SavedSearchRepository(conn)
        self.users = UserRepository(conn)
        self.mailer = MagicMock()
        self.mailer.send = AsyncMock()
        self.notifier = DigestNotifier(
            self.mailer,
            RunContext(dry_run=dry_run),
            app_base_url="https://rent.example.edu",
        )

    async def seed(self, *items: Property | SavedSearch | UserContact) -> None:
        for item in items:
            if isinstance(item, Property):
                await self.properties.add(item)
            elif isinstance(item, SavedSearch):
                await self.searches.create(item)
            else:
                await self.users.upsert(item)

    async def run(self, now: datetime = _NOW, window: int = 10) -> BatchStats:
        return await run_batch(
            await self.searches.fetch_active(),
            properties=self.properties,
            users=self.users,
            searches=self.searches,
            notifier=self.notifier,
            window=window,
            now=now,
        )


_CONTACT = UserContact(user_id="u1", email="student@example.edu", display_name="Sam")


@pytest.fixture()
async def env(conn: aiosqlite.Connection) -> _Env:
    return _Env(conn)


# ===========================================================================
# Frequency gate
# ===========================================================================


class TestFrequency:
    @pytest.mark.parametrize("frequency", list(NotificationFrequency))
    def test_never_notified_is_due(self, frequency: NotificationFrequency) -> None:
        assert is_due(_make_search(notification_frequency=frequency), _NOW)

    def test_instant_always_due(self) -> None:
        search = _make_search(last_notified=_NOW - timedelta(seconds=1))
        assert is_due(search, _NOW)
        assert next_due_at(search) is None

    @pytest.mark.parametrize(
        ("hours_ago", "expected"),
        [(23, False), (24, False), (25, True)],
    )
    def test_daily(self, hours_ago: int, expected: bool) -> None:
        search = _make_search(
            notification_frequency="daily",
            last_notified=_NOW - timedelta(hours=hours_ago),
        )
        assert is_due(search, _NOW) is expected

    @pytest.mark.parametrize(
        ("days_ago", "expected"),
        [(6, False), (7, False), (8, True)],
    )
    def test_weekly(self, days_ago: int, expected: bool) -> None:
        search = _make_search(
            notification_frequency="weekly",
            last_notified=_NOW - timedelta(days=days_ago),
        )
        assert is_due(search, _NOW) is expected

    def test_naive_now_treated_as_utc(self) -> None:
        search = _make_search(notification_frequency="daily", last_notified=_NOW - timedelta(hours=25))
        assert is_due(search, _NOW.replace(tzinfo=None))


# ===========================================================================
# Batch
# ===========================================================================


class TestRunBatch:
    @pytest.mark.asyncio
    async def test_instant_search_sends_once_and_records(self, env: _Env) -> None:
        await env.seed(_CONTACT, _make_search("s1"), _make_property("match"))

        stats = await env.run()

        assert stats.notified == 1
        assert stats.properties_sent == 1
        env.mailer.send.assert_awaited_once()
        assert env.mailer.send.await_args.args[0] == "student@example.edu"
        assert (await env.searches.get("s1")).last_notified == _NOW

    @pytest.mark.asyncio
    async def test_scenario_only_matching_property_in_digest(self, env: _Env) -> None:
        await env.seed(
            _CONTACT,
            _make_search("s1"),
            _make_property("studio", price=25000, bedrooms=1, property_type="studio"),
            _make_property("target", price=40000, bedrooms=2),
            _make_property("three", price=45000, bedrooms=3),
            _make_property("house", price=60000, bedrooms=2, property_type="house"),
            _make_property("town", price=35000, bedrooms=2, property_type="townhouse"),
        )

        stats = await env.run()

        assert stats.properties_sent == 1
        text_body = env.mailer.send.await_args.args[3]
        assert "Listing target" in text_body
        assert "Listing three" not in text_body

    @pytest.mark.asyncio
    async def test_no_match_is_idempotent(self, env: _Env) -> None:
        before = _NOW - timedelta(days=3)
        await env.seed(
            _CONTACT,
            _make_search("s1", notification_frequency="daily", last_notified=before),
            _make_property("house", property_type="house"),
        )

        first = await env.run()
        second = await env.run(now=_NOW + timedelta(hours=1))

        assert first.no_match == second.no_match == 1
        env.mailer.send.assert_not_awaited()
        assert (await env.searches.get("s1")).last_notified == before

    @pytest.mark.asyncio
    async def test_daily_gate(self, env: _Env) -> None:
        await env.seed(
            _CONTACT,
            _make_search("recent", notification_frequency="daily", last_notified=_NOW - timedelta(hours=23)),
            _make_search("stale", notification_frequency="daily", last_notified=_NOW - timedelta(hours=25)),
            _make_property("match"),
        )

        stats = await env.run()

        assert stats.not_due == 1
        assert stats.notified == 1
        assert (await env.searches.get("recent")).last_notified == _NOW - timedelta(hours=23)
        assert (await env.searches.get("stale")).last_notified == _NOW

    @pytest.mark.asyncio
    async def test_send_failure_keeps_watermark_and_continues(self, env: _Env) -> None:
        await env.seed(_CONTACT, _make_search("first"), _make_search("second"), _make_property("match"))
        env.mailer.send.side_effect = [EmailDeliveryError("student@example.edu", "relay down"), None]
        active = await env.searches.fetch_active()
        assert [s.id for s in active] == ["first", "second"]

        stats = await env.run()

        assert stats.send_failed == 1
        assert stats.notified == 1
        assert env.mailer.send.await_count == 2
        assert (await env.searches.get("first")).last_notified is None
        assert (await env.searches.get("second")).last_notified == _NOW

    @pytest.mark.asyncio
    async def test_user_lookup_error_isolated(self, env: _Env) -> None:
        await env.seed(_make_search("first"), _make_search("second"), _make_property("match"))
        env.users.get_contact = AsyncMock(side_effect=[RuntimeError("store timeout"), _CONTACT])

        stats = await env.run()

        assert stats.errors == 1
        assert stats.notified == 1
        env.mailer.send.assert_awaited_once()
        assert (await env.searches.get("first")).last_notified is None

    @pytest.mark.asyncio
    async def test_unknown_user_skipped(self, env: _Env) -> None:
        await env.seed(_make_search("s1", user_id="ghost"), _make_property("match"))

        stats = await env.run()

        assert stats.user_missing == 1
        env.mailer.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_window_caps_digest(self, env: _Env) -> None:
        await env.seed(_CONTACT, _make_search("s1"))
        await env.seed(*(_make_property(f"p{i:02d}", hours_ago=i + 1) for i in range(12)))

        stats = await env.run(window=10)

        assert stats.properties_sent == 10
        text_body = env.mailer.send.await_args.args[3]
        assert "Listing p00" in text_body
        assert "Listing p11" not in text_body

    @pytest.mark.asyncio
    async def test_matching_property_behind_newer_non_matches(self, env: _Env) -> None:
        await env.seed(_CONTACT, _make_search("s1"), _make_property("old-match", hours_ago=48))
        await env.seed(*(_make_property(f"house{i}", hours_ago=i + 1, property_type="house") for i in range(10)))

        stats = await env.run(window=10)

        assert stats.notified == 1

    @pytest.mark.asyncio
    async def test_notification_scope_ignores_amenities_and_location(self, env: _Env) -> None:
        filters = SavedSearchFilters(
            property_types=["apartment"],
            amenities=["pool"],
            location="Downtown",
            distance=0.1,
        )
        await env.seed(_CONTACT, _make_search("s1", filters=filters), _make_property("p", distance=5.0))

        stats = await env.run()

        assert stats.notified == 1

    @pytest.mark.asyncio
    async def test_match_is_audited_in_notification_scope(
        self, env: _Env, caplog: pytest.LogCaptureFixture
    ) -> None:
        await env.seed(_CONTACT, _make_search("s1"), _make_property("match"))

        with caplog.at_level(logging.DEBUG, logger="campusrent.filters.engine"):
            await env.run()

        audit = [r.getMessage() for r in caplog.records if r.name == "campusrent.filters.engine"]
        assert len(audit) == 1
        assert "notification" in audit[0]
        assert "predicates=price_min,price_max,bedrooms,property_type" in audit[0]
        assert "1/1 passed" in audit[0]

    @pytest.mark.asyncio
    async def test_disabled_searches_not_loaded(self, env: _Env) -> None:
        await env.seed(_CONTACT, _make_search("off", email_notifications=False), _make_property("match"))

        stats = await env.run()

        assert stats.total == 0
        env.mailer.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_dry_run_leaves_watermark(self, conn: aiosqlite.Connection) -> None:
        env = _Env(conn, dry_run=True)
        await env.seed(_CONTACT, _make_search("s1"), _make_property("match"))

        stats = await env.run()

        assert stats.simulated == 1
        assert stats.notified == 0
        assert stats.properties_sent == 0
        env.mailer.send.assert_not_awaited()
        assert (await env.searches.get("s1")).last_notified is None

    @pytest.mark.asyncio
    async def test_dry_run_does_not_suppress_next_live_digest(self, conn: aiosqlite.Connection) -> None:
        dry = _Env(conn, dry_run=True)
        await dry.seed(_CONTACT, _make_search("s1", notification_frequency="daily"), _make_property("match"))
        await dry.run()

        live = _Env(conn)
        stats = await live.run(now=_NOW + timedelta(hours=1))

        assert stats.notified == 1
        assert stats.not_due == 0
        live.mailer.send.assert_awaited_once()
        assert (await live.searches.get("s1")).last_notified == _NOW + timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_empty_batch(self, env: _Env) -> None:
        stats = await env.run()
        assert stats == BatchStats()


# ===========================================================================
# Stats
# ===========================================================================


class TestBatchStats:
    def test_record_and_summary(self) -> None:
        stats = BatchStats(total=3)
        stats.record(SearchOutcome.NOTIFIED)
        stats.record(SearchOutcome.SEND_FAILED)
        stats.record(SearchOutcome.ERROR)
        stats.record(SearchOutcome.SIMULATED)
        assert stats.failed == 2
        summary = stats.as_dict()
        assert summary["notified"] == 1
        assert summary["sendFailed"] == 1
        assert summary["errors"] == 1
        assert summary["simulated"] == 1
        assert "notified=1" in stats.format_report()
