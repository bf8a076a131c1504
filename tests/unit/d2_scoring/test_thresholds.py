"""
Tests for the time-cached threshold resolver
"""
from unittest.mock import AsyncMock

import pytest

from d0_gateway.exceptions import SourceError
from d0_gateway.settings_store import SqlSettingsStore
from d2_scoring.thresholds import ThresholdResolver

pytestmark = [pytest.mark.unit]


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def store():
    mock = AsyncMock()
    mock.get_passing_grade.return_value = 85.0
    mock.get_section_grades.return_value = {"2": 70.0}
    mock.get_category_grade.return_value = 80.0
    return mock


@pytest.fixture
def clock():
    return FakeClock()


class TestThresholdResolver:
    @pytest.mark.asyncio
    async def test_no_store_gives_defaults(self):
        thresholds = await ThresholdResolver(default_grade=83.0).get_thresholds("1")
        assert (thresholds.overall, thresholds.section, thresholds.category) == (83.0, 83.0, 83.0)
        assert thresholds.from_defaults

    @pytest.mark.asyncio
    async def test_store_values(self, store, clock):
        resolver = ThresholdResolver(store=store, ttl_seconds=300, default_grade=83.0, clock=clock)
        thresholds = await resolver.get_thresholds("1")

        assert thresholds.overall == 85.0
        assert thresholds.category == 80.0
        assert thresholds.for_section("2") == 70.0
        assert thresholds.for_section("1") == 83.0
        assert not thresholds.from_defaults

    @pytest.mark.asyncio
    async def test_missing_rows_fall_back(self, store, clock):
        store.get_passing_grade.return_value = None
        store.get_category_grade.return_value = None
        store.get_section_grades.return_value = {}

        thresholds = await ThresholdResolver(store=store, default_grade=83.0, clock=clock).get_thresholds("1")

        assert thresholds.overall == 83.0
        assert thresholds.category == 83.0
        assert thresholds.from_defaults

    @pytest.mark.asyncio
    async def test_cached_within_ttl(self, store, clock):
        resolver = ThresholdResolver(store=store, ttl_seconds=300, clock=clock)
        await resolver.get_thresholds("1")
        clock.now += 299
        await resolver.get_thresholds("1")

        assert store.get_passing_grade.await_count == 1

    @pytest.mark.asyncio
    async def test_refreshed_after_ttl(self, store, clock):
        resolver = ThresholdResolver(store=store, ttl_seconds=300, clock=clock)
        await resolver.get_thresholds("1")
        clock.now += 300
        store.get_passing_grade.return_value = 90.0

        thresholds = await resolver.get_thresholds("1")

        assert thresholds.overall == 90.0
        assert store.get_passing_grade.await_count == 2

    @pytest.mark.asyncio
    async def test_cache_keyed_by_schema(self, store, clock):
        resolver = ThresholdResolver(store=store, clock=clock)
        await resolver.get_thresholds("1")
        await resolver.get_thresholds("2")

        assert store.get_passing_grade.await_count == 2
        assert sorted(resolver.cached_schemas()) == ["1", "2"]

    @pytest.mark.asyncio
    async def test_invalidate_one_schema(self, store, clock):
        resolver = ThresholdResolver(store=store, clock=clock)
        await resolver.get_thresholds("1")
        await resolver.get_thresholds("2")

        resolver.invalidate("1")

        assert resolver.cached("1") is None
        assert resolver.cached("2") is not None
        await resolver.get_thresholds("1")
        assert store.get_passing_grade.await_count == 3

    @pytest.mark.asyncio
    async def test_invalidate_all(self, store, clock):
        resolver = ThresholdResolver(store=store, clock=clock)
        await resolver.get_thresholds("1")
        resolver.invalidate()
        assert resolver.cached_schemas() == []

    @pytest.mark.asyncio
    async def test_unreachable_store_gives_uncached_defaults(self, store, clock):
        store.get_passing_grade.side_effect = SourceError("settings_store", "connection refused")
        resolver = ThresholdResolver(store=store, default_grade=83.0, clock=clock)

        thresholds = await resolver.get_thresholds("1")

        assert thresholds.overall == 83.0
        assert thresholds.warning and "connection refused" in thresholds.warning
        assert resolver.cached("1") is None


class TestSqlSettingsStore:
    @pytest.mark.asyncio
    async def test_reads_system_settings(self, seeded_session_factory):
        store = SqlSettingsStore(seeded_session_factory)

        assert await store.get_passing_grade("1") == 85.0
        assert await store.get_passing_grade("1", section_id="2") == 70.0
        assert await store.get_section_grades("1") == {"2": 70.0}
        assert await store.get_category_grade("1") == 80.0

    @pytest.mark.asyncio
    async def test_unknown_schema_has_no_rows(self, seeded_session_factory):
        store = SqlSettingsStore(seeded_session_factory)
        assert await store.get_passing_grade("99") is None
        assert await store.get_section_grades("99") == {}

    @pytest.mark.asyncio
    async def test_non_numeric_schema_is_upstream_error(self, seeded_session_factory):
        with pytest.raises(SourceError):
            await SqlSettingsStore(seeded_session_factory).get_passing_grade("abc")

    @pytest.mark.asyncio
    async def test_resolver_over_sql_store(self, seeded_session_factory):
        resolver = ThresholdResolver(store=SqlSettingsStore(seeded_session_factory), default_grade=83.0)
        thresholds = await resolver.get_thresholds("1")
        assert thresholds.overall == 85.0
        assert thresholds.for_section("2") == 70.0
