"""Tests for CachedPriceLookup."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from floorbot.adapters.marketplace.cache import CachedPriceLookup
from floorbot.domain.errors import NotFoundError
from floorbot.domain.models import FloorPriceQuote


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _quote(slug, price="1"):
    return FloorPriceQuote(slug, Decimal(price), "ETH")


@pytest.fixture
def inner():
    lookup = AsyncMock()
    lookup.fetch_floor_price.side_effect = lambda slug: _quote(slug.strip().lower())
    return lookup


class TestCachedPriceLookup:
    @pytest.mark.asyncio
    async def test_hit_within_ttl(self, inner):
        clock = FakeClock()
        cache = CachedPriceLookup(inner, ttl_seconds=30, clock=clock)

        first = await cache.fetch_floor_price("azuki")
        clock.now += 10
        second = await cache.fetch_floor_price("azuki")

        assert first is second
        inner.fetch_floor_price.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_key_is_case_and_space_insensitive(self, inner):
        cache = CachedPriceLookup(inner, clock=FakeClock())
        await cache.fetch_floor_price("Azuki")
        await cache.fetch_floor_price("  azuki ")
        assert inner.fetch_floor_price.await_count == 1

    @pytest.mark.asyncio
    async def test_expired_entry_refetched(self, inner):
        clock = FakeClock()
        cache = CachedPriceLookup(inner, ttl_seconds=30, clock=clock)

        await cache.fetch_floor_price("azuki")
        clock.now += 30
        await cache.fetch_floor_price("azuki")

        assert inner.fetch_floor_price.await_count == 2

    @pytest.mark.asyncio
    async def test_errors_not_cached(self):
        inner = AsyncMock()
        inner.fetch_floor_price.side_effect = [
            NotFoundError("nope", "azuki"),
            _quote("azuki", "5"),
        ]
        cache = CachedPriceLookup(inner, clock=FakeClock())

        with pytest.raises(NotFoundError):
            await cache.fetch_floor_price("azuki")
        quote = await cache.fetch_floor_price("azuki")

        assert quote.price == Decimal("5")
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_lru_eviction(self, inner):
        cache = CachedPriceLookup(inner, max_entries=2, clock=FakeClock())

        await cache.fetch_floor_price("a")
        await cache.fetch_floor_price("b")
        await cache.fetch_floor_price("a")  # a is now most recent
        await cache.fetch_floor_price("c")  # evicts b

        assert len(cache) == 2
        inner.fetch_floor_price.reset_mock()
        await cache.fetch_floor_price("a")
        inner.fetch_floor_price.assert_not_awaited()
        await cache.fetch_floor_price("b")
        inner.fetch_floor_price.assert_awaited_once_with("b")

    @pytest.mark.asyncio
    async def test_clear_and_stats(self, inner):
        cache = CachedPriceLookup(inner, ttl_seconds=15, clock=FakeClock())
        await cache.fetch_floor_price("azuki")
        assert cache.stats() == {"entries": 1, "ttl_seconds": 15}
        cache.clear()
        assert len(cache) == 0
