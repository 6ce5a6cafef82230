"""
Unit tests for the cache-aside decorators.
"""

import time
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError

from app.cache.decorators import Source, cache_aside, invalidates
from app.cache.layer import CacheLayer


class WidgetService:
    """Service stub with a store call counter."""

    def __init__(self, cache):
        self.cache = cache
        self.settings = SimpleNamespace(cache_list_ttl=10)
        self.rows = [{"id": 1, "name": "first"}]
        self.loads = 0
        self.writes = 0

    @cache_aside(lambda *_, **__: "widgets:list", ttl=lambda s: s.settings.cache_list_ttl)
    async def list_widgets(self):
        self.loads += 1
        return list(self.rows)

    @invalidates(lambda *_, **__: "widgets:list")
    async def create_widget(self, name):
        self.writes += 1
        row = {"id": len(self.rows) + 1, "name": name}
        self.rows.append(row)
        return row


class TestCacheAside:
    """Test cases for the read/write policy."""

    @pytest.fixture
    def service(self, cache):
        return WidgetService(cache)

    @pytest.mark.asyncio
    async def test_miss_then_hit(self, service, fake_redis):
        """Test the first read loads from the store and the second from cache."""
        first = await service.list_widgets()
        assert first.source is Source.DATABASE
        assert first.data == [{"id": 1, "name": "first"}]
        assert await fake_redis.ttl("widgets:list") == 10

        second = await service.list_widgets()
        assert second.source is Source.CACHE
        assert second.data == first.data
        assert service.loads == 1

    @pytest.mark.asyncio
    async def test_hit_refreshes_ttl(self, service, fake_redis):
        """Test a cache hit slides the list expiry."""
        await service.list_widgets()
        fake_redis.advance(7)
        await service.list_widgets()
        assert await fake_redis.ttl("widgets:list") == 10

    @pytest.mark.asyncio
    async def test_entry_expires(self, service, fake_redis):
        """Test the store is queried again after the TTL elapses."""
        await service.list_widgets()
        fake_redis.advance(11)
        result = await service.list_widgets()
        assert result.source is Source.DATABASE
        assert service.loads == 2

    @pytest.mark.asyncio
    async def test_write_invalidates_list(self, service, fake_redis):
        """Test a create removes the list key and the next read repopulates it."""
        await service.list_widgets()
        await service.create_widget("second")

        assert "widgets:list" not in fake_redis.store

        after = await service.list_widgets()
        assert after.source is Source.DATABASE
        assert [row["name"] for row in after.data] == ["first", "second"]

        again = await service.list_widgets()
        assert again.source is Source.CACHE

    @pytest.mark.asyncio
    async def test_empty_list_is_cached(self, service):
        """Test an empty collection counts as a cache hit."""
        service.rows = []
        await service.list_widgets()
        result = await service.list_widgets()
        assert result.source is Source.CACHE
        assert result.data == []

    @pytest.mark.asyncio
    async def test_read_falls_through_when_cache_is_down(self, service, fake_redis):
        """Test reads still reach the store when Redis fails."""
        down = AsyncMock(side_effect=RedisConnectionError("connection refused"))
        fake_redis.get = down
        fake_redis.set = down

        result = await service.list_widgets()
        assert result.source is Source.DATABASE
        assert result.data == [{"id": 1, "name": "first"}]

    @pytest.mark.asyncio
    async def test_write_completes_when_cache_is_down(self, service, fake_redis):
        """Test persistence is not affected by a failed invalidation."""
        fake_redis.delete = AsyncMock(side_effect=RedisConnectionError("connection refused"))

        row = await service.create_widget("second")
        assert row == {"id": 2, "name": "second"}
        assert service.writes == 1

    @pytest.mark.asyncio
    async def test_failed_write_does_not_invalidate(self, service, fake_redis):
        """Test the list key survives when the store write raises."""
        await service.list_widgets()
        service.rows = None  # makes the write fail

        with pytest.raises(TypeError):
            await service.create_widget("broken")
        assert "widgets:list" in fake_redis.store

    @pytest.mark.asyncio
    async def test_dead_server_does_not_stall_reads_or_writes(self, settings):
        """Test a Redis that dies after startup costs one failed command, not the reconnect schedule."""
        dead = settings.model_copy(
            update={"redis_url": "redis://127.0.0.1:1/0", "redis_connect_timeout": 0.5}
        )
        cache = CacheLayer(dead)
        with patch.object(Redis, "ping", AsyncMock(return_value=True)):
            await cache.init_cache()
        service = WidgetService(cache)

        try:
            started = time.monotonic()
            first = await service.list_widgets()
            await service.create_widget("second")
            second = await service.list_widgets()
            elapsed = time.monotonic() - started
        finally:
            await cache.close()

        assert first.source is Source.DATABASE
        assert second.source is Source.DATABASE
        assert [row["name"] for row in second.data] == ["first", "second"]
        assert elapsed < 1.0
