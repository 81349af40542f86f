"""
Unit tests for the Redis cache and its key policy.
"""

import pytest
from unittest.mock import AsyncMock, patch

from shared.errors import StoreError
from service_library.app.cache.policy import (
    CACHE_TTL_SECONDS, CacheNamespace, book_key, book_request_key, namespace_of,
    request_book_key, request_requestor_key, ttl_for
)
from service_library.app.cache.redis_cache import RedisCache
from service_library.app.domain.models import Book, BookRequestor


class DummyMetrics:
    """Minimal metrics collector stub."""

    def __init__(self):
        self.lookups = []

    def record_cache_lookup(self, cache_type: str, hit: bool):
        self.lookups.append((cache_type, hit))


class TestCachePolicy:
    """Test cases for cache keys and TTLs."""

    def test_ttl_table(self):
        """Test each namespace carries its expiry."""
        assert CACHE_TTL_SECONDS == {
            CacheNamespace.BOOK: 300,
            CacheNamespace.BOOK_REQUEST: 300,
            CacheNamespace.REQUEST_BOOK: 600,
            CacheNamespace.REQUEST_REQUESTOR: 600,
        }
        assert ttl_for(CacheNamespace.REQUEST_BOOK) == 600

    def test_keys(self, clean_code_book):
        """Test keys are namespaced by entity."""
        assert book_key(clean_code_book.id) == f"book:{clean_code_book.id}"
        assert book_request_key("abc") == "bookrequest:abc"
        assert request_book_key("  Clean CODE ") == "bookrequest:book:clean code"
        assert request_requestor_key("555-0100") == "bookrequest:requestor:555-0100"

    def test_namespace_of_prefers_longest_match(self):
        """Test nested namespaces are not attributed to their parent."""
        assert namespace_of("book:1") == "book"
        assert namespace_of("bookrequest:1") == "bookrequest"
        assert namespace_of("bookrequest:book:clean code") == "bookrequest:book"
        assert namespace_of("bookrequest:requestor:555") == "bookrequest:requestor"
        assert namespace_of("session:1") == "unknown"


class TestRedisCache:
    """Test cases for RedisCache."""

    @pytest.fixture
    def metrics(self):
        return DummyMetrics()

    @pytest.fixture
    def redis_cache(self, metrics):
        """Create RedisCache with a mocked client."""
        cache = RedisCache("redis://localhost:6379/0", metrics=metrics)
        cache.redis = AsyncMock()
        return cache

    @pytest.mark.asyncio
    async def test_get_hit(self, redis_cache, metrics, clean_code_book):
        """Test a stored entry is decoded into its model."""
        redis_cache.redis.get.return_value = clean_code_book.model_dump_json()

        result = await redis_cache.get(book_key(clean_code_book.id), Book)

        assert result == clean_code_book
        redis_cache.redis.get.assert_called_once_with(f"library:book:{clean_code_book.id}")
        assert metrics.lookups == [("book", True)]

    @pytest.mark.asyncio
    async def test_get_miss(self, redis_cache, metrics):
        """Test an absent key is a miss."""
        redis_cache.redis.get.return_value = None

        result = await redis_cache.get("bookrequest:requestor:555-0100", BookRequestor)

        assert result is None
        assert metrics.lookups == [("bookrequest:requestor", False)]

    @pytest.mark.asyncio
    async def test_get_unreadable_entry(self, redis_cache, metrics):
        """Test an entry that does not decode is treated as a miss."""
        redis_cache.redis.get.return_value = '{"title": 42, "release_date": "not a date"}'

        result = await redis_cache.get("book:1", Book)

        assert result is None
        assert metrics.lookups == [("book", False)]

    @pytest.mark.asyncio
    async def test_get_redis_failure(self, redis_cache):
        """Test connection errors degrade to a miss."""
        redis_cache.redis.get.side_effect = ConnectionError("connection refused")

        assert await redis_cache.get("book:1", Book) is None

    @pytest.mark.asyncio
    async def test_set_uses_ttl_and_prefix(self, redis_cache, jane_doe):
        """Test values are written as JSON with an expiry."""
        result = await redis_cache.set("bookrequest:requestor:555-0100", jane_doe, 600)

        assert result is True
        redis_cache.redis.setex.assert_called_once_with(
            "library:bookrequest:requestor:555-0100",
            600,
            jane_doe.model_dump_json()
        )

    @pytest.mark.asyncio
    async def test_set_failure(self, redis_cache, jane_doe):
        """Test write errors are reported, not raised."""
        redis_cache.redis.setex.side_effect = ConnectionError("connection reset")

        assert await redis_cache.set("bookrequest:requestor:555-0100", jane_doe, 600) is False

    @pytest.mark.asyncio
    async def test_remove(self, redis_cache):
        """Test invalidation deletes the prefixed key."""
        assert await redis_cache.remove("bookrequest:42") is True
        redis_cache.redis.delete.assert_called_once_with("library:bookrequest:42")

    @pytest.mark.asyncio
    async def test_remove_failure(self, redis_cache):
        """Test invalidation errors are reported, not raised."""
        redis_cache.redis.delete.side_effect = ConnectionError("connection reset")

        assert await redis_cache.remove("bookrequest:42") is False

    @pytest.mark.asyncio
    async def test_custom_prefix(self, jane_doe):
        """Test the key prefix is configurable."""
        cache = RedisCache("redis://localhost:6379/0", key_prefix="test:")
        cache.redis = AsyncMock()

        await cache.set("book:1", jane_doe, 300)

        assert cache.redis.setex.call_args.args[0] == "test:book:1"

    @pytest.mark.asyncio
    async def test_start_failure(self):
        """Test an unreachable server fails startup."""
        client = AsyncMock()
        client.ping.side_effect = ConnectionError("connection refused")

        with patch("service_library.app.cache.redis_cache.redis.from_url", return_value=client):
            cache = RedisCache("redis://localhost:6379/0")
            with pytest.raises(StoreError):
                await cache.start()

    @pytest.mark.asyncio
    async def test_health_check(self, redis_cache):
        """Test health reflects ping."""
        assert await redis_cache.health_check() is True

        redis_cache.redis.ping.side_effect = ConnectionError("down")
        assert await redis_cache.health_check() is False
