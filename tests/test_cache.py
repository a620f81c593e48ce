"""
Tests for flagbridge.cache.

Covers:
- InMemoryCache: get/set/delete/exists/clear, LRU eviction, TTL expiry
- RedisCache: serialization against an injected client
"""

import json
from unittest.mock import MagicMock

import pytest


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestInMemoryCache:
    """Test InMemoryCache backend."""

    def test_basic_get_set(self):
        """Cache should store and retrieve values."""
        from flagbridge.cache import InMemoryCache

        cache = InMemoryCache(max_size=100, default_ttl_seconds=None)
        cache.set("key1", {"data": [1, 2, 3]})
        assert cache.get("key1") == {"data": [1, 2, 3]}

    def test_get_missing_key(self):
        from flagbridge.cache import InMemoryCache

        assert InMemoryCache().get("missing") is None

    def test_delete(self):
        """Delete should remove a key."""
        from flagbridge.cache import InMemoryCache

        cache = InMemoryCache()
        cache.set("key1", "value1")
        assert cache.exists("key1")
        cache.delete("key1")
        assert not cache.exists("key1")
        cache.delete("key1")

    def test_clear(self):
        from flagbridge.cache import InMemoryCache

        cache = InMemoryCache()
        for i in range(3):
            cache.set(f"k{i}", i)
        assert cache.size() == 3
        cache.clear()
        assert cache.size() == 0

    def test_ttl_expiry(self):
        """Keys should expire after TTL."""
        from flagbridge.cache import InMemoryCache

        clock = FakeClock()
        cache = InMemoryCache(default_ttl_seconds=10, clock=clock)
        cache.set("temp", "value")
        clock.now += 5
        assert cache.get("temp") == "value"
        clock.now += 6
        assert cache.get("temp") is None
        assert not cache.exists("temp")

    def test_ttl_override_default(self):
        """Explicit TTL should override default."""
        from flagbridge.cache import InMemoryCache

        clock = FakeClock()
        cache = InMemoryCache(default_ttl_seconds=1, clock=clock)
        cache.set("long", "value", ttl_seconds=100)
        clock.now += 50
        assert cache.exists("long")

    def test_lru_eviction(self):
        """Least recently used key is evicted at capacity."""
        from flagbridge.cache import InMemoryCache

        cache = InMemoryCache(max_size=2, default_ttl_seconds=None)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)

        assert cache.exists("a")
        assert not cache.exists("b")
        assert cache.exists("c")

    def test_overwrite_does_not_evict(self):
        from flagbridge.cache import InMemoryCache

        cache = InMemoryCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)
        assert cache.get("a") == 10
        assert cache.get("b") == 2


class TestRedisCache:
    """RedisCache over an injected client."""

    @pytest.fixture
    def client(self):
        return MagicMock()

    def test_set_with_ttl_uses_setex(self, client):
        from flagbridge.cache import RedisCache

        RedisCache(client=client, default_ttl_seconds=30).set("k", {"a": 1})
        client.setex.assert_called_once_with("k", 30, json.dumps({"a": 1}))

    def test_set_without_ttl(self, client):
        from flagbridge.cache import RedisCache

        RedisCache(client=client, default_ttl_seconds=None).set("k", [1])
        client.set.assert_called_once_with("k", "[1]")

    def test_get_deserializes(self, client):
        from flagbridge.cache import RedisCache

        client.get.return_value = b'{"f": {"key": "on"}}'
        assert RedisCache(client=client).get("k") == {"f": {"key": "on"}}

    def test_get_missing(self, client):
        from flagbridge.cache import RedisCache

        client.get.return_value = None
        assert RedisCache(client=client).get("k") is None

    def test_exists_delete_clear(self, client):
        from flagbridge.cache import RedisCache

        client.exists.return_value = 1
        cache = RedisCache(client=client)
        assert cache.exists("k")
        cache.delete("k")
        cache.clear()
        client.delete.assert_called_once_with("k")
        client.flushdb.assert_called_once()
