"""
Cache backends for assigned variants.

Remote evaluation calls the assignment service once per evaluation. The
caching assignment client puts a ``CacheBackend`` in front of it so repeated
evaluations for the same subject are served locally.

Manifesto:
    - **Protocol-based:** ``CacheBackend`` defines the contract
    - **Zero config:** ``InMemoryCache`` works out of the box
    - **TTL support:** Variants go stale; every backend expires entries
    - **JSON values:** Keys are strings, values are JSON-serializable

Architecture:
    ::

        CacheBackend (Protocol)
        ├── InMemoryCache  (single process, bounded LRU, lock-guarded)
        └── RedisCache     (shared between processes, ``redis`` extra)

        API: get(key) → value | None
             set(key, value, ttl_seconds=None)
             delete(key)
             exists(key) → bool
             clear()

Examples:
    >>> cache = InMemoryCache(max_size=100, default_ttl_seconds=60)
    >>> cache.set("flagbridge:variants:abc", {"checkout": {"key": "on"}})
    >>> cache.get("flagbridge:variants:abc")
    {'checkout': {'key': 'on'}}

Guardrails:
    ❌ DON'T: Share an InMemoryCache between processes
    ✅ DO: Use RedisCache when several workers evaluate for the same subjects

    ❌ DON'T: Cache variants without a TTL
    ✅ DO: Keep ``cache_ttl_seconds`` short enough to pick up rollout changes

Tags:
    cache, redis, in-memory, ttl, flagbridge
"""

from __future__ import annotations

import json
import threading
import time
from collections import OrderedDict
from typing import Any, Protocol


class CacheBackend(Protocol):
    """Protocol for cache backend implementations.

    Implementations:
        - :class:`InMemoryCache`: single-process, bounded LRU cache
        - :class:`RedisCache`: distributed, Redis-backed cache
    """

    def get(self, key: str) -> Any | None:
        """Return the cached value, or ``None`` if missing or expired."""
        ...

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        """Store a value. ``ttl_seconds=None`` uses the backend default."""
        ...

    def delete(self, key: str) -> None:
        """Remove a key. No-op if it does not exist."""
        ...

    def exists(self, key: str) -> bool:
        """Check whether a key exists and has not expired."""
        ...

    def clear(self) -> None:
        """Remove all keys."""
        ...


# ------------------------------------------------------------------ #
# In-Memory Cache
# ------------------------------------------------------------------ #


class InMemoryCache:
    """Bounded in-memory cache with TTL support.

    Uses LRU eviction when ``max_size`` is reached. All operations hold an
    internal lock, so one instance can back a provider used from many threads.

    Example:
        cache = InMemoryCache(max_size=500, default_ttl_seconds=30)
        cache.set("flagbridge:variants:abc", {"flag": {"key": "on"}})
    """

    def __init__(
        self,
        *,
        max_size: int = 10_000,
        default_ttl_seconds: int | None = 60,
        clock=time.monotonic,
    ):
        """
        Args:
            max_size: Maximum number of keys (LRU eviction after).
            default_ttl_seconds: Default TTL for all keys (``None`` → no expiry).
            clock: Time source in seconds, replaceable in tests.
        """
        self._store: OrderedDict[str, tuple[Any, float | None]] = OrderedDict()
        self._max_size = max_size
        self._default_ttl = default_ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()

    def _expired(self, expires_at: float | None) -> bool:
        return expires_at is not None and self._clock() > expires_at

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None

            value, expires_at = entry
            if self._expired(expires_at):
                del self._store[key]
                return None

            self._store.move_to_end(key)
            return value

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        expires_at = (self._clock() + ttl) if ttl else None

        with self._lock:
            if key in self._store:
                self._store.move_to_end(key)
            elif len(self._store) >= self._max_size:
                self._store.popitem(last=False)
            self._store[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def exists(self, key: str) -> bool:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return False
            if self._expired(entry[1]):
                del self._store[key]
                return False
            return True

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def size(self) -> int:
        """Return current number of cached keys (expired ones included)."""
        with self._lock:
            return len(self._store)


# ------------------------------------------------------------------ #
# Redis Cache (optional)
# ------------------------------------------------------------------ #


class RedisCache:
    """Redis-backed distributed cache.

    Requires the ``redis`` package (``pip install flagbridge[redis]``).
    An already-built client can be passed as ``client`` instead of a URL.

    Raises:
        ImportError: If ``redis`` is not installed and no client is given.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        *,
        default_ttl_seconds: int | None = 60,
        client: Any = None,
    ):
        if client is None:
            try:
                import redis
            except ImportError as exc:
                msg = (
                    "Redis backend requires 'redis' package. "
                    "Install with: pip install flagbridge[redis]"
                )
                raise ImportError(msg) from exc
            client = redis.from_url(url, decode_responses=False)

        self._client = client
        self._default_ttl = default_ttl_seconds

    def get(self, key: str) -> Any | None:
        raw = self._client.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any, *, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        serialized = json.dumps(value)

        if ttl:
            self._client.setex(key, ttl, serialized)
        else:
            self._client.set(key, serialized)

    def delete(self, key: str) -> None:
        self._client.delete(key)

    def exists(self, key: str) -> bool:
        return bool(self._client.exists(key))

    def clear(self) -> None:
        """Flush the current Redis database."""
        self._client.flushdb()


__all__ = [
    "CacheBackend",
    "InMemoryCache",
    "RedisCache",
]
