"""
Caching Service

Read-through cache for ranked listings and book pages.

Features:
- Two stores: process-local memory (cachetools) or Redis
- Automatic JSON serialization/deserialization
- Collision-free key generation (search text is hashed, never concatenated)
- Explicit invalidation called from the repositories' write paths
- Graceful degradation when the store is unavailable

Cache Strategy:
- Listings ("books:{filter}:{digest}") and book pages ("book:{id}") share
  one TTL (1 hour by default)
- Writing a book or appending a review drops that book's page and, unless
  disabled in settings, every listing
"""

import hashlib
import json
import logging
import threading
import time
from collections.abc import Callable
from typing import Any, Optional, Protocol

import redis
from cachetools import TLRUCache
from redis.exceptions import RedisError

from bookshelf.config import Settings, get_settings

logger = logging.getLogger(__name__)

LISTING_PREFIX = "books:"
BOOK_PREFIX = "book:"


# =============================================================================
# Cache Key Generation
# =============================================================================

def normalize_search(search: str | None) -> str:
    """
    Trim search text; None becomes the empty string.

    Case is kept, so two searches share an entry only when their trimmed
    text is identical; which spellings match is left to the database.
    """
    return (search or "").strip()


def listing_cache_key(book_filter: str, search: str | None = None) -> str:
    """
    Build the cache key of a ranked listing.

    The normalized search text is hashed, so titles containing ":" (or any
    other character) can never make two different listings share a key.

    Examples:
        listing_cache_key("latest") -> "books:latest:e3b0c442..."
        listing_cache_key("latest", " Dune ") == listing_cache_key("latest", "Dune")
    """
    digest = hashlib.sha256(normalize_search(search).encode("utf-8")).hexdigest()[:32]
    return f"{LISTING_PREFIX}{book_filter}:{digest}"


def book_cache_key(book_id: int) -> str:
    """Build the cache key of a book page, e.g. book_cache_key(7) -> "book:7"."""
    return f"{BOOK_PREFIX}{int(book_id)}"


# =============================================================================
# Stores
# =============================================================================

class CacheStore(Protocol):
    """Key-value store holding serialized entries with a TTL."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str, ttl: int) -> bool: ...

    def delete(self, key: str) -> bool: ...

    def delete_prefix(self, prefix: str) -> int: ...

    def info(self) -> dict: ...

    def close(self) -> None: ...


class MemoryCacheStore:
    """
    Process-local store backed by a cachetools TLRUCache.

    Each entry carries its own TTL. cachetools is not thread-safe, so every
    access holds a lock; values are complete strings, so a reader never sees
    a half-written entry.

    Args:
        maxsize: Least recently used entries are evicted beyond this
        timer: Clock in seconds (injectable for tests)
    """

    def __init__(self, maxsize: int = 4096, timer: Callable[[], float] = time.monotonic) -> None:
        self._lock = threading.Lock()
        self._data: TLRUCache = TLRUCache(
            maxsize=maxsize,
            ttu=lambda _key, entry, now: now + entry[1],
            timer=timer,
        )

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._data.get(key)
        return entry[0] if entry is not None else None

    def set(self, key: str, value: str, ttl: int) -> bool:
        with self._lock:
            self._data[key] = (value, ttl)
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            self._data.pop(key, None)
        return True

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [k for k in list(self._data.keys()) if k.startswith(prefix)]
            for key in keys:
                self._data.pop(key, None)
        return len(keys)

    def info(self) -> dict:
        with self._lock:
            self._data.expire()
            return {"backend": "memory", "status": "connected", "keys": len(self._data)}

    def close(self) -> None:
        with self._lock:
            self._data.clear()


class RedisCacheStore:
    """
    Redis-backed store shared by every API instance.

    The connection is opened lazily and re-tried on the next call after a
    failure. Every Redis error is logged and reported as a miss (reads) or
    False/0 (writes) so the API keeps serving without its cache.
    """

    def __init__(self, url: str, client: Optional[redis.Redis] = None) -> None:
        self._url = url
        self._client = client

    def _get_client(self) -> Optional[redis.Redis]:
        if self._client is not None:
            return self._client

        try:
            client = redis.from_url(
                self._url,
                decode_responses=True,  # Return strings instead of bytes
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            client.ping()
            logger.info("Successfully connected to Redis")
            self._client = client
            return client
        except RedisError as e:
            logger.warning(f"Failed to connect to Redis: {e}. Caching disabled.")
            return None

    def get(self, key: str) -> Optional[str]:
        client = self._get_client()
        if client is None:
            return None
        try:
            return client.get(key)
        except RedisError as e:
            logger.warning(f"Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: str, ttl: int) -> bool:
        client = self._get_client()
        if client is None:
            return False
        try:
            # SETEX writes value and expiry in one atomic command
            client.setex(key, ttl, value)
            return True
        except RedisError as e:
            logger.warning(f"Cache set error for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        client = self._get_client()
        if client is None:
            return False
        try:
            client.delete(key)
            return True
        except RedisError as e:
            logger.warning(f"Cache delete error for {key}: {e}")
            return False

    def delete_prefix(self, prefix: str) -> int:
        client = self._get_client()
        if client is None:
            return 0
        try:
            keys = list(client.scan_iter(match=f"{prefix}*"))
            if keys:
                return client.delete(*keys)
            return 0
        except RedisError as e:
            logger.warning(f"Cache delete prefix error for {prefix}: {e}")
            return 0

    def info(self) -> dict:
        client = self._get_client()
        if client is None:
            return {"backend": "redis", "status": "disconnected"}
        try:
            stats = client.info("stats")
            return {
                "backend": "redis",
                "status": "connected",
                "hits": stats.get("keyspace_hits", 0),
                "misses": stats.get("keyspace_misses", 0),
                "keys": client.dbsize(),
            }
        except RedisError:
            return {"backend": "redis", "status": "error"}

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("Redis connection closed")


# =============================================================================
# Cache Layer
# =============================================================================

class CacheLayer:
    """
    Read-through cache with explicit invalidation.

    Args:
        store: Backing store, or None to disable caching (every call computes)
        ttl: Default time-to-live in seconds
        invalidate_listings_on_write: Whether a book or review write drops
            every cached listing in addition to the book's own page

    Usage:
        cache = CacheLayer(MemoryCacheStore(), ttl=3600)
        books = cache.get_or_compute(
            listing_cache_key("latest"),
            lambda: compute_listing(),
        )
        cache.on_book_written(book_id)
    """

    def __init__(
        self,
        store: Optional[CacheStore],
        ttl: int = 3600,
        invalidate_listings_on_write: bool = True,
    ) -> None:
        self.store = store
        self.ttl = ttl
        self.invalidate_listings_on_write = invalidate_listings_on_write
        # Bumped by every invalidation; a miss computed across a bump is not stored
        self._generation = 0
        self._generation_lock = threading.Lock()

    def _bump_generation(self) -> None:
        with self._generation_lock:
            self._generation += 1

    @property
    def enabled(self) -> bool:
        return self.store is not None

    def get_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], Any],
        ttl: Optional[int] = None,
    ) -> Any:
        """
        Return the cached value for `key`, computing and storing it on a miss.

        The value must be JSON-serializable. On a miss the returned value is
        the JSON round-trip of what compute_fn produced, so a hit and a miss
        hand back identical data. A value that cannot be serialized is
        returned as computed and not cached.

        If this layer invalidates anything while compute_fn runs, the value is
        returned but not stored.

        Args:
            key: Cache key
            compute_fn: Called only on a miss
            ttl: Time-to-live in seconds (uses the layer default if not given)

        Returns:
            Cached or freshly computed value
        """
        if self.store is None:
            return compute_fn()

        cached = self.store.get(key)
        if cached is not None:
            try:
                value = json.loads(cached)
                logger.debug(f"Cache HIT: {key}")
                return value
            except json.JSONDecodeError as e:
                logger.warning(f"Cache JSON decode error for {key}: {e}")

        logger.debug(f"Cache MISS: {key}")
        generation = self._generation
        value = compute_fn()

        try:
            serialized = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            logger.warning(f"Cache serialization error for {key}: {e}")
            return value

        ttl = ttl if ttl is not None else self.ttl
        with self._generation_lock:
            if generation != self._generation:
                logger.debug(f"Cache SKIP: {key} (invalidated during compute)")
            elif self.store.set(key, serialized, ttl):
                logger.debug(f"Cache SET: {key} (TTL: {ttl}s)")
        return json.loads(serialized)

    def invalidate(self, key: str) -> None:
        """Delete one entry; deleting a missing key is a no-op."""
        if self.store is None:
            return
        self._bump_generation()
        self.store.delete(key)
        logger.debug(f"Cache DELETE: {key}")

    def invalidate_book(self, book_id: int) -> None:
        """Delete the cached page of one book."""
        self.invalidate(book_cache_key(book_id))

    def invalidate_listings(self) -> int:
        """Delete every cached listing. Returns how many entries went."""
        if self.store is None:
            return 0
        self._bump_generation()
        deleted = self.store.delete_prefix(LISTING_PREFIX)
        logger.debug(f"Cache DELETE PREFIX: {LISTING_PREFIX} ({deleted} keys)")
        return deleted

    def on_book_written(self, book_id: int) -> None:
        """
        Write hook called after a book is updated or deleted, or after a
        review of it is appended.
        """
        self.invalidate_book(book_id)
        if self.invalidate_listings_on_write:
            self.invalidate_listings()

    def stats(self) -> dict:
        """Store statistics for the health check."""
        if self.store is None:
            return {"status": "disabled"}
        return self.store.info()

    def close(self) -> None:
        if self.store is not None:
            self.store.close()


# =============================================================================
# Factory
# =============================================================================

def create_cache_layer(settings: Settings) -> CacheLayer:
    """Build the cache layer described by the settings."""
    store: Optional[CacheStore] = None
    if settings.cache_enabled:
        if settings.cache_url.startswith("memory://"):
            store = MemoryCacheStore(maxsize=settings.cache_max_entries)
        else:
            store = RedisCacheStore(settings.cache_url)

    return CacheLayer(
        store,
        ttl=settings.cache_ttl,
        invalidate_listings_on_write=settings.cache_invalidate_listings_on_write,
    )


_cache_layer: Optional[CacheLayer] = None


def get_cache_layer() -> CacheLayer:
    """
    Get the process-wide cache layer.

    Uses a module-level singleton so every request shares one store.
    """
    global _cache_layer
    if _cache_layer is None:
        _cache_layer = create_cache_layer(get_settings())
    return _cache_layer


def close_cache_layer() -> None:
    """Release the cache store on shutdown."""
    global _cache_layer
    if _cache_layer is not None:
        _cache_layer.close()
        _cache_layer = None
