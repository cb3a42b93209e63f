"""
Tests for the Cache Layer

Tests:
- Key generation (normalized, hashed search text)
- Read-through: a hit never recomputes and returns the same data as the miss
- Per-entry TTL on the in-memory store
- Invalidation of single entries, book pages and all listings
- A miss computed across an invalidation is not stored
- Redis store degrading to misses when Redis fails
"""

from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from bookshelf.config import Settings
from bookshelf.services.cache import (
    CacheLayer,
    MemoryCacheStore,
    RedisCacheStore,
    book_cache_key,
    create_cache_layer,
    listing_cache_key,
)


class FakeTimer:
    """Manually advanced clock for TTL tests."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class Counter:
    """compute_fn that records how often it ran."""

    def __init__(self, value) -> None:
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.value


# =============================================================================
# Key Generation
# =============================================================================


class TestCacheKeys:
    """Tests for cache key construction."""

    def test_listing_key_shape(self):
        key = listing_cache_key("latest")

        assert key.startswith("books:latest:")
        assert len(key.split(":")[-1]) == 32

    def test_search_is_trimmed(self):
        assert listing_cache_key("latest", "  Dune ") == listing_cache_key("latest", "Dune")

    def test_case_variants_get_separate_keys(self):
        """Spellings the database may match differently never share an entry."""
        assert listing_cache_key("latest", "straße") != listing_cache_key("latest", "STRASSE")
        assert listing_cache_key("latest", "DUNE") != listing_cache_key("latest", "dune")

    def test_no_search_equals_blank_search(self):
        assert listing_cache_key("latest") == listing_cache_key("latest", "   ")

    def test_filters_do_not_collide(self):
        assert listing_cache_key("latest", "dune") != listing_cache_key(
            "popular_last_month", "dune"
        )

    def test_separator_in_search_does_not_collide(self):
        """A colon in the search text cannot forge another listing's key."""
        assert listing_cache_key("latest", "a:b") != listing_cache_key("latest:a", "b")
        assert listing_cache_key("latest", "a:b").count(":") == 2

    def test_book_key(self):
        assert book_cache_key(7) == "book:7"


# =============================================================================
# Read-through
# =============================================================================


class TestGetOrCompute:
    """Tests for CacheLayer.get_or_compute."""

    def test_miss_then_hit(self, cache):
        compute = Counter({"title": "Dune", "rating": 4.5})

        first = cache.get_or_compute("books:latest:x", compute)
        second = cache.get_or_compute("books:latest:x", compute)

        assert first == second == {"title": "Dune", "rating": 4.5}
        assert compute.calls == 1

    def test_miss_returns_json_round_trip(self, cache):
        """Tuples come back as lists on both the miss and the hit."""
        compute = Counter({"ids": (1, 2)})

        first = cache.get_or_compute("k", compute)
        second = cache.get_or_compute("k", compute)

        assert first == second == {"ids": [1, 2]}

    def test_empty_list_is_cached(self, cache):
        compute = Counter([])

        cache.get_or_compute("books:latest:none", compute)
        cache.get_or_compute("books:latest:none", compute)

        assert compute.calls == 1

    def test_unserializable_value_is_not_cached(self, cache):
        class Opaque:
            def __str__(self):
                raise TypeError("no string form")

        value = Opaque()
        compute = Counter(value)

        assert cache.get_or_compute("k", compute) is value
        assert cache.get_or_compute("k", compute) is value
        assert compute.calls == 2

    def test_corrupt_entry_is_recomputed(self, cache):
        cache.store.set("k", "{not json", 60)
        compute = Counter({"ok": True})

        assert cache.get_or_compute("k", compute) == {"ok": True}
        assert compute.calls == 1

    def test_compute_errors_propagate_and_nothing_is_stored(self, cache):
        def failing():
            raise LookupError("boom")

        with pytest.raises(LookupError):
            cache.get_or_compute("k", failing)

        assert cache.store.get("k") is None

    def test_disabled_layer_always_computes(self):
        layer = CacheLayer(None)
        compute = Counter([1])

        layer.get_or_compute("k", compute)
        layer.get_or_compute("k", compute)

        assert compute.calls == 2
        assert layer.enabled is False
        assert layer.stats() == {"status": "disabled"}
        assert layer.invalidate_listings() == 0


class TestTTL:
    """Tests for per-entry expiry on the in-memory store."""

    def test_entry_expires_after_ttl(self):
        timer = FakeTimer()
        layer = CacheLayer(MemoryCacheStore(timer=timer), ttl=10)
        compute = Counter("value")

        layer.get_or_compute("k", compute)
        timer.now = 9
        layer.get_or_compute("k", compute)
        assert compute.calls == 1

        timer.now = 11
        layer.get_or_compute("k", compute)
        assert compute.calls == 2

    def test_explicit_ttl_overrides_default(self):
        timer = FakeTimer()
        layer = CacheLayer(MemoryCacheStore(timer=timer), ttl=3600)
        compute = Counter("value")

        layer.get_or_compute("k", compute, ttl=5)
        timer.now = 6
        layer.get_or_compute("k", compute)

        assert compute.calls == 2

    def test_maxsize_bounds_the_store(self):
        store = MemoryCacheStore(maxsize=2)
        for key in ("a", "b", "c"):
            store.set(key, key, 60)

        assert store.info()["keys"] == 2
        assert store.get("c") == "c"


# =============================================================================
# Invalidation
# =============================================================================


class TestInvalidation:
    """Tests for explicit invalidation."""

    def test_invalidate_forces_recompute(self, cache):
        compute = Counter("value")

        cache.get_or_compute("k", compute)
        cache.invalidate("k")
        cache.get_or_compute("k", compute)

        assert compute.calls == 2

    def test_invalidate_missing_key_is_noop(self, cache):
        cache.invalidate("never-set")
        cache.invalidate("never-set")

    def test_invalidate_listings_keeps_book_pages(self, cache):
        cache.get_or_compute(listing_cache_key("latest"), lambda: [1])
        cache.get_or_compute(listing_cache_key("popular_last_month", "dune"), lambda: [2])
        cache.get_or_compute(book_cache_key(1), lambda: {"id": 1})

        assert cache.invalidate_listings() == 2
        assert cache.store.get(listing_cache_key("latest")) is None
        assert cache.store.get(book_cache_key(1)) is not None

    def test_on_book_written_drops_page_and_listings(self, cache):
        cache.get_or_compute(listing_cache_key("latest"), lambda: [1])
        cache.get_or_compute(book_cache_key(1), lambda: {"id": 1})
        cache.get_or_compute(book_cache_key(2), lambda: {"id": 2})

        cache.on_book_written(1)

        assert cache.store.get(listing_cache_key("latest")) is None
        assert cache.store.get(book_cache_key(1)) is None
        assert cache.store.get(book_cache_key(2)) is not None

    def test_on_book_written_can_keep_listings(self):
        layer = CacheLayer(MemoryCacheStore(), invalidate_listings_on_write=False)
        layer.get_or_compute(listing_cache_key("latest"), lambda: [1])
        layer.get_or_compute(book_cache_key(1), lambda: {"id": 1})

        layer.on_book_written(1)

        assert layer.store.get(listing_cache_key("latest")) is not None
        assert layer.store.get(book_cache_key(1)) is None

    def test_value_computed_across_a_write_is_not_stored(self, cache):
        key = listing_cache_key("latest")

        def compute_while_review_lands():
            # A review is appended after this listing was read from the database
            cache.on_book_written(1)
            return ["before the review"]

        value = cache.get_or_compute(key, compute_while_review_lands)

        assert value == ["before the review"]
        assert cache.store.get(key) is None
        assert cache.get_or_compute(key, lambda: ["after the review"]) == ["after the review"]

    def test_later_misses_are_stored_again(self, cache):
        cache.on_book_written(1)
        cache.get_or_compute("k", lambda: "fresh")

        assert cache.store.get("k") is not None

    def test_memory_stats(self, cache):
        cache.get_or_compute("k", lambda: 1)

        assert cache.stats() == {"backend": "memory", "status": "connected", "keys": 1}


# =============================================================================
# Redis Store
# =============================================================================


class TestRedisCacheStore:
    """Tests for the Redis store with a mocked client."""

    def test_set_uses_setex(self):
        client = MagicMock()
        store = RedisCacheStore("redis://localhost:6379/0", client=client)

        assert store.set("k", "v", 60) is True
        client.setex.assert_called_once_with("k", 60, "v")

    def test_delete_prefix_scans(self):
        client = MagicMock()
        client.scan_iter.return_value = iter(["books:latest:a", "books:latest:b"])
        client.delete.return_value = 2
        store = RedisCacheStore("redis://localhost:6379/0", client=client)

        assert store.delete_prefix("books:") == 2
        client.scan_iter.assert_called_once_with(match="books:*")
        client.delete.assert_called_once_with("books:latest:a", "books:latest:b")

    def test_errors_degrade_to_misses(self):
        client = MagicMock()
        client.get.side_effect = RedisConnectionError("down")
        client.setex.side_effect = RedisConnectionError("down")
        client.delete.side_effect = RedisConnectionError("down")
        layer = CacheLayer(RedisCacheStore("redis://localhost:6379/0", client=client))
        compute = Counter({"ok": True})

        assert layer.get_or_compute("k", compute) == {"ok": True}
        assert layer.get_or_compute("k", compute) == {"ok": True}
        assert compute.calls == 2

        layer.invalidate("k")
        assert layer.store.delete("k") is False

    def test_info_reports_error(self):
        client = MagicMock()
        client.info.side_effect = RedisConnectionError("down")
        store = RedisCacheStore("redis://localhost:6379/0", client=client)

        assert store.info() == {"backend": "redis", "status": "error"}

    def test_close_releases_client(self):
        client = MagicMock()
        store = RedisCacheStore("redis://localhost:6379/0", client=client)

        store.close()

        client.close.assert_called_once()


class TestCreateCacheLayer:
    """Tests for building the layer from settings."""

    def test_memory_url(self):
        layer = create_cache_layer(Settings(cache_url="memory://", cache_ttl=120))

        assert isinstance(layer.store, MemoryCacheStore)
        assert layer.ttl == 120

    def test_redis_url(self):
        layer = create_cache_layer(Settings(cache_url="redis://localhost:6379/0"))

        assert isinstance(layer.store, RedisCacheStore)

    def test_disabled(self):
        layer = create_cache_layer(Settings(cache_enabled=False))

        assert layer.enabled is False

    def test_listing_policy_from_settings(self):
        layer = create_cache_layer(Settings(cache_invalidate_listings_on_write=False))

        assert layer.invalidate_listings_on_write is False
