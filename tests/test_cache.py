"""
Tests for the result cache and cache key generation.
"""

import pytest
import numpy as np

from pixelfruit.errors import CacheMiss
from pixelfruit.models import Operation
from pixelfruit.preview.cache import (
    MATCHES, PROCESSED, CacheStore, ResultCache, generate_cache_key
)
from pixelfruit.preview.models import CacheSettings


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class TestResultCache:
    """Test LRU and TTL behaviour."""

    def test_put_get(self, clock):
        """Stored values come back until they expire."""
        cache = ResultCache(CacheSettings(max_size=3, ttl=10), clock=clock)
        cache.put('a', 1)
        assert cache.get('a') == 1
        assert cache.get('missing', 'fallback') == 'fallback'

    def test_lookup_raises_cache_miss(self, clock):
        """lookup() signals absence with CacheMiss."""
        cache = ResultCache(clock=clock)
        with pytest.raises(CacheMiss):
            cache.lookup('nope')

    def test_evicts_oldest_when_full(self, clock):
        """Without reads, the first entry in is the first evicted."""
        cache = ResultCache(CacheSettings(max_size=2, ttl=10), clock=clock)
        cache.put('a', 1)
        cache.put('b', 2)
        cache.put('c', 3)

        with pytest.raises(CacheMiss):
            cache.lookup('a')
        assert cache.lookup('b') == 2
        assert cache.lookup('c') == 3
        assert len(cache) == 2

    def test_evicts_least_recently_accessed(self, clock):
        """Reading an entry protects it from the next eviction."""
        cache = ResultCache(CacheSettings(max_size=2, ttl=10), clock=clock)
        cache.put('a', 1)
        clock.advance(1)
        cache.put('b', 2)
        clock.advance(1)
        cache.get('a')
        cache.put('c', 3)

        assert 'a' in cache
        assert 'b' not in cache
        assert len(cache) == 2

    def test_ttl_expiry(self, clock):
        """Entries untouched for longer than the TTL are gone."""
        cache = ResultCache(CacheSettings(ttl=10), clock=clock)
        cache.put('a', 1)
        clock.advance(10)
        assert cache.get('a') == 1
        clock.advance(10.5)
        assert cache.get('a') is None
        assert 'a' not in cache

    def test_read_refreshes_ttl(self, clock):
        """Each read restarts the expiry window."""
        cache = ResultCache(CacheSettings(ttl=10), clock=clock)
        cache.put('a', 1)
        for _ in range(3):
            clock.advance(8)
            assert cache.get('a') == 1

    def test_overwrite_does_not_evict(self, clock):
        """Replacing an existing key keeps the other entries."""
        cache = ResultCache(CacheSettings(max_size=2), clock=clock)
        cache.put('a', 1)
        cache.put('b', 2)
        cache.put('a', 3)
        assert cache.get('a') == 3
        assert cache.get('b') == 2

    def test_disabled_cache(self, clock):
        """A disabled cache stores nothing and always misses."""
        cache = ResultCache(CacheSettings(enabled=False), clock=clock)
        assert cache.put('a', 1) is False
        assert cache.get('a') is None

    def test_stats(self, clock):
        """Hits and misses are counted."""
        cache = ResultCache(clock=clock)
        cache.put('a', 1)
        cache.get('a')
        cache.get('b')
        stats = cache.get_stats()
        assert stats['hits'] == 1
        assert stats['misses'] == 1
        assert stats['hit_ratio'] == 0.5
        assert stats['items'] == 1

    @pytest.mark.parametrize("settings", [{'max_size': 0}, {'ttl': 0}])
    def test_invalid_settings(self, settings):
        """Non-positive sizes and TTLs are rejected."""
        with pytest.raises(ValueError):
            CacheSettings(**settings)


class TestCacheStore:
    """Test the named cache store."""

    def test_kinds_are_independent(self, clock):
        """The processed and matches caches do not share keys."""
        store = CacheStore(clock=clock)
        store.put('k', 'image', PROCESSED)
        store.put('k', 'matches', MATCHES)
        assert store.get('k', PROCESSED) == 'image'
        assert store.get('k', MATCHES) == 'matches'

        store.clear(MATCHES)
        assert store.get('k', MATCHES) is None
        assert store.get('k', PROCESSED) == 'image'

    def test_unknown_kind(self, clock):
        """Unknown cache names raise ValueError."""
        with pytest.raises(ValueError):
            CacheStore(clock=clock).get('k', 'thumbnails')

    def test_configure_shrinks_caches(self, clock):
        """Lowering max_size trims existing entries oldest first."""
        store = CacheStore(CacheSettings(max_size=4), clock=clock)
        for key in 'abcd':
            store.put(key, key)
            clock.advance(1)

        settings = store.configure(max_size=2)
        assert settings.max_size == 2
        assert store[PROCESSED].keys() == ['c', 'd']

    def test_configure_validates(self, clock):
        """Invalid settings leave the configuration unchanged."""
        store = CacheStore(clock=clock)
        with pytest.raises(ValueError):
            store.configure(ttl=-5)
        assert store.settings.ttl == 300.0

    def test_configure_disable(self, clock):
        """Disabling the store turns every lookup into a miss."""
        store = CacheStore(clock=clock)
        store.put('k', 1)
        store.configure(enabled=False)
        assert store.get('k') is None


class TestCacheKey:
    """Test cache key generation."""

    def test_format(self, random_image):
        """Keys start with the dimensions and carry two short digests."""
        key = generate_cache_key(random_image, [])
        dims, sample, ops = key.split('_')
        assert dims == '24x16'
        assert len(sample) == 8
        assert len(ops) == 8

    def test_param_order_irrelevant(self, random_image):
        """Operation parameters are hashed with sorted keys."""
        a = [{'type': 'sharpen', 'params': {'amount': 10, 'texture': 5}}]
        b = [{'params': {'texture': 5, 'amount': 10}, 'type': 'sharpen'}]
        assert generate_cache_key(random_image, a) == generate_cache_key(random_image, b)

    def test_operation_objects_match_dicts(self, random_image):
        """Parsed operations hash the same as their dict form."""
        op = Operation.from_dict({'type': 'sharpen', 'params': {'amount': 10}})
        assert (generate_cache_key(random_image, [op]) ==
                generate_cache_key(random_image, [op.to_dict()]))

    def test_operations_change_key(self, random_image):
        """Different operations give different keys."""
        a = [{'type': 'sharpen', 'params': {'amount': 10}}]
        b = [{'type': 'sharpen', 'params': {'amount': 20}}]
        assert generate_cache_key(random_image, a) != generate_cache_key(random_image, b)

    def test_content_changes_key(self, make_solid):
        """Different pixel content gives different keys."""
        assert (generate_cache_key(make_solid(4, 4, (1, 1, 1))) !=
                generate_cache_key(make_solid(4, 4, (2, 2, 2))))

    def test_dimensions_change_key(self, make_solid):
        """Same content in different shapes gives different keys."""
        a = generate_cache_key(make_solid(4, 2, (1, 1, 1)))
        b = generate_cache_key(make_solid(2, 4, (1, 1, 1)))
        assert a != b
