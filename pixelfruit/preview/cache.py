"""
Bounded TTL result cache for processed buffers.

Entries expire lazily a fixed time after their last access. When a cache
is full, inserting a new key evicts the entry accessed least recently.
"""

import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, Iterable, Optional, Sequence, Tuple, Union

import numpy as np

from ..errors import CacheMiss
from ..models import Operation
from .models import CacheSettings

logger = logging.getLogger(__name__)

PROCESSED = "processed"
MATCHES = "matches"
CACHE_KINDS = (PROCESSED, MATCHES)

KEY_SAMPLE_PIXELS = 100

_MISSING = object()


def generate_cache_key(pixels: np.ndarray,
                       operations: Sequence[Union[Operation, Dict[str, Any]]] = ()) -> str:
    """
    Key from dimensions, a pixel sample and the operation list.

    Format: ``{w}x{h}_{sample digest}_{operations digest}``.
    """
    height, width = pixels.shape[:2]
    flat = pixels.reshape(-1, pixels.shape[-1])
    count = min(KEY_SAMPLE_PIXELS, flat.shape[0])
    indices = (np.arange(count, dtype=np.int64) * flat.shape[0]) // max(count, 1)
    sample_hash = hashlib.md5(flat[indices].tobytes()).hexdigest()[:8]

    ops = [op.to_dict() if isinstance(op, Operation) else op for op in operations]
    ops_str = json.dumps(ops, sort_keys=True, default=str)
    ops_hash = hashlib.md5(ops_str.encode()).hexdigest()[:8]

    return f"{width}x{height}_{sample_hash}_{ops_hash}"


class ResultCache:
    """
    Timestamped cache with sliding expiry.
    """

    def __init__(self, settings: Optional[CacheSettings] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.settings = settings or CacheSettings()
        self._clock = clock
        # Ordered oldest access first
        self._entries: "OrderedDict[str, Tuple[Any, float]]" = OrderedDict()
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def keys(self) -> Iterable[str]:
        with self._lock:
            return list(self._entries)

    def lookup(self, key: str) -> Any:
        """
        Return a live value and refresh its timestamp.

        Raises:
            CacheMiss: caching is disabled, or the key is absent or expired
        """
        with self._lock:
            if not self.settings.enabled:
                raise CacheMiss(key)
            try:
                value, timestamp = self._entries[key]
            except KeyError:
                raise CacheMiss(key) from None

            now = self._clock()
            if now - timestamp > self.settings.ttl:
                del self._entries[key]
                logger.debug(f"Cache entry {key} expired")
                raise CacheMiss(key)

            self._entries[key] = (value, now)
            self._entries.move_to_end(key)
            return value

    def get(self, key: str, default: Any = None) -> Any:
        """Get a cached value, or ``default`` on a miss."""
        try:
            value = self.lookup(key)
        except CacheMiss:
            self.misses += 1
            return default
        self.hits += 1
        return value

    def put(self, key: str, value: Any) -> bool:
        """Store a value, evicting the least recently accessed entry if full."""
        with self._lock:
            if not self.settings.enabled:
                return False

            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.settings.max_size:
                old_key, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted {old_key} from cache")

            self._entries[key] = (value, self._clock())
            return True

    def remove(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, _MISSING) is not _MISSING

    def clear(self):
        with self._lock:
            self._entries.clear()

    def trim(self):
        """Evict oldest entries until the size bound holds."""
        with self._lock:
            while len(self._entries) > self.settings.max_size:
                self._entries.popitem(last=False)

    def get_stats(self) -> Dict[str, Union[int, float]]:
        with self._lock:
            lookups = self.hits + self.misses
            return {
                'items': len(self._entries),
                'max_size': self.settings.max_size,
                'hits': self.hits,
                'misses': self.misses,
                'hit_ratio': self.hits / lookups if lookups else 0.0
            }


class CacheStore:
    """Named result caches sharing one configuration."""

    def __init__(self, settings: Optional[CacheSettings] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.settings = settings or CacheSettings()
        self.caches: Dict[str, ResultCache] = {
            kind: ResultCache(self.settings, clock=clock) for kind in CACHE_KINDS
        }

    def __getitem__(self, kind: str) -> ResultCache:
        try:
            return self.caches[kind]
        except KeyError:
            raise ValueError(f"Unknown cache kind: {kind}") from None

    def get(self, key: str, kind: str = PROCESSED, default: Any = None) -> Any:
        return self[kind].get(key, default)

    def put(self, key: str, value: Any, kind: str = PROCESSED) -> bool:
        return self[kind].put(key, value)

    def configure(self, max_size: Optional[int] = None, ttl: Optional[float] = None,
                  enabled: Optional[bool] = None) -> CacheSettings:
        """Merge new settings into the shared configuration."""
        updated = CacheSettings(
            max_size=self.settings.max_size if max_size is None else max_size,
            ttl=self.settings.ttl if ttl is None else ttl,
            enabled=self.settings.enabled if enabled is None else enabled,
        )
        self.settings.max_size = updated.max_size
        self.settings.ttl = updated.ttl
        self.settings.enabled = updated.enabled

        for cache in self.caches.values():
            cache.trim()
        logger.info(f"Cache configured: max_size={updated.max_size}, "
                    f"ttl={updated.ttl}s, enabled={updated.enabled}")
        return self.settings

    def clear(self, kind: Optional[str] = None):
        """Clear one named cache, or all of them."""
        if kind is None:
            for cache in self.caches.values():
                cache.clear()
        else:
            self[kind].clear()
        logger.debug(f"Cleared cache: {kind or 'all'}")

    def get_stats(self) -> Dict[str, Dict[str, Union[int, float]]]:
        return {kind: cache.get_stats() for kind, cache in self.caches.items()}
