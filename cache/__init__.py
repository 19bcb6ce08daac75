"""In-memory, time-bound caches.

Entries are performance hints only: they expire, can be evicted at any time
and are never the source of truth.
"""

from typing import Any, Hashable, Optional

from cachetools import TTLCache

from config import settings_conf

class Cache:
    """LRU cache whose entries expire after a fixed time-to-live."""

    def __init__(self, max_size: int, ttl: float):
        self._cache = TTLCache(maxsize=max_size, ttl=ttl)

    def get(self, key: Hashable, default: Optional[Any] = None) -> Any:
        return self._cache.get(key, default)

    def set(self, key: Hashable, value: Any) -> None:
        self._cache[key] = value

    def has(self, key: Hashable) -> bool:
        return key in self._cache

    def delete(self, key: Hashable) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)

def create_cache(max_size: int, ttl: float) -> Cache:
    """Create a cache holding at most max_size entries for ttl seconds each."""
    return Cache(max_size, ttl)

# Review counts per seller
review_count_cache = create_cache(
    settings_conf['review_count_cache_size'],
    settings_conf['review_count_cache_ttl'],
)

# Review lists per seller; shorter lived since lists change more often
user_reviews_list_cache = create_cache(
    settings_conf['review_list_cache_size'],
    settings_conf['review_list_cache_ttl'],
)

__all__ = ['Cache', 'create_cache', 'review_count_cache', 'user_reviews_list_cache']
