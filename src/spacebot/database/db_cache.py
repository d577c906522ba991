"""
Short-lived caching of database query results.

`TTLCache` keeps values for a per-entry time-to-live so hot lookups (the rule
list consulted for every gateway event) do not hit SQLite each time. Stores
receive the cache as a constructor argument, so tests can pass their own.
"""

from typing import Any, Callable, Dict, Optional, Tuple
import time

from spacebot.util.logger import get_logger

logger = get_logger("database_cache")


class TTLCache:
    """
    TTL-based cache keyed by strings.

    Args:
        default_ttl: Lifetime in seconds used when ``set`` gets no explicit TTL.
        clock: Monotonic time source, replaceable for tests.
    """

    def __init__(self, default_ttl: float = 30, clock: Callable[[], float] = time.monotonic):
        self._cache: Dict[str, Tuple[float, Any]] = {}
        self._default_ttl = default_ttl
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        """
        Return the cached value for ``key``.

        Returns:
            The value if present and not expired, otherwise None.
        """
        entry = self._cache.get(key)
        if entry is None:
            return None

        expires_at, value = entry
        if self._clock() < expires_at:
            logger.debug("[CACHE] Hit for key: %s", key)
            return value

        del self._cache[key]
        logger.debug("[CACHE] Expired key: %s", key)
        return None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Store ``value`` under ``key`` for ``ttl`` seconds.

        A TTL of zero or less stores nothing.
        """
        lifetime = self._default_ttl if ttl is None else ttl
        if lifetime <= 0:
            return
        self._cache[key] = (self._clock() + lifetime, value)
        logger.debug("[CACHE] Set key: %s", key)

    def invalidate(self, prefix: Optional[str] = None) -> int:
        """
        Drop entries whose key starts with ``prefix``, or everything when None.

        Returns:
            Number of entries removed
        """
        if prefix is None:
            count = len(self._cache)
            self._cache.clear()
            logger.debug("[CACHE] Cleared all %d entries", count)
            return count

        keys_to_delete = [key for key in self._cache if key.startswith(prefix)]
        for key in keys_to_delete:
            del self._cache[key]
        logger.debug("[CACHE] Cleared %d entries matching '%s'", len(keys_to_delete), prefix)
        return len(keys_to_delete)

    def __len__(self) -> int:
        return len(self._cache)
