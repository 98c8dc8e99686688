"""
Short-lived in-process cache with explicit invalidation.

One ``TTLCache`` per cached resource (company info, each prompt). The cache
knows nothing about writes to the underlying resource: every code path that
mutates it must call ``invalidate()``.
"""
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

from catalog_sync.utils.logger import get_logger

logger = get_logger("core.cache")

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    data: Optional[T]
    timestamp: float


class TTLCache(Generic[T]):
    """
    Single-entry cache with a fixed time-to-live.

    An entry is valid iff ``now - timestamp < ttl``. On loader failure an
    expired entry is served as a fallback (availability over freshness).

    Usage:
        cache = TTLCache("company_info", ttl_seconds=300)
        info = await cache.get_or_load(repository.get_company_info)
        cache.invalidate()   # after any write to company info
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: float,
        clock: Optional[Callable[[], float]] = None,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.name = name
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.monotonic
        self._entry: Optional[CacheEntry[T]] = None
        self._hits = 0
        self._misses = 0
        self._stale_served = 0

    def is_valid(self) -> bool:
        return self._entry is not None and self._clock() - self._entry.timestamp < self.ttl_seconds

    def peek(self) -> Optional[T]:
        """Return the cached value if still valid, without loading."""
        if self.is_valid():
            return self._entry.data
        return None

    async def get_or_load(self, loader: Callable[[], Awaitable[T]]) -> Optional[T]:
        now = self._clock()

        if self._entry is not None and now - self._entry.timestamp < self.ttl_seconds:
            self._hits += 1
            logger.debug(f"{self.name} retrieved from cache")
            return self._entry.data

        self._misses += 1
        try:
            data = await loader()
        except Exception as e:
            if self._entry is not None:
                self._stale_served += 1
                age = now - self._entry.timestamp
                logger.warning(
                    f"{self.name} reload failed ({e}); serving stale value aged {age:.1f}s"
                )
                return self._entry.data
            logger.error(f"{self.name} load failed with no cached fallback: {e}")
            raise

        self._entry = CacheEntry(data=data, timestamp=self._clock())
        logger.debug(f"{self.name} cached (has_data={data is not None})")
        return data

    def invalidate(self) -> None:
        """Discard the entry entirely so the next read reloads."""
        self._entry = None
        logger.info(f"{self.name} cache invalidated")

    def stats(self) -> Dict[str, Any]:
        age = None
        if self._entry is not None:
            age = self._clock() - self._entry.timestamp
        return {
            "name": self.name,
            "ttl_seconds": self.ttl_seconds,
            "cached": self._entry is not None,
            "valid": self.is_valid(),
            "age_seconds": age,
            "hits": self._hits,
            "misses": self._misses,
            "stale_served": self._stale_served,
        }
