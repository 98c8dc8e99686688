"""
Fixed-window request throttle for external commerce APIs.

One instance per backend; instances share no state. This is a local,
single-process limiter: it is only correct while exactly one process drives
each integration.
"""
import asyncio
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Optional

from catalog_sync.utils.logger import get_logger

logger = get_logger("core.rate_limiter")


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class RateLimiter:
    """
    Fixed-window throttle.

    Usage:
        limiter = RateLimiter(max_requests=40, window_ms=1000, name="shopify")
        await limiter.check_rate_limit()   # before every outbound request
    """

    def __init__(
        self,
        max_requests: int,
        window_ms: int,
        name: str = "default",
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")

        self.max_requests = max_requests
        self.window_ms = window_ms
        self.name = name
        self._clock = clock or _monotonic_ms
        self._sleep = sleep or asyncio.sleep
        self._lock = asyncio.Lock()

        self._request_count = 0
        self._window_start = self._clock()

    @property
    def request_count(self) -> int:
        return self._request_count

    @property
    def window_start(self) -> float:
        return self._window_start

    async def check_rate_limit(self) -> float:
        """
        Wait until a request may be issued, then count it.

        Returns:
            Milliseconds spent waiting (0.0 when the call went straight through)
        """
        async with self._lock:
            now = self._clock()

            if now - self._window_start >= self.window_ms:
                self._request_count = 0
                self._window_start = now

            waited = 0.0
            if self._request_count >= self.max_requests:
                waited = max(self.window_ms - (now - self._window_start), 0.0)
                logger.warning(f"{self.name} rate limit reached, waiting {waited:.0f}ms")
                # Sleep inside the lock: queued callers resume in the fresh window.
                await self._sleep(waited / 1000.0)
                self._request_count = 0
                self._window_start = self._clock()

            self._request_count += 1
            return waited

    def remaining_requests(self) -> int:
        """Requests still available in the current window."""
        if self._clock() - self._window_start >= self.window_ms:
            return self.max_requests
        return max(self.max_requests - self._request_count, 0)

    def reset_time(self) -> datetime:
        """Wall-clock time at which the current window ends."""
        remaining_ms = max(self.window_ms - (self._clock() - self._window_start), 0.0)
        return datetime.fromtimestamp(time.time() + remaining_ms / 1000.0, tz=timezone.utc)

    def status(self) -> Dict[str, object]:
        return {
            "remainingRequests": self.remaining_requests(),
            "resetTime": self.reset_time().isoformat(),
            "maxRequests": self.max_requests,
            "windowMs": self.window_ms,
        }


def shopify_rate_limiter(max_requests: int = 40, window_ms: int = 1000, **kwargs) -> RateLimiter:
    """Shopify REST Admin API: 40 requests per second."""
    return RateLimiter(max_requests, window_ms, name="shopify", **kwargs)


def woocommerce_rate_limiter(max_requests: int = 100, window_ms: int = 15 * 60 * 1000, **kwargs) -> RateLimiter:
    """WooCommerce REST API: 100 requests per 15 minutes."""
    return RateLimiter(max_requests, window_ms, name="woocommerce", **kwargs)
