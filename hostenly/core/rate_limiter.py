"""In-memory rate limiting for the host API."""

import threading
import time
from collections.abc import Callable
from functools import lru_cache

from fastapi import Depends, HTTPException, Request

from hostenly.core.config import get_settings
from hostenly.core.logging import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """
    Token bucket rate limiter keyed by caller.

    Each key starts with `max_requests` tokens, refilled continuously so a
    full bucket is restored over `window_seconds`. State is per process.
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 900,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate limiter.

        Args:
            max_requests: Requests allowed per window (also the burst size)
            window_seconds: Time for an empty bucket to refill completely
            clock: Monotonic time source
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.refill_rate = max_requests / window_seconds  # tokens per second
        self._clock = clock
        self._lock = threading.Lock()

        # key -> (tokens, last_refill_time)
        self._buckets: dict[str, tuple[float, float]] = {}

    def _refill_bucket(self, key: str, now: float) -> float:
        tokens, last_refill = self._buckets.get(key, (float(self.max_requests), now))
        tokens = min(float(self.max_requests), tokens + (now - last_refill) * self.refill_rate)
        self._buckets[key] = (tokens, now)
        return tokens

    def check_limit(self, key: str, cost: float = 1.0) -> None:
        """
        Consume `cost` tokens for `key`.

        Raises:
            HTTPException: 429 with Retry-After if the bucket is empty
        """
        with self._lock:
            now = self._clock()
            tokens = self._refill_bucket(key, now)

            if tokens >= cost:
                self._buckets[key] = (tokens - cost, now)
                return

        retry_after = int((cost - tokens) / self.refill_rate) + 1
        logger.warning(
            f"Rate limit exceeded for key: {key}, "
            f"tokens: {tokens:.2f}/{self.max_requests}, "
            f"retry after: {retry_after}s"
        )
        raise HTTPException(
            status_code=429,
            detail=f"Too many requests. Try again in {retry_after} seconds.",
            headers={"Retry-After": str(retry_after)},
        )

    def reset(self, key: str) -> None:
        with self._lock:
            self._buckets.pop(key, None)


@lru_cache(maxsize=1)
def get_api_rate_limiter() -> RateLimiter:
    settings = get_settings()
    return RateLimiter(
        max_requests=settings.RATE_LIMIT_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    )


def check_api_rate_limit(
    request: Request,
    limiter: RateLimiter = Depends(get_api_rate_limiter),
) -> None:
    """Router dependency limiting host API calls per client IP."""
    client_ip = request.client.host if request.client else "unknown"
    limiter.check_limit(f"api:{client_ip}")
