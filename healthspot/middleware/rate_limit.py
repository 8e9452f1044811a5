"""Per-client sliding window rate limiting."""

import math
import time
from collections import OrderedDict, deque
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.status import HTTP_429_TOO_MANY_REQUESTS
from starlette.types import ASGIApp

from healthspot.core.errors import RateLimitExceeded
from healthspot.core.logging import get_logger

logger = get_logger()

# Idle keys are swept every this many hits
PURGE_INTERVAL = 1000


class SlidingWindowRateLimiter:
    """Counts hits per key inside a rolling time window.

    Each key keeps a deque of hit timestamps. Expired timestamps are dropped
    whenever a key is touched; keys with no live timestamps are removed by
    ``purge()``, which runs every ``PURGE_INTERVAL`` hits and whenever the
    number of tracked keys exceeds ``max_clients``. If purging frees nothing,
    the least recently used keys are evicted.
    """

    def __init__(
        self,
        window_seconds: float = 60.0,
        max_requests: int = 60,
        max_clients: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window_seconds <= 0 or max_requests < 1 or max_clients < 1:
            raise ValueError("Rate limiter bounds must be positive")
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.max_clients = max_clients
        self.clock = clock
        self._hits: OrderedDict[str, deque[float]] = OrderedDict()
        self._since_purge = 0

    def __len__(self) -> int:
        return len(self._hits)

    def _evict_expired(self, timestamps: deque[float], now: float) -> None:
        cutoff = now - self.window_seconds
        while timestamps and timestamps[0] <= cutoff:
            timestamps.popleft()

    def purge(self, now: Optional[float] = None) -> int:
        """Drop keys without live hits; return how many were removed."""
        now = self.clock() if now is None else now
        removed = 0
        for key in list(self._hits):
            timestamps = self._hits[key]
            self._evict_expired(timestamps, now)
            if not timestamps:
                del self._hits[key]
                removed += 1
        self._since_purge = 0
        return removed

    def hit(self, key: str, now: Optional[float] = None) -> tuple[bool, int]:
        """Record a request for ``key``.

        Returns:
            ``(allowed, retry_after_seconds)``; ``retry_after`` is 0 when allowed
        """
        now = self.clock() if now is None else now

        self._since_purge += 1
        if self._since_purge >= PURGE_INTERVAL:
            self.purge(now)

        timestamps = self._hits.get(key)
        if timestamps is None:
            if len(self._hits) >= self.max_clients:
                self.purge(now)
                while len(self._hits) >= self.max_clients:
                    self._hits.popitem(last=False)
            timestamps = self._hits[key] = deque()
        else:
            self._hits.move_to_end(key)
            self._evict_expired(timestamps, now)

        if len(timestamps) >= self.max_requests:
            retry_after = max(1, math.ceil(timestamps[0] + self.window_seconds - now))
            return False, retry_after

        timestamps.append(now)
        return True, 0


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reject clients that exceed the injected limiter's budget with a 429."""

    def __init__(
        self,
        app: ASGIApp,
        limiter: SlidingWindowRateLimiter,
        key_func: Callable[[Request], str] = client_key,
        exempt_paths: tuple[str, ...] = ("/health", "/metrics"),
    ) -> None:
        super().__init__(app)
        self.limiter = limiter
        self.key_func = key_func
        self.exempt_paths = exempt_paths

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if request.method == "OPTIONS" or request.url.path in self.exempt_paths:
            return await call_next(request)

        key = self.key_func(request)
        allowed, retry_after = self.limiter.hit(key)
        if allowed:
            return await call_next(request)

        exc = RateLimitExceeded(retry_after)
        logger.warning("rate_limit_exceeded", client=key, retry_after=retry_after)
        return JSONResponse(
            status_code=HTTP_429_TOO_MANY_REQUESTS,
            content={"error": exc.message, "retryAfter": retry_after},
            headers={"Retry-After": str(retry_after)},
        )
