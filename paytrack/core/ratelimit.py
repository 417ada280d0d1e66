"""
Paytrack — core/ratelimit.py
─────────────────────────────────────────────────────────────────
Global request limit per client address (fixed window, in memory).

Default: 100 requests / 15 minutes on /api/*. Counters are per
process. With several workers each one counts on its own.
─────────────────────────────────────────────────────────────────
"""

import math
import time
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

from fastapi import Request
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("paytrack.ratelimit")


@dataclass
class RateLimitResult:
    allowed:     bool
    limit:       int
    remaining:   int
    reset_after: float   # seconds until the window rolls over


class RateLimiter:
    # Above this many tracked addresses, expired windows are dropped,
    # at most once per window.
    max_keys = 10_000

    def __init__(self, limit: int, window_seconds: float,
                 clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window = float(window_seconds)
        self._clock = clock
        self._hits: Dict[str, Tuple[float, int]] = {}
        self._last_prune = float("-inf")

    def hit(self, key: str) -> RateLimitResult:
        now = self._clock()
        started, count = self._hits.get(key, (now, 0))
        if now - started >= self.window:
            started, count = now, 0

        count += 1
        self._hits[key] = (started, count)
        if len(self._hits) > self.max_keys and now - self._last_prune >= self.window:
            self._prune(now)

        return RateLimitResult(
            allowed     = count <= self.limit,
            limit       = self.limit,
            remaining   = max(self.limit - count, 0),
            reset_after = max(self.window - (now - started), 0.0),
        )

    def reset(self, key: str = None):
        if key is None:
            self._hits.clear()
        else:
            self._hits.pop(key, None)

    def _prune(self, now: float):
        self._last_prune = now
        expired = [k for k, (started, _) in self._hits.items() if now - started >= self.window]
        for k in expired:
            del self._hits[k]


def client_address(request: Request, trust_proxy: bool = False) -> str:
    if trust_proxy:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limiter: RateLimiter, message: str,
                 path_prefix: str = "/api/", trust_proxy: bool = False):
        super().__init__(app)
        self.limiter = limiter
        self.message = message
        self.path_prefix = path_prefix
        self.trust_proxy = trust_proxy

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)

        address = client_address(request, self.trust_proxy)
        result = self.limiter.hit(address)
        reset = str(math.ceil(result.reset_after))

        if not result.allowed:
            logger.warning(f"Rate limit exceeded for {address} on {request.url.path}")
            return PlainTextResponse(
                self.message,
                status_code = 429,
                headers     = {"Retry-After": reset, "RateLimit-Limit": str(result.limit),
                               "RateLimit-Remaining": "0", "RateLimit-Reset": reset},
            )

        response = await call_next(request)
        response.headers["RateLimit-Limit"] = str(result.limit)
        response.headers["RateLimit-Remaining"] = str(result.remaining)
        response.headers["RateLimit-Reset"] = reset
        return response
