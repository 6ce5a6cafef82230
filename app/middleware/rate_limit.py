import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from cachetools import TTLCache
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.core import responses

logger = logging.getLogger(__name__)


@dataclass
class _Window:
    started_at: float
    count: int = 0


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: float  # seconds until the current window ends

    def headers(self) -> dict:
        headers = {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(math.ceil(self.reset_after)),
        }
        if not self.allowed:
            headers["Retry-After"] = str(math.ceil(self.reset_after))
        return headers


class FixedWindowRateLimiter:
    """
    Fixed-window request counter per client key.

    A window opens on a key's first request and lasts window_seconds; at most
    max_requests are allowed inside it. Windows live in a TTLCache whose TTL
    equals the window length, so idle keys drop out on their own and memory
    stays bounded by maxsize.
    """

    def __init__(
        self,
        window_seconds: float,
        max_requests: int,
        maxsize: int = 10_000,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._timer = timer
        self._windows: TTLCache = TTLCache(maxsize=maxsize, ttl=window_seconds, timer=timer)

    def hit(self, key: str) -> RateLimitDecision:
        now = self._timer()
        window = self._windows.get(key)
        if window is None or now - window.started_at >= self.window_seconds:
            window = _Window(started_at=now)
            self._windows[key] = window

        window.count += 1
        return RateLimitDecision(
            allowed=window.count <= self.max_requests,
            limit=self.max_requests,
            remaining=max(self.max_requests - window.count, 0),
            reset_after=max(self.window_seconds - (now - window.started_at), 0.0),
        )


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limiter: FixedWindowRateLimiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next):
        key = client_key(request)
        decision = self.limiter.hit(key)
        if not decision.allowed:
            logger.warning(f"Rate limit exceeded - client: {key}, path: {request.url.path}")
            return responses.too_many_requests(headers=decision.headers())

        response = await call_next(request)
        response.headers.update(decision.headers())
        return response
