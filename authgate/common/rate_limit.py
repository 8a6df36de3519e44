"""
Fixed-window rate limiting.

Counters live in memory (one process) or in Redis (shared between workers).
Each rule has its own counter space, keyed by client address and window
index, so the global, auth and admin limits never interfere.
"""

import asyncio
import heapq
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from fastapi import Request, Response
from loguru import logger
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from authgate.common.exceptions import create_error_response

LOG_PREFIX = "[RateLimit]"


@dataclass(frozen=True)
class RateLimitRule:
    """
    One limiter.

    ``path_prefix`` of "" matches every path; otherwise the prefix itself and
    anything below it.
    """

    name: str
    max_requests: int
    window_seconds: int
    path_prefix: str = ""
    message: str = "Too many requests, try again later"

    def applies_to(self, path: str) -> bool:
        if not self.path_prefix:
            return True
        prefix = self.path_prefix.rstrip("/")
        return path == prefix or path.startswith(prefix + "/")


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_after: int  # seconds until the window rolls over

    def headers(self) -> Dict[str, str]:
        """IETF draft ``RateLimit-*`` headers."""
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_after),
        }


class RateLimitBackend(ABC):
    @abstractmethod
    async def increment(self, key: str, expires_at: float) -> int:
        """Atomically add one to ``key`` and return the new count."""


class MemoryRateLimitBackend(RateLimitBackend):
    """
    In-process counters guarded by an asyncio lock.

    Expiries sit in a min-heap, so dropping dead windows only touches keys
    that have actually expired.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        # {key: (count, expires_at)}
        self._counters: Dict[str, Tuple[int, float]] = {}
        # (expires_at, key), one entry per live key
        self._expiries: List[Tuple[float, str]] = []
        self._lock = asyncio.Lock()
        self._clock = clock

    async def increment(self, key: str, expires_at: float) -> int:
        async with self._lock:
            self._purge(self._clock())
            entry = self._counters.get(key)
            if entry is None:
                heapq.heappush(self._expiries, (expires_at, key))
                count = 1
            else:
                count, expires_at = entry[0] + 1, entry[1]
            self._counters[key] = (count, expires_at)
            return count

    def _purge(self, now: float) -> None:
        while self._expiries and self._expiries[0][0] <= now:
            _, key = heapq.heappop(self._expiries)
            self._counters.pop(key, None)


class RedisRateLimitBackend(RateLimitBackend):
    """
    Redis counters (INCR + EXPIREAT in one MULTI).

    If Redis fails mid-request the hit is counted in memory instead, so the
    limiter degrades to per-process rather than failing open.
    """

    def __init__(self, client, fallback: Optional[RateLimitBackend] = None):
        self._client = client
        self._fallback = fallback or MemoryRateLimitBackend()

    async def increment(self, key: str, expires_at: float) -> int:
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expireat(key, int(math.ceil(expires_at)))
                count, _ = await pipe.execute()
            return int(count)
        except RedisError as e:
            logger.warning(f"{LOG_PREFIX} Redis unavailable, counting in memory: {type(e).__name__}")
            return await self._fallback.increment(key, expires_at)


class FixedWindowRateLimiter:
    """Counts hits per (rule, client, window)."""

    def __init__(self, backend: Optional[RateLimitBackend] = None, clock: Callable[[], float] = time.time):
        self.clock = clock
        self.backend = backend or MemoryRateLimitBackend(clock=clock)

    def use_backend(self, backend: RateLimitBackend) -> None:
        self.backend = backend

    async def hit(self, rule: RateLimitRule, client_key: str) -> RateLimitResult:
        now = self.clock()
        window_index = int(now // rule.window_seconds)
        window_end = (window_index + 1) * rule.window_seconds

        key = f"rate_limit:{rule.name}:{client_key}:{window_index}"
        count = await self.backend.increment(key, window_end)

        return RateLimitResult(
            allowed=count <= rule.max_requests,
            limit=rule.max_requests,
            remaining=max(0, rule.max_requests - count),
            reset_after=max(0, int(math.ceil(window_end - now))),
        )


def get_client_ip(request: Request, trusted_proxy_hops: int = 1) -> str:
    """
    Client address for limiter keys.

    ``X-Forwarded-For`` is only honoured for ``trusted_proxy_hops`` hops:
    with one trusted proxy the last entry it appended is the client, and
    anything further left is caller-controlled.
    """
    peer = request.client.host if request.client else "unknown"
    if trusted_proxy_hops <= 0:
        return peer

    forwarded_for = request.headers.get("X-Forwarded-For")
    if not forwarded_for:
        return peer

    chain: List[str] = [ip.strip() for ip in forwarded_for.split(",") if ip.strip()]
    chain.append(peer)
    if len(chain) > trusted_proxy_hops:
        return chain[-(trusted_proxy_hops + 1)]
    return chain[0]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Apply every matching rule in order.

    The first exhausted rule answers 429; later rules are not charged.
    Allowed responses carry the headers of the most specific rule applied.
    """

    def __init__(
        self,
        app,
        limiter: FixedWindowRateLimiter,
        rules: Sequence[RateLimitRule],
        trusted_proxy_hops: int = 1,
    ):
        super().__init__(app)
        self.limiter = limiter
        self.rules = list(rules)
        self.trusted_proxy_hops = trusted_proxy_hops

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        client = get_client_ip(request, self.trusted_proxy_hops)

        applied: Optional[RateLimitResult] = None
        for rule in self.rules:
            if not rule.applies_to(path):
                continue
            result = await self.limiter.hit(rule, client)
            applied = result
            if not result.allowed:
                logger.warning(f"{LOG_PREFIX} {rule.name} limit exceeded client={client} path={path}")
                headers = {**result.headers(), "Retry-After": str(result.reset_after)}
                return create_error_response(429, rule.message, headers=headers)

        response = await call_next(request)
        if applied is not None:
            response.headers.update(applied.headers())
        return response
