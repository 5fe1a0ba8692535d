"""
Fixed-window request rate limiting keyed by client address.

The counter store is injectable: InMemoryRateLimitStore for a single
process, RedisRateLimitStore when several instances share one budget.
Both increment and read the window in one atomic step; there is no
check-then-act across two calls.
"""

from __future__ import annotations

import asyncio
import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

import redis.asyncio as aioredis
import structlog
from fastapi import Request

logger = structlog.get_logger(__name__)

KEY_PREFIX = "ratelimit:"


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0
    remaining: int = 0


# ─────────────────────────────────────────────
# Stores
# ─────────────────────────────────────────────

class RateLimitStore(ABC):
    """key -> (counter, expiry) storage with atomic increment."""

    @abstractmethod
    async def hit(self, key: str, window_seconds: int) -> tuple[int, float]:
        """
        Count one request for key in its current window.

        Returns the count including this request and the seconds left until
        the window resets. A missing or expired window starts a new one.
        """
        ...

    async def sweep(self) -> int:
        """Drop expired windows. Returns how many keys were removed."""
        return 0

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


@dataclass
class _Window:
    count: int
    reset_at: float


class InMemoryRateLimitStore(RateLimitStore):
    """Process-local store. Non-durable, process lifetime only."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    async def hit(self, key: str, window_seconds: int) -> tuple[int, float]:
        with self._lock:
            now = self._clock()
            window = self._windows.get(key)
            if window is None or now >= window.reset_at:
                window = _Window(count=0, reset_at=now + window_seconds)
                self._windows[key] = window
            window.count += 1
            return window.count, window.reset_at - now

    async def sweep(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [k for k, w in self._windows.items() if now >= w.reset_at]
            for k in expired:
                del self._windows[k]
        return len(expired)

    def __len__(self) -> int:
        return len(self._windows)


class RedisRateLimitStore(RateLimitStore):
    """Shared store; Redis key expiry doubles as the sweeper."""

    def __init__(self, client: aioredis.Redis, prefix: str = KEY_PREFIX):
        self.redis = client
        self.prefix = prefix

    async def hit(self, key: str, window_seconds: int) -> tuple[int, float]:
        full_key = f"{self.prefix}{key}"
        pipe = self.redis.pipeline(transaction=True)
        pipe.set(full_key, 0, ex=window_seconds, nx=True)
        pipe.incr(full_key)
        pipe.pttl(full_key)
        _, count, ttl_ms = await pipe.execute()
        ttl = ttl_ms / 1000 if ttl_ms and ttl_ms > 0 else float(window_seconds)
        return int(count), ttl

    async def ping(self) -> bool:
        return bool(await self.redis.ping())

    async def close(self) -> None:
        await self.redis.aclose()


# ─────────────────────────────────────────────
# Limiter
# ─────────────────────────────────────────────

class RateLimiter:
    """Boolean admission gate plus a retry-after hint."""

    def __init__(self, store: RateLimitStore, max_requests: int = 10, window_seconds: int = 60):
        self.store = store
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    async def check(self, key: str) -> RateLimitDecision:
        count, reset_in = await self.store.hit(key, self.window_seconds)
        if count > self.max_requests:
            return RateLimitDecision(allowed=False, retry_after=max(1, math.ceil(reset_in)))
        return RateLimitDecision(allowed=True, remaining=self.max_requests - count)


def client_key(request: Request, trust_proxy_headers: bool = True) -> str:
    """
    First X-Forwarded-For entry, else X-Real-IP, else the peer address.
    With trust_proxy_headers=False only the peer address is used.
    """
    if trust_proxy_headers:
        forwarded_for = request.headers.get("x-forwarded-for", "")
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
        real_ip = request.headers.get("x-real-ip", "").strip()
        if real_ip:
            return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


async def run_sweeper(store: RateLimitStore, interval_seconds: float) -> None:
    """Periodically drop expired windows. Runs until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed = await store.sweep()
        except Exception as exc:
            logger.warning("Rate limit sweep failed", error=str(exc))
            continue
        if removed:
            logger.debug("Rate limit windows swept", removed=removed)
