"""
Rate limiting enforcement.

This module contains the enforcement logic - the "how" of rate limiting.
For configuration (limits per endpoint class), see rate_limit_config.py.

Two backends implement the same fixed-window-with-block algorithm:
MemoryRateLimiter (process-local) and RedisRateLimiter (shared across
instances through one atomic Lua script).
"""
import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from fastapi import Request

from core.rate_limit_config import RateLimitConfig, RateLimitResult
from core.redis import RedisClient

logger = logging.getLogger(__name__)

# Expired buckets are swept once the memory limiter tracks more keys than this.
SWEEP_THRESHOLD = 10_000


class RateLimiter(Protocol):
    """Capability interface shared by the memory and Redis limiters."""

    config: RateLimitConfig

    async def consume(self, key: str) -> RateLimitResult: ...


def _retry_after(ms_before_next: float) -> int:
    """Whole seconds a rejected client should wait, never less than 1."""
    return max(1, math.ceil(ms_before_next / 1000))


def _allowed(config: RateLimitConfig, remaining: int, ms_before_next: float) -> RateLimitResult:
    return RateLimitResult(
        allowed=True,
        limit=config.points,
        remaining=max(0, remaining),
        reset=int(time.time() + ms_before_next / 1000),
        retry_after=0,
    )


def _rejected(config: RateLimitConfig, ms_before_next: float) -> RateLimitResult:
    return RateLimitResult(
        allowed=False,
        limit=config.points,
        remaining=0,
        reset=int(time.time() + ms_before_next / 1000),
        retry_after=_retry_after(ms_before_next),
    )


@dataclass
class _Bucket:
    consumed: int
    window_ends: float
    blocked_until: float = 0.0


class MemoryRateLimiter:
    """
    Process-local fixed window limiter.

    State is a dict of buckets. consume() reads and writes a bucket without an
    intervening await, so concurrent requests on the event loop cannot interleave.
    """

    def __init__(
        self,
        config: RateLimitConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self._clock = clock
        self._buckets: dict[str, _Bucket] = {}

    async def consume(self, key: str) -> RateLimitResult:
        now = self._clock()
        full_key = f"{self.config.key_prefix}:{key}"
        bucket = self._buckets.get(full_key)

        if bucket is not None and bucket.blocked_until > now:
            return _rejected(self.config, (bucket.blocked_until - now) * 1000)

        if bucket is None or bucket.window_ends <= now:
            if len(self._buckets) >= SWEEP_THRESHOLD:
                self._sweep(now)
            bucket = _Bucket(consumed=0, window_ends=now + self.config.duration)
            self._buckets[full_key] = bucket

        bucket.consumed += 1
        if bucket.consumed <= self.config.points:
            return _allowed(
                self.config,
                self.config.points - bucket.consumed,
                (bucket.window_ends - now) * 1000,
            )

        if self.config.block_duration > 0:
            # Blocked keys start a fresh window once the block lapses.
            bucket.blocked_until = now + self.config.block_duration
            bucket.window_ends = bucket.blocked_until
            bucket.consumed = 0
            return _rejected(self.config, self.config.block_duration * 1000)
        return _rejected(self.config, (bucket.window_ends - now) * 1000)

    def _sweep(self, now: float) -> None:
        expired = [
            k for k, b in self._buckets.items()
            if b.window_ends <= now and b.blocked_until <= now
        ]
        for k in expired:
            del self._buckets[k]
        if expired:
            logger.debug("rate_limit_sweep", extra={"removed": len(expired)})


class RedisRateLimiter:
    """
    Fixed window limiter shared across instances via Redis.

    Falls back to allowing requests if Redis is unavailable.
    """

    def __init__(self, config: RateLimitConfig, redis_client: RedisClient) -> None:
        self.config = config
        self._redis = redis_client

    async def consume(self, key: str) -> RateLimitResult:
        result = await self._redis.eval_rate_limit(
            key=f"{self.config.key_prefix}:{key}",
            block_key=f"{self.config.key_prefix}:block:{key}",
            points=self.config.points,
            duration_ms=self.config.duration * 1000,
            block_ms=self.config.block_duration * 1000,
        )
        if result is None:
            # Redis unavailable - fail open
            logger.warning("redis_unavailable", extra={"operation": "rate_limit"})
            return RateLimitResult(
                allowed=True,
                limit=self.config.points,
                remaining=self.config.points,
                reset=0,
                retry_after=0,
            )

        allowed, remaining, ms_before_next = (int(v) for v in result)
        if allowed:
            return _allowed(self.config, remaining, ms_before_next)
        return _rejected(self.config, ms_before_next)


def create_rate_limiter(
    config: RateLimitConfig,
    redis_client: RedisClient | None = None,
) -> RateLimiter:
    """Use Redis when it is connected, otherwise a process-local limiter."""
    if redis_client is not None and redis_client.is_connected:
        return RedisRateLimiter(config, redis_client)
    return MemoryRateLimiter(config)


# ---------------------------------------------------------------------------
# Key strategies
# ---------------------------------------------------------------------------

def get_client_ip(request: Request) -> str:
    """
    Resolve the client address.

    First X-Forwarded-For entry, then X-Real-IP, then the socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def key_by_ip(ip: str) -> str:
    return f"ip:{ip}"


def key_by_route(ip: str, route: str) -> str:
    return f"{ip}:{route}"


def key_by_user(user_id: str) -> str:
    return f"user:{user_id}"
