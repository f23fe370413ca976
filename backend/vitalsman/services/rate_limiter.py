"""
Rate Limiter Service

Redis sliding-window rate limiting for the public ingestion endpoint.
Anonymous visitors are keyed by client IP.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from vitalsman.config import settings

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    reset_at: int  # Unix timestamp
    retry_after: Optional[int] = None  # Seconds until retry


class RateLimiter:
    """
    Redis-based rate limiter using sliding window algorithm.

    Uses a sorted set per client to track request timestamps.
    """

    def __init__(self, redis_url: str = None):
        self.redis_url = redis_url or settings.REDIS_URL
        self._redis: Optional[redis.Redis] = None

    async def get_redis(self) -> redis.Redis:
        """Get or create Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    async def close(self):
        """Close Redis connection."""
        if self._redis:
            await self._redis.close()
            self._redis = None

    def _rate_limit_key(self, client_id: str, endpoint: str = "default") -> str:
        return f"ratelimit:{client_id}:{endpoint}"

    async def check_rate_limit(
        self,
        client_id: str,
        limit_per_minute: int,
        endpoint: str = "default",
    ) -> RateLimitResult:
        """
        Check if request is within rate limit using sliding window.

        Redis errors fail open: telemetry is never blocked because the
        limiter is unavailable.
        """
        now = datetime.now(timezone.utc).timestamp()
        reset_at = int(now + WINDOW_SECONDS)

        if not settings.RATE_LIMIT_ENABLED:
            return RateLimitResult(
                allowed=True,
                limit=limit_per_minute,
                remaining=limit_per_minute,
                reset_at=0,
            )

        try:
            r = await self.get_redis()
            key = self._rate_limit_key(client_id, endpoint)
            window_start = now - WINDOW_SECONDS

            pipe = r.pipeline()
            pipe.zremrangebyscore(key, 0, window_start)
            pipe.zcard(key)
            pipe.zadd(key, {str(now): now})
            pipe.expire(key, WINDOW_SECONDS * 2)
            results = await pipe.execute()
            current_count = results[1]

            if current_count >= limit_per_minute:
                # Over limit - drop the request we just recorded
                await r.zrem(key, str(now))

                oldest = await r.zrange(key, 0, 0, withscores=True)
                retry_after = int(oldest[0][1] + WINDOW_SECONDS - now) if oldest else WINDOW_SECONDS

                return RateLimitResult(
                    allowed=False,
                    limit=limit_per_minute,
                    remaining=0,
                    reset_at=reset_at,
                    retry_after=max(retry_after, 1),
                )
        except RedisError as e:
            logger.warning(f"[RATELIMIT] Redis unavailable, allowing request: {e}")
            return RateLimitResult(
                allowed=True,
                limit=limit_per_minute,
                remaining=limit_per_minute,
                reset_at=reset_at,
            )

        return RateLimitResult(
            allowed=True,
            limit=limit_per_minute,
            remaining=max(0, limit_per_minute - current_count - 1),
            reset_at=reset_at,
        )


_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Get the global rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter()
    return _rate_limiter


async def close_rate_limiter():
    """Close the global rate limiter."""
    global _rate_limiter
    if _rate_limiter:
        await _rate_limiter.close()
        _rate_limiter = None
