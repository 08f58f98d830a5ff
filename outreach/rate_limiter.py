"""
Token-bucket rate limiting, in memory or shared through Redis
Call sites depend on RateLimiter only; the backend is picked from REDIS_URL
"""

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Optional

import redis
from fastapi import Depends

from . import config
from .auth import get_current_user
from .errors import RateLimitExceeded
from .models import User

logger = logging.getLogger(__name__)

MEMORY_CACHE_CLEANUP_INTERVAL = 60  # Clean up idle buckets every 60 seconds


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after: int


class RateLimiter:
    """``limit`` requests per ``window_seconds``, refilled continuously"""

    def __init__(self, limit: int, window_seconds: int):
        self.limit = limit
        self.window_seconds = window_seconds
        self.refill_rate = limit / window_seconds

    def hit(self, key: str) -> RateLimitResult:
        raise NotImplementedError

    def _take(self, tokens: float, elapsed: float) -> tuple[float, RateLimitResult]:
        """Refill for ``elapsed`` seconds then try to spend one token"""
        tokens = min(float(self.limit), tokens + max(0.0, elapsed) * self.refill_rate)
        if tokens >= 1:
            tokens -= 1
            return tokens, RateLimitResult(True, int(tokens), 0)
        retry_after = max(1, int((1 - tokens) / self.refill_rate + 0.999))
        return tokens, RateLimitResult(False, 0, retry_after)


class MemoryRateLimiter(RateLimiter):
    """Per-process buckets; lost on restart"""

    def __init__(self, limit: int, window_seconds: int, clock: Callable[[], float] = time.monotonic):
        super().__init__(limit, window_seconds)
        self.clock = clock
        # {key: (tokens, last_update)}
        self.buckets: dict[str, tuple[float, float]] = {}
        self.lock = Lock()
        self.last_cleanup = clock()

    def _cleanup(self, now: float) -> None:
        if now - self.last_cleanup < MEMORY_CACHE_CLEANUP_INTERVAL:
            return
        # A bucket idle for a full window is full again; dropping it changes nothing
        idle = [k for k, (_, updated) in self.buckets.items() if now - updated >= self.window_seconds]
        for k in idle:
            del self.buckets[k]
        if idle:
            logger.debug(f"🧹 Cleaned up {len(idle)} idle rate limit buckets")
        self.last_cleanup = now

    def hit(self, key: str) -> RateLimitResult:
        with self.lock:
            now = self.clock()
            self._cleanup(now)
            tokens, updated = self.buckets.get(key, (float(self.limit), now))
            tokens, result = self._take(tokens, now - updated)
            self.buckets[key] = (tokens, now)
            return result


class RedisRateLimiter(RateLimiter):
    """Buckets shared across workers; degrades to memory when Redis is unreachable"""

    def __init__(self, client: redis.Redis, limit: int, window_seconds: int, key_prefix: str = "rate_limit"):
        super().__init__(limit, window_seconds)
        self.client = client
        self.key_prefix = key_prefix
        self.fallback = MemoryRateLimiter(limit, window_seconds)

    def hit(self, key: str) -> RateLimitResult:
        redis_key = f"{self.key_prefix}:{key}"
        now = time.time()
        try:
            stored_tokens, stored_at = self.client.hmget(redis_key, "tokens", "updated")
            tokens = float(stored_tokens) if stored_tokens is not None else float(self.limit)
            updated = float(stored_at) if stored_at is not None else now
            tokens, result = self._take(tokens, now - updated)

            pipe = self.client.pipeline()
            pipe.hset(redis_key, mapping={"tokens": tokens, "updated": now})
            pipe.expire(redis_key, self.window_seconds)
            pipe.execute()
            return result
        except redis.RedisError as e:
            logger.warning(f"⚠️ Redis rate limit unavailable, using memory only: {e}")
            return self.fallback.hit(key)


_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Process-wide generation limiter"""
    global _rate_limiter

    if _rate_limiter is None:
        limit, window = config.GENERATION_RATE_LIMIT, config.GENERATION_RATE_WINDOW_SECONDS
        if config.REDIS_URL:
            logger.info("🔄 Initializing Redis connection for rate limiting...")
            try:
                client = redis.from_url(
                    config.REDIS_URL,
                    decode_responses=True,
                    socket_connect_timeout=5,
                    socket_timeout=5,
                    health_check_interval=30,
                )
                client.ping()
                _rate_limiter = RedisRateLimiter(client, limit, window, key_prefix="generate")
                logger.info("✅ Redis connected for rate limiting")
            except redis.RedisError as e:
                logger.error(f"❌ Failed to connect to Redis: {e}")
                logger.warning("⚠️ Falling back to in-memory rate limiting")
        if _rate_limiter is None:
            _rate_limiter = MemoryRateLimiter(limit, window)

    return _rate_limiter


async def rate_limit_generation(
    current_user: User = Depends(get_current_user),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> None:
    """FastAPI dependency: per-user limit on AI generation requests"""
    result = limiter.hit(str(current_user.id))
    if not result.allowed:
        logger.warning(f"🚫 Generation rate limit exceeded for user {current_user.id}")
        raise RateLimitExceeded(limiter.limit, limiter.window_seconds, result.retry_after)
