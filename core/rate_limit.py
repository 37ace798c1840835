"""Rate limiting helpers (Redis preferred, in-memory fallback)."""

from __future__ import annotations

import logging
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from threading import Lock
from typing import Deque, Dict, Optional

import redis  # type: ignore

from config import RATE_LIMIT_USE_REDIS, REDIS_URL

logger = logging.getLogger(__name__)

REDIS_RETRY_INTERVAL_SECONDS = 60


@dataclass
class RateLimitResult:
    allowed: bool
    retry_after_seconds: int


class RateLimiter:
    def __init__(self, *, redis_url: Optional[str] = REDIS_URL, use_redis: bool = RATE_LIMIT_USE_REDIS):
        self._lock = Lock()
        self._buckets: Dict[str, Deque[float]] = defaultdict(deque)
        self._redis_url = redis_url
        self._use_redis = use_redis and bool(redis_url)
        self._client: Optional[redis.Redis] = None
        self._redis_down_until = 0.0

    def _redis(self) -> Optional[redis.Redis]:
        if not self._use_redis or time.time() < self._redis_down_until:
            return None
        if self._client is None:
            self._client = redis.Redis.from_url(
                self._redis_url, socket_connect_timeout=0.25, socket_timeout=0.25
            )
        return self._client

    def allow(self, *, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        limit = int(limit)
        window_seconds = int(window_seconds)
        if limit <= 0 or window_seconds <= 0:
            return RateLimitResult(allowed=True, retry_after_seconds=0)

        client = self._redis()
        if client is not None:
            try:
                # Atomic counter with TTL.
                pipe = client.pipeline()
                pipe.incr(key, 1)
                pipe.ttl(key)
                current, ttl = pipe.execute()
                if ttl == -1:
                    client.expire(key, window_seconds)
                    ttl = window_seconds
                if int(current) <= limit:
                    return RateLimitResult(allowed=True, retry_after_seconds=0)
                retry_after = int(ttl if ttl and ttl > 0 else window_seconds)
                return RateLimitResult(allowed=False, retry_after_seconds=max(1, retry_after))
            except redis.RedisError as exc:
                logger.warning(f"Redis rate limiter unavailable, using in-memory window: {exc}")
                self._redis_down_until = time.time() + REDIS_RETRY_INTERVAL_SECONDS

        # In-memory sliding window fallback.
        now = time.time()
        with self._lock:
            bucket = self._buckets[key]
            cutoff = now - window_seconds
            while bucket and bucket[0] <= cutoff:
                bucket.popleft()
            if len(bucket) < limit:
                bucket.append(now)
                return RateLimitResult(allowed=True, retry_after_seconds=0)
            retry_after = int((bucket[0] + window_seconds) - now)
            return RateLimitResult(allowed=False, retry_after_seconds=max(1, retry_after))

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


default_rate_limiter = RateLimiter()
