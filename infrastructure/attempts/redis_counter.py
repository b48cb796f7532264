"""Redis-backed attempt counter for multi-instance deployments.

Each key is a sorted set of attempt timestamps (score = timestamp). Old
members are trimmed with ZREMRANGEBYSCORE before counting, and the whole set
carries a TTL of one window so idle keys disappear on their own.

Redis errors propagate: failing open here would silently disable the
brute-force limit.
"""

import time
import uuid
from typing import Callable

import redis.asyncio as aioredis

from infrastructure.attempts.protocol import (
    LOCKOUT_WINDOW_SECONDS,
    MAX_VERIFICATION_ATTEMPTS,
    AttemptStatus,
)
from shared.logging import get_logger

log = get_logger(__name__)


class RedisAttemptCounter:
    def __init__(
        self,
        redis_client: aioredis.Redis,
        max_attempts: int = MAX_VERIFICATION_ATTEMPTS,
        window_seconds: int = LOCKOUT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis = redis_client
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock

    def _key(self, key: str) -> str:
        return f"otp_attempts:{key}"

    def _status(self, count: int) -> AttemptStatus:
        return AttemptStatus(
            allowed=count < self.max_attempts,
            remaining=max(0, self.max_attempts - count),
        )

    async def check(self, key: str) -> AttemptStatus:
        redis_key = self._key(key)
        cutoff = self._clock() - self.window_seconds
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(redis_key, "-inf", cutoff)
            pipe.zcard(redis_key)
            _, count = await pipe.execute()
        return self._status(int(count))

    async def record_failure(self, key: str) -> int:
        redis_key = self._key(key)
        now = self._clock()
        # Unique member so two failures in the same instant both count
        member = f"{now}:{uuid.uuid4().hex[:8]}"
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(redis_key, "-inf", now - self.window_seconds)
            pipe.zadd(redis_key, {member: now})
            pipe.zcard(redis_key)
            pipe.expire(redis_key, self.window_seconds)
            _, _, count, _ = await pipe.execute()
        remaining = self._status(int(count)).remaining
        if remaining == 0:
            log.warning("otp_attempts_exhausted", user_id=key)
        return remaining

    async def reset(self, key: str) -> None:
        await self._redis.delete(self._key(key))
