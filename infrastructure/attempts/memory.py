"""In-process attempt counter.

State lives in a plain dict on this object, so it is neither shared between
server processes nor kept across restarts. Concurrent requests for the same
key are not serialised; a race can over-count by a request or two, which is
tolerated. Use RedisAttemptCounter when running more than one instance.
"""

import time
from typing import Callable

from infrastructure.attempts.protocol import (
    LOCKOUT_WINDOW_SECONDS,
    MAX_VERIFICATION_ATTEMPTS,
    AttemptStatus,
)


class InMemoryAttemptCounter:
    def __init__(
        self,
        max_attempts: int = MAX_VERIFICATION_ATTEMPTS,
        window_seconds: int = LOCKOUT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock
        self._attempts: dict[str, list[float]] = {}

    def _recent(self, key: str) -> list[float]:
        cutoff = self._clock() - self.window_seconds
        recent = [ts for ts in self._attempts.get(key, []) if ts > cutoff]
        if recent:
            self._attempts[key] = recent
        else:
            self._attempts.pop(key, None)
        return recent

    async def check(self, key: str) -> AttemptStatus:
        count = len(self._recent(key))
        return AttemptStatus(
            allowed=count < self.max_attempts,
            remaining=max(0, self.max_attempts - count),
        )

    async def record_failure(self, key: str) -> int:
        self._attempts.setdefault(key, []).append(self._clock())
        return (await self.check(key)).remaining

    async def reset(self, key: str) -> None:
        self._attempts.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._attempts
