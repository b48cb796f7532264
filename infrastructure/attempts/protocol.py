"""AttemptCounter protocol. The OTP service depends on this, not a backend.

A counter tracks failed verification attempts per key inside a rolling
window. Implementations must prune timestamps older than the window before
every read.
"""

from dataclasses import dataclass
from typing import Protocol

MAX_VERIFICATION_ATTEMPTS = 5
LOCKOUT_WINDOW_SECONDS = 15 * 60


@dataclass(frozen=True)
class AttemptStatus:
    allowed: bool
    remaining: int


class AttemptCounter(Protocol):
    async def check(self, key: str) -> AttemptStatus: ...

    async def record_failure(self, key: str) -> int:
        """Record one failed attempt; return attempts remaining afterwards."""
        ...

    async def reset(self, key: str) -> None: ...
