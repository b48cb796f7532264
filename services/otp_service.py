"""
Email-verification OTP lifecycle.

Codes are 6 digits, live for 15 minutes and are replaced on every resend.
Resends are throttled to one per 60 seconds, measured from the latest stored
code. Verification is limited to 5 failed attempts per user in a rolling
15-minute window, tracked by an AttemptCounter.

verify() checks, in order:
    already verified -> malformed input -> locked -> no match (counted)
    -> expired (deleted, not counted) -> success (verify + delete + reset)
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.attempts.protocol import AttemptCounter, AttemptStatus
from infrastructure.email.protocol import EmailProvider
from repositories.one_time_code_repository import OneTimeCodeRepository
from repositories.user_repository import UserRepository
from schemas.models.one_time_code import CodePurpose
from shared.datetime_utils import ensure_utc, seconds_until, utcnow
from shared.generators import generate_otp_code
from shared.logging import get_logger
from shared.validators import sanitize_otp_input

log = get_logger(__name__)

OTP_EXPIRY_MINUTES = 15
RESEND_COOLDOWN_SECONDS = 60

_PURPOSE = CodePurpose.EMAIL_VERIFICATION


class OTPOutcome(str, enum.Enum):
    SUCCESS = "success"
    INVALID = "invalid"
    EXPIRED = "expired"
    LOCKED = "locked"
    MALFORMED = "malformed"
    ALREADY_VERIFIED = "already_verified"


@dataclass(frozen=True)
class OTPVerification:
    outcome: OTPOutcome
    attempts_remaining: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.outcome is OTPOutcome.SUCCESS


def get_expiration(now: Optional[datetime] = None) -> datetime:
    """Expiry for a code issued at *now* (15 minutes later)."""
    return (now or utcnow()) + timedelta(minutes=OTP_EXPIRY_MINUTES)


class OTPService:
    def __init__(
        self,
        session: AsyncSession,
        email_provider: EmailProvider,
        attempt_counter: AttemptCounter,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._users = UserRepository(session)
        self._codes = OneTimeCodeRepository(session)
        self._email = email_provider
        self._attempts = attempt_counter
        self._clock = clock

    async def send_otp_to_user(
        self, user_id: uuid.UUID, email: str, username: str
    ) -> bool:
        """Store a fresh verification code and email it.

        Returns False on storage or dispatch failure; never raises. A code
        stored before a failed email remains valid, so a later resend or a
        delayed delivery still works.
        """
        code = generate_otp_code()
        try:
            await self._codes.replace(
                user_id, _PURPOSE, code, get_expiration(self._clock())
            )
        except SQLAlchemyError as e:
            log.error(
                "otp_store_failed",
                user_id=str(user_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        try:
            sent = await self._email.send_verification_email(
                email, username, code, OTP_EXPIRY_MINUTES
            )
        except Exception as e:
            log.error(
                "otp_email_failed",
                user_id=str(user_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        if not sent:
            log.warning("otp_email_failed", user_id=str(user_id))
            return False

        log.info("otp_sent", user_id=str(user_id))
        return True

    async def check_cooldown(self, user_id: uuid.UUID) -> int:
        """Seconds left before another code may be sent; 0 when allowed."""
        latest = await self._codes.latest(user_id, _PURPOSE)
        if latest is None:
            return 0
        ready_at = ensure_utc(latest.created_at) + timedelta(
            seconds=RESEND_COOLDOWN_SECONDS
        )
        return min(RESEND_COOLDOWN_SECONDS, seconds_until(ready_at, self._clock()))

    async def can_attempt_verification(self, user_id: uuid.UUID) -> AttemptStatus:
        return await self._attempts.check(str(user_id))

    async def reset_attempts(self, user_id: uuid.UUID) -> None:
        await self._attempts.reset(str(user_id))

    async def verify(self, user_id: uuid.UUID, submitted_code: str) -> OTPVerification:
        user = await self._users.get_by_id(user_id)
        if user is not None and user.email_verified:
            return OTPVerification(OTPOutcome.ALREADY_VERIFIED)

        code = sanitize_otp_input(submitted_code)
        if code is None:
            return OTPVerification(OTPOutcome.MALFORMED)

        key = str(user_id)
        status = await self._attempts.check(key)
        if not status.allowed:
            log.warning("otp_verification_locked", user_id=key)
            return OTPVerification(OTPOutcome.LOCKED, attempts_remaining=0)

        record = await self._codes.find(user_id, _PURPOSE, code)
        if record is None:
            remaining = await self._attempts.record_failure(key)
            log.info("otp_invalid", user_id=key, attempts_remaining=remaining)
            return OTPVerification(OTPOutcome.INVALID, attempts_remaining=remaining)

        if self._clock() > ensure_utc(record.expires_at):
            await self._codes.delete_by_id(record.id)
            log.info("otp_expired", user_id=key)
            return OTPVerification(
                OTPOutcome.EXPIRED, attempts_remaining=status.remaining
            )

        await self._codes.consume_email_verification(record.id, user_id)
        await self._attempts.reset(key)
        log.info("email_verified", user_id=key)
        return OTPVerification(OTPOutcome.SUCCESS)
