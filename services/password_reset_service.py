"""
Password-reset token lifecycle.

request_reset -> (email with link) -> validate_token -> consume_token

Tokens are 32 random bytes, hex-encoded, valid for one hour and single use.
Only their SHA-256 digest is stored. request_reset answers identically, and
in the same minimum wall-clock time, whether or not the email belongs to an
account, so it cannot be used to enumerate users.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional
from urllib.parse import urlencode

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from errors import ValidationError
from infrastructure.email.protocol import EmailProvider
from repositories.one_time_code_repository import OneTimeCodeRepository
from repositories.user_repository import UserRepository
from schemas.models.one_time_code import CodePurpose, OneTimeCode
from shared.crypto import hash_password, hash_token, verify_or_dummy
from shared.datetime_utils import ensure_utc, utcnow
from shared.generators import generate_reset_token
from shared.logging import get_logger
from shared.validators import (
    normalize_email,
    password_error,
    validate_email,
    validate_reset_token_format,
)

log = get_logger(__name__)

RESET_TOKEN_EXPIRY = timedelta(hours=1)
RESET_TOKEN_EXPIRY_MINUTES = int(RESET_TOKEN_EXPIRY.total_seconds() // 60)

GENERIC_RESET_MESSAGE = (
    "If an account exists with this email, you will receive a password reset "
    "link shortly."
)
INVALID_LINK_MESSAGE = "Invalid reset link"
EXPIRED_LINK_MESSAGE = "Reset link has expired. Please request a new one."
ALREADY_USED_MESSAGE = "Invalid or expired reset link. Please request a new one."

_PURPOSE = CodePurpose.PASSWORD_RESET


@dataclass(frozen=True)
class ResetTokenValidation:
    valid: bool
    user_id: Optional[uuid.UUID] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ResetOutcome:
    success: bool
    error: Optional[str] = None
    field: Optional[str] = None


class PasswordResetService:
    def __init__(
        self,
        session: AsyncSession,
        email_provider: EmailProvider,
        app_url: str,
        min_response_ms: int = 0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._users = UserRepository(session)
        self._codes = OneTimeCodeRepository(session)
        self._email = email_provider
        self._app_url = app_url.rstrip("/")
        self._min_response_seconds = max(0, min_response_ms) / 1000
        self._clock = clock

    def build_reset_link(self, token: str) -> str:
        return f"{self._app_url}/reset-password?{urlencode({'token': token})}"

    async def request_reset(self, email: str) -> str:
        """Start a reset for *email* and return the generic user-facing message.

        Raises:
            ValidationError: *email* is not a syntactically valid address.
                This depends only on the input, never on account existence.
        """
        normalized = normalize_email(email or "")
        if not validate_email(normalized):
            raise ValidationError("Please enter a valid email address.", field="email")

        started = time.monotonic()
        try:
            await self._issue_reset(normalized)
        finally:
            await self._pad_response(started)
        return GENERIC_RESET_MESSAGE

    async def _issue_reset(self, email: str) -> None:
        user = await self._users.get_by_email(email)
        if user is None:
            # Equal-cost work so the unknown-email path is not measurably faster
            await asyncio.to_thread(verify_or_dummy, email, None)
            log.info("password_reset_unknown_email")
            return

        token = generate_reset_token()
        try:
            await self._codes.replace(
                user.id, _PURPOSE, hash_token(token), self._clock() + RESET_TOKEN_EXPIRY
            )
        except SQLAlchemyError as e:
            log.error(
                "password_reset_store_failed",
                user_id=str(user.id),
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        try:
            sent = await self._email.send_password_reset_email(
                user.email,
                user.username,
                self.build_reset_link(token),
                RESET_TOKEN_EXPIRY_MINUTES,
            )
        except Exception as e:
            log.error(
                "password_reset_email_failed",
                user_id=str(user.id),
                error=str(e),
                error_type=type(e).__name__,
            )
            return
        if sent:
            log.info("password_reset_email_sent", user_id=str(user.id))
        else:
            log.error("password_reset_email_failed", user_id=str(user.id))

    async def _pad_response(self, started: float) -> None:
        remaining = self._min_response_seconds - (time.monotonic() - started)
        if remaining > 0:
            await asyncio.sleep(remaining)

    async def validate_token(self, token: str) -> ResetTokenValidation:
        """Check *token* without consuming it. Expired tokens are deleted."""
        _, validation = await self._lookup(token)
        return validation

    async def _lookup(
        self, token: str
    ) -> tuple[Optional[OneTimeCode], ResetTokenValidation]:
        if not validate_reset_token_format(token or ""):
            return None, ResetTokenValidation(valid=False, error=INVALID_LINK_MESSAGE)

        record = await self._codes.find_by_code(_PURPOSE, hash_token(token))
        if record is None:
            return None, ResetTokenValidation(valid=False, error=INVALID_LINK_MESSAGE)

        if self._clock() > ensure_utc(record.expires_at):
            await self._codes.delete_by_id(record.id)
            log.info("password_reset_token_expired", user_id=str(record.user_id))
            return None, ResetTokenValidation(valid=False, error=EXPIRED_LINK_MESSAGE)

        return record, ResetTokenValidation(valid=True, user_id=record.user_id)

    async def consume_token(self, token: str, new_password: str) -> ResetOutcome:
        """Set a new password using *token*; the token is spent on success.

        The caller is not logged in afterwards.
        """
        error = password_error(new_password)
        if error is not None:
            return ResetOutcome(success=False, error=error, field="new_password")

        record, validation = await self._lookup(token)
        if record is None:
            return ResetOutcome(success=False, error=validation.error, field="token")

        user_id = record.user_id
        new_hash = await asyncio.to_thread(hash_password, new_password)
        consumed = await self._codes.consume_password_reset(record.id, user_id, new_hash)
        if not consumed:
            # The rollback expired `record`; only the captured id is safe to read
            log.warning("password_reset_token_race", user_id=str(user_id))
            return ResetOutcome(success=False, error=ALREADY_USED_MESSAGE, field="token")

        log.info("password_reset_completed", user_id=str(user_id))
        return ResetOutcome(success=True)
