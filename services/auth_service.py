"""
Registration, login and identity lookups.

Both entry points end by issuing a session token; setting the cookie is left
to the route. Login failures are deliberately indistinguishable: unknown
email and wrong password produce the same error after the same bcrypt work.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from errors import AuthenticationError, ConflictError, ValidationError
from repositories.user_repository import UserRepository
from schemas.models.user import User
from services.otp_service import OTPService
from services.token_service import TokenService
from shared.crypto import hash_password, verify_or_dummy
from shared.logging import get_logger
from shared.validators import (
    normalize_email,
    password_error,
    validate_email,
    validate_username,
)

log = get_logger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"
INVALID_EMAIL_MESSAGE = "Please enter a valid email address"
INVALID_USERNAME_MESSAGE = (
    "Username can only contain letters, numbers, underscores, and hyphens"
)
EMAIL_TAKEN_MESSAGE = "This email is already registered"
USERNAME_TAKEN_MESSAGE = "This username is already taken"


@dataclass(frozen=True)
class AuthResult:
    user: User
    token: str
    verification_sent: bool = False


class AuthService:
    def __init__(
        self,
        session: AsyncSession,
        token_service: TokenService,
        otp_service: OTPService,
    ) -> None:
        self._users = UserRepository(session)
        self._tokens = token_service
        self._otp = otp_service

    async def register(self, email: str, username: str, password: str) -> AuthResult:
        """Create an unverified account, log it in and send the first OTP.

        Raises:
            ValidationError: a field fails its format rule (``field`` set).
            ConflictError: email or username already in use (``field`` set).
        """
        email = normalize_email(email or "")
        username = (username or "").strip()

        if not email or not validate_email(email):
            raise ValidationError(INVALID_EMAIL_MESSAGE, field="email")
        if not username or not validate_username(username):
            raise ValidationError(INVALID_USERNAME_MESSAGE, field="username")
        error = password_error(password or "")
        if error is not None:
            raise ValidationError(error, field="password")

        if await self._users.get_by_email(email) is not None:
            raise ConflictError(EMAIL_TAKEN_MESSAGE, field="email")
        if await self._users.get_by_username(username) is not None:
            raise ConflictError(USERNAME_TAKEN_MESSAGE, field="username")

        password_hash = await asyncio.to_thread(hash_password, password)
        try:
            user = await self._users.create(
                email=email, username=username, password_hash=password_hash
            )
        except IntegrityError as e:
            # Lost a race with a concurrent registration
            raise _conflict_from_integrity_error(e)

        token = self._tokens.issue(user.id, user.is_admin)
        log.info("user_registered", user_id=str(user.id))

        sent = await self._otp.send_otp_to_user(user.id, user.email, user.username)
        return AuthResult(user=user, token=token, verification_sent=sent)

    async def login(self, email: str, password: str) -> AuthResult:
        """Check credentials and issue a session token.

        Raises:
            ValidationError: email is not a valid address or password is blank.
            AuthenticationError: "Invalid credentials", whatever the cause.
        """
        email = normalize_email(email or "")
        if not validate_email(email):
            raise ValidationError(INVALID_EMAIL_MESSAGE, field="email")
        if not password or not password.strip():
            raise ValidationError("Password is required", field="password")

        user = await self._users.get_by_email(email)
        stored_hash = user.password_hash if user is not None else None
        matched = await asyncio.to_thread(verify_or_dummy, password, stored_hash)
        if user is None or not matched:
            log.info("login_failed")
            raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

        log.info("login_success", user_id=str(user.id))
        return AuthResult(user=user, token=self._tokens.issue(user.id, user.is_admin))

    async def get_user(self, user_id: uuid.UUID) -> User:
        """Load the account behind a session.

        Raises:
            AuthenticationError: the account no longer exists.
        """
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise AuthenticationError("Not authenticated")
        return user


def _conflict_from_integrity_error(exc: IntegrityError) -> ConflictError:
    message = str(exc.orig).lower()
    if "username" in message:
        return ConflictError(USERNAME_TAKEN_MESSAGE, field="username")
    return ConflictError(EMAIL_TAKEN_MESSAGE, field="email")
