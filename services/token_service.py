"""
Session token issuance and verification.

Sessions are stateless HS256 JWTs carried in the ``auth_token`` cookie:

    Issued -> Valid -> Expired   (TokenExpiredError)
                    -> Tampered  (InvalidTokenError)

There is no server-side revocation list; a token stays valid until its
embedded expiry even after logout clears the cookie.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt
from starlette.responses import Response

from errors import InvalidTokenError, TokenExpiredError
from shared.datetime_utils import utcnow
from shared.logging import get_logger

log = get_logger(__name__)

COOKIE_NAME = "auth_token"
SESSION_TTL = timedelta(days=30)
SESSION_TTL_SECONDS = int(SESSION_TTL.total_seconds())

_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ["sub", "iat", "exp"]


@dataclass(frozen=True)
class SessionClaims:
    user_id: uuid.UUID
    is_admin: bool
    issued_at: datetime
    expires_at: datetime


class TokenService:
    def __init__(
        self, secret: str, clock: Callable[[], datetime] = utcnow
    ) -> None:
        if not secret:
            raise ValueError("JWT secret must be configured")
        self._secret = secret
        self._clock = clock

    def issue(self, user_id: uuid.UUID, is_admin: bool = False) -> str:
        """Sign a session token for *user_id* valid for 30 days."""
        now = self._clock()
        claims = {
            "sub": str(user_id),
            "is_admin": bool(is_admin),
            "iat": int(now.timestamp()),
            "exp": int((now + SESSION_TTL).timestamp()),
        }
        return jwt.encode(claims, self._secret, algorithm=_ALGORITHM)

    def verify(self, token: str) -> SessionClaims:
        """Decode and check *token*.

        The signature is checked before the expiry, so a forged token that is
        also past its expiry reports as invalid, not expired. Expiry is judged
        by the same clock that issues tokens.

        Raises:
            TokenExpiredError: genuine token past its ``exp``.
            InvalidTokenError: bad signature, malformed token, missing or
                ill-typed claims.
        """
        if not token:
            raise InvalidTokenError()
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                options={
                    "require": _REQUIRED_CLAIMS,
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidTokenError as e:
            log.debug("session_token_rejected", error_type=type(e).__name__)
            raise InvalidTokenError()

        issued_at = payload["iat"]
        expires_at = payload["exp"]
        if not all(_is_timestamp(v) for v in (issued_at, expires_at)):
            raise InvalidTokenError()
        if self._clock().timestamp() >= expires_at:
            raise TokenExpiredError()

        try:
            user_id = uuid.UUID(payload["sub"])
        except (TypeError, ValueError, AttributeError):
            raise InvalidTokenError()

        is_admin = payload.get("is_admin", False)
        if not isinstance(is_admin, bool):
            raise InvalidTokenError()

        return SessionClaims(
            user_id=user_id,
            is_admin=is_admin,
            issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
        )


def _is_timestamp(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def set_session_cookie(response: Response, token: str, secure: bool = True) -> None:
    response.set_cookie(
        COOKIE_NAME,
        value=token,
        max_age=SESSION_TTL_SECONDS,
        path="/",
        httponly=True,
        secure=secure,
        samesite="strict",
    )


def clear_session_cookie(response: Response, secure: bool = True) -> None:
    response.delete_cookie(
        COOKIE_NAME,
        path="/",
        httponly=True,
        secure=secure,
        samesite="strict",
    )
