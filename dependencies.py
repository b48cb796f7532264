"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Long-lived objects (engine, Redis, HTTP client,
email provider, attempt counter, token service) live on app.state and are
created in the lifespan; services are built per request around one
AsyncSession.
"""

from __future__ import annotations

from typing import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config import AppSettings
from errors import AuthenticationError, ForbiddenError
from infrastructure.attempts.protocol import AttemptCounter
from infrastructure.email.protocol import EmailProvider
from services.auth_service import AuthService
from services.otp_service import OTPService
from services.password_reset_service import PasswordResetService
from services.token_service import SessionClaims, TokenService


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


async def get_db_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield one AsyncSession for the duration of the request."""
    async with request.app.state.session_factory() as session:
        yield session


def get_email_provider(request: Request) -> EmailProvider:
    return request.app.state.email_provider


def get_attempt_counter(request: Request) -> AttemptCounter:
    return request.app.state.attempt_counter


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_otp_service(
    session: AsyncSession = Depends(get_db_session),
    email_provider: EmailProvider = Depends(get_email_provider),
    attempt_counter: AttemptCounter = Depends(get_attempt_counter),
) -> OTPService:
    return OTPService(session, email_provider, attempt_counter)


def get_auth_service(
    session: AsyncSession = Depends(get_db_session),
    token_service: TokenService = Depends(get_token_service),
    otp_service: OTPService = Depends(get_otp_service),
) -> AuthService:
    return AuthService(session, token_service, otp_service)


def get_password_reset_service(
    session: AsyncSession = Depends(get_db_session),
    email_provider: EmailProvider = Depends(get_email_provider),
    settings: AppSettings = Depends(get_settings),
) -> PasswordResetService:
    return PasswordResetService(
        session,
        email_provider,
        app_url=settings.app_url,
        min_response_ms=settings.password_reset_min_response_ms,
    )


def get_current_user(request: Request) -> SessionClaims:
    """Session claims placed on request.state by SessionMiddleware.

    Raises:
        AuthenticationError: no valid session on this request.
    """
    claims = getattr(request.state, "user", None)
    if claims is None:
        raise AuthenticationError("Not authenticated")
    return claims


def require_admin(user: SessionClaims = Depends(get_current_user)) -> SessionClaims:
    """Raises ForbiddenError unless the session belongs to an admin."""
    if not user.is_admin:
        raise ForbiddenError("Admin access required")
    return user
