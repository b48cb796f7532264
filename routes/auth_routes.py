"""
Authentication routes.

POST /auth/register                 — create account, start session, send OTP
POST /auth/login                    — start session
POST /auth/logout                   — clear session cookie
GET  /auth/me                       — current user (session)
POST /auth/resend-otp               — send a fresh verification code (session)
POST /auth/verify-otp               — verify email with a code (session)
POST /auth/forgot-password          — email a reset link (enumeration-safe)
GET  /auth/reset-password/validate  — check a reset token without using it
POST /auth/reset-password           — set a new password with a reset token

Every body is JSON with a ``success`` flag; errors go through the AppError
handler. A password reset does not sign the user in.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response

from config import AppSettings
from dependencies import (
    get_auth_service,
    get_current_user,
    get_otp_service,
    get_password_reset_service,
    get_settings,
)
from errors import RateLimitError, ServiceUnavailableError, ValidationError
from schemas.dto.requests.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyOTPRequest,
)
from schemas.dto.responses.auth import (
    AuthResponse,
    RegisterResponse,
    ResendOTPResponse,
    UserResponse,
    ValidateResetTokenResponse,
    VerifyOTPResponse,
)
from schemas.dto.responses.common import MessageResponse
from services.auth_service import AuthService
from services.otp_service import RESEND_COOLDOWN_SECONDS, OTPOutcome, OTPService
from services.password_reset_service import PasswordResetService
from services.token_service import (
    SessionClaims,
    clear_session_cookie,
    set_session_cookie,
)

router = APIRouter(prefix="/auth", tags=["auth"])

_OTP_ERRORS = {
    OTPOutcome.MALFORMED: "Please enter a valid 6-digit code",
    OTPOutcome.INVALID: "Invalid verification code",
    OTPOutcome.EXPIRED: "Verification code has expired. Please request a new one.",
    OTPOutcome.ALREADY_VERIFIED: "Email is already verified",
}


@router.post("/register", status_code=201, response_model=RegisterResponse)
async def register(
    body: RegisterRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
) -> RegisterResponse:
    result = await auth_service.register(body.email, body.username, body.password)
    set_session_cookie(response, result.token, secure=settings.session.cookie_secure)
    return RegisterResponse(
        user=UserResponse.from_user(result.user),
        requires_verification=not result.user.email_verified,
        verification_sent=result.verification_sent,
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
) -> AuthResponse:
    result = await auth_service.login(body.email, body.password)
    set_session_cookie(response, result.token, secure=settings.session.cookie_secure)
    return AuthResponse(user=UserResponse.from_user(result.user))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response, settings: AppSettings = Depends(get_settings)
) -> MessageResponse:
    clear_session_cookie(response, secure=settings.session.cookie_secure)
    return MessageResponse(success=True, message="Logged out")


@router.get("/me", response_model=AuthResponse)
async def me(
    claims: SessionClaims = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    user = await auth_service.get_user(claims.user_id)
    return AuthResponse(user=UserResponse.from_user(user))


@router.post("/resend-otp", response_model=ResendOTPResponse)
async def resend_otp(
    claims: SessionClaims = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
    otp_service: OTPService = Depends(get_otp_service),
) -> ResendOTPResponse:
    user = await auth_service.get_user(claims.user_id)
    if user.email_verified:
        raise ValidationError(_OTP_ERRORS[OTPOutcome.ALREADY_VERIFIED])

    cooldown = await otp_service.check_cooldown(user.id)
    if cooldown > 0:
        raise RateLimitError(
            f"Please wait {cooldown} seconds before requesting another code",
            details={"cooldown_seconds": cooldown},
        )

    sent = await otp_service.send_otp_to_user(user.id, user.email, user.username)
    if not sent:
        raise ServiceUnavailableError(
            "Failed to send verification code. Please try again."
        )
    return ResendOTPResponse(
        message="Verification code sent",
        cooldown_seconds=RESEND_COOLDOWN_SECONDS,
    )


@router.post("/verify-otp", response_model=VerifyOTPResponse)
async def verify_otp(
    body: VerifyOTPRequest,
    claims: SessionClaims = Depends(get_current_user),
    otp_service: OTPService = Depends(get_otp_service),
) -> VerifyOTPResponse:
    result = await otp_service.verify(claims.user_id, body.code)
    if result.success:
        return VerifyOTPResponse(
            message="Email verified successfully", email_verified=True
        )

    if result.outcome is OTPOutcome.LOCKED:
        raise RateLimitError(
            "Too many failed attempts. Please try again later.",
            details={"attempts_remaining": 0},
        )

    details = None
    if result.attempts_remaining is not None:
        details = {"attempts_remaining": result.attempts_remaining}
    field = None if result.outcome is OTPOutcome.ALREADY_VERIFIED else "code"
    raise ValidationError(_OTP_ERRORS[result.outcome], field=field, details=details)


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    body: ForgotPasswordRequest,
    reset_service: PasswordResetService = Depends(get_password_reset_service),
) -> MessageResponse:
    message = await reset_service.request_reset(body.email)
    return MessageResponse(success=True, message=message)


@router.get("/reset-password/validate", response_model=ValidateResetTokenResponse)
async def validate_reset_token(
    token: str = Query(default=""),
    reset_service: PasswordResetService = Depends(get_password_reset_service),
) -> ValidateResetTokenResponse:
    result = await reset_service.validate_token(token)
    return ValidateResetTokenResponse(valid=result.valid, error=result.error)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    reset_service: PasswordResetService = Depends(get_password_reset_service),
) -> MessageResponse:
    result = await reset_service.consume_token(body.token, body.new_password)
    if not result.success:
        raise ValidationError(result.error or "Invalid reset link", field=result.field)
    return MessageResponse(
        success=True,
        message="Your password has been reset. Please log in with your new password.",
    )
