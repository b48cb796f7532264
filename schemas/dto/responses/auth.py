"""
Response DTOs for authentication endpoints.

UserResponse                — public view of a User, used by login/register/me
AuthResponse                — POST /auth/login (200)
RegisterResponse            — POST /auth/register (201)
ResendOTPResponse           — POST /auth/resend-otp (200)
VerifyOTPResponse           — POST /auth/verify-otp (200)
ValidateResetTokenResponse  — GET /auth/reset-password/validate (200)
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.user import User


class UserResponse(BaseModel):
    """Public user fields. The password hash never leaves the service."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str
    username: str
    email_verified: bool
    is_admin: bool
    bio: Optional[str] = None
    profile_picture_url: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=str(user.id),
            email=user.email,
            username=user.username,
            email_verified=user.email_verified,
            is_admin=user.is_admin,
            bio=user.bio,
            profile_picture_url=user.profile_picture_url,
        )


class AuthResponse(BaseModel):
    """Response body for POST /auth/login and GET /auth/me (200)."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    user: UserResponse


class RegisterResponse(BaseModel):
    """Response body for POST /auth/register (201)."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    user: UserResponse
    requires_verification: bool
    verification_sent: bool


class ResendOTPResponse(BaseModel):
    """Response body for POST /auth/resend-otp (200)."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    cooldown_seconds: int


class VerifyOTPResponse(BaseModel):
    """Response body for POST /auth/verify-otp (200)."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    email_verified: bool


class ValidateResetTokenResponse(BaseModel):
    """Response body for GET /auth/reset-password/validate (200)."""

    model_config = ConfigDict(populate_by_name=True)

    valid: bool
    error: Optional[str] = None
