"""
Request DTOs for authentication endpoints.

RegisterRequest        — POST /auth/register
LoginRequest           — POST /auth/login
VerifyOTPRequest       — POST /auth/verify-otp
ForgotPasswordRequest  — POST /auth/forgot-password
ResetPasswordRequest   — POST /auth/reset-password

Field rules (email format, username charset, password length) are enforced
by the services so that every failure carries a field-scoped message.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    username: str
    password: str


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str


class VerifyOTPRequest(BaseModel):
    """Request body for POST /auth/verify-otp.

    ``code`` is the 6-digit code from the verification email; spaces and
    dashes are tolerated.
    """

    model_config = ConfigDict(populate_by_name=True)

    code: str


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /auth/forgot-password."""

    model_config = ConfigDict(populate_by_name=True)

    email: str


class ResetPasswordRequest(BaseModel):
    """Request body for POST /auth/reset-password.

    Accepts ``newPassword`` as well as ``new_password``.
    """

    model_config = ConfigDict(populate_by_name=True)

    token: str
    new_password: str = Field(alias="newPassword")
