"""
Input validators — framework-agnostic, pure functions.

Rules match what the registration and reset forms enforce client-side, so a
request that passes the form never fails here for a different reason.
"""

from __future__ import annotations

import re
from typing import Optional

MAX_PASSWORD_LENGTH = 1000

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_USERNAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
_OTP_RE = re.compile(r"^\d{6}$")
_RESET_TOKEN_RE = re.compile(r"^[0-9a-f]{64}$")


def normalize_email(email: str) -> str:
    """Trim and lower-case *email*; emails are unique case-insensitively."""
    return email.strip().lower()


def validate_email(email: str) -> bool:
    """Return True if *email* looks like ``local@domain.tld``."""
    return bool(_EMAIL_RE.match(email))


def validate_username(username: str) -> bool:
    """Return True if *username* contains only letters, digits, ``_`` or ``-``."""
    return bool(_USERNAME_RE.match(username))


def password_error(password: str) -> Optional[str]:
    """Return a user-facing message if *password* is unacceptable, else None.

    Rules:
    - not blank after trimming
    - at most 1000 characters
    """
    if not password or not password.strip():
        return "Password is required"
    if len(password.strip()) > MAX_PASSWORD_LENGTH:
        return f"Password is too long (max {MAX_PASSWORD_LENGTH} characters)"
    return None


def sanitize_otp_input(code: str) -> Optional[str]:
    """Strip whitespace and dashes from a submitted OTP.

    Returns:
        The 6-digit code, or None when what remains is not exactly 6 digits.
    """
    cleaned = re.sub(r"[\s-]", "", code or "")
    return cleaned if _OTP_RE.match(cleaned) else None


def validate_reset_token_format(token: str) -> bool:
    """Return True if *token* is a 64-character lowercase hex string."""
    return bool(token) and bool(_RESET_TOKEN_RE.match(token))
