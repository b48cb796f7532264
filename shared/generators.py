"""
Random code and token generators — pure, side-effect-free functions.

All generators use the ``secrets`` module.
"""

from __future__ import annotations

import secrets

OTP_LENGTH = 6
RESET_TOKEN_BYTES = 32


def generate_otp_code() -> str:
    """Generate a 6-digit numeric OTP, uniform over 000000–999999.

    Leading zeros are kept by padding, so "004821" is as likely as "904821".
    """
    return str(secrets.randbelow(10**OTP_LENGTH)).zfill(OTP_LENGTH)


def generate_reset_token() -> str:
    """Generate a password-reset token.

    Returns:
        64-character lowercase hex string (32 random bytes).
    """
    return secrets.token_hex(RESET_TOKEN_BYTES)
