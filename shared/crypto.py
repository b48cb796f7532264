"""
Cryptographic helpers — password hashing and token hashing.

Uses bcrypt for passwords and SHA-256 for reset-token hashing.

The bcrypt cost factor is a fixed policy, not a setting: every stored hash
and every dummy comparison costs the same, which is what keeps login and
password-reset timing independent of whether the account exists.
"""

from __future__ import annotations

import hashlib
from functools import lru_cache
from typing import Optional

import bcrypt

BCRYPT_ROUNDS = 12

# bcrypt only reads the first 72 bytes of its input
_BCRYPT_MAX_BYTES = 72

_DUMMY_PASSWORD = "dummy-password-for-timing-equalization"


def _encode(plain_password: str) -> bytes:
    return plain_password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain_password: str) -> str:
    """Hash *plain_password* with bcrypt at cost 12.

    The empty string is accepted; length rules belong to the caller.

    Returns:
        60-character bcrypt hash string (``$2b$12$...``).
    """
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(_encode(plain_password), salt).decode("ascii")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify *plain_password* against a bcrypt *password_hash*.

    Returns:
        ``True`` if the password matches, ``False`` for a mismatch or a
        malformed hash.
    """
    try:
        return bcrypt.checkpw(_encode(plain_password), password_hash.encode("ascii"))
    except (ValueError, UnicodeEncodeError):
        return False


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password(_DUMMY_PASSWORD)


def verify_or_dummy(plain_password: str, password_hash: Optional[str]) -> bool:
    """Verify a password, or burn an equal-cost comparison when there is no hash.

    Callers that looked up an account by email pass ``None`` when nothing was
    found. The dummy comparison makes the elapsed time match the
    "found, wrong password" path.
    """
    if password_hash is None:
        verify_password(plain_password, _dummy_hash())
        return False
    return verify_password(plain_password, password_hash)


def hash_token(token: str) -> str:
    """Return the hex-encoded SHA-256 digest of *token*.

    Used to hash password-reset tokens before storing them so the plaintext
    token only ever exists in the emailed link.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
