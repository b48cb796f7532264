"""EmailProvider protocol. Services depend on this, not the concrete implementation.

Implementations report delivery failure by returning False; they never raise.
"""

from typing import Protocol


class EmailProvider(Protocol):
    async def send_verification_email(
        self, email: str, username: str, otp_code: str, expires_in_minutes: int
    ) -> bool: ...

    async def send_password_reset_email(
        self, email: str, username: str, reset_link: str, expires_in_minutes: int
    ) -> bool: ...
