"""
One-time code model.

Maps to the ``one_time_codes`` table, shared by both flows and told apart by
``purpose``:

- email_verification: ``code`` is the zero-padded 6-digit OTP
- password_reset: ``code`` is SHA-256(reset token); the token itself is
  never stored

Issuing a code replaces older codes of the same (user, purpose). Rows are
deleted when consumed or when a lookup finds them expired.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from schemas.models.base import BaseModel


class CodePurpose(str, enum.Enum):
    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


class OneTimeCode(BaseModel):
    __tablename__ = "one_time_codes"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    purpose: Mapped[CodePurpose] = mapped_column(
        Enum(
            CodePurpose,
            native_enum=False,
            name="code_purpose",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    __table_args__ = (
        Index("idx_one_time_codes_user_purpose", "user_id", "purpose"),
        Index("idx_one_time_codes_expires_at", "expires_at"),
    )
