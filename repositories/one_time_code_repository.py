"""
One-time code repository — the ``one_time_codes`` table.

The two ``consume_*`` methods are the transactional update+delete
primitives: the user row change and the code deletion commit together, so a
crash between them can never leave a verified user with a dangling code or a
new password with a replayable reset token.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select, update

from repositories.base import BaseRepository
from schemas.models.one_time_code import CodePurpose, OneTimeCode
from schemas.models.user import User


class OneTimeCodeRepository(BaseRepository):
    async def replace(
        self,
        user_id: uuid.UUID,
        purpose: CodePurpose,
        code: str,
        expires_at: datetime,
    ) -> OneTimeCode:
        """Delete the user's existing codes for *purpose* and store a new one.

        Codes of other purposes are left alone.
        """
        await self._session.execute(
            delete(OneTimeCode).where(
                OneTimeCode.user_id == user_id,
                OneTimeCode.purpose == purpose,
            )
        )
        record = OneTimeCode(
            user_id=user_id,
            purpose=purpose,
            code=code,
            expires_at=expires_at,
        )
        self._session.add(record)
        await self._commit()
        return record

    async def find(
        self, user_id: uuid.UUID, purpose: CodePurpose, code: str
    ) -> Optional[OneTimeCode]:
        """Exact match on (user, purpose, code)."""
        stmt = (
            select(OneTimeCode)
            .where(
                OneTimeCode.user_id == user_id,
                OneTimeCode.purpose == purpose,
                OneTimeCode.code == code,
            )
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_code(
        self, purpose: CodePurpose, code: str
    ) -> Optional[OneTimeCode]:
        """Lookup without a user id (reset links carry only the token)."""
        stmt = (
            select(OneTimeCode)
            .where(OneTimeCode.purpose == purpose, OneTimeCode.code == code)
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def latest(
        self, user_id: uuid.UUID, purpose: CodePurpose
    ) -> Optional[OneTimeCode]:
        stmt = (
            select(OneTimeCode)
            .where(
                OneTimeCode.user_id == user_id,
                OneTimeCode.purpose == purpose,
            )
            .order_by(OneTimeCode.created_at.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def delete_by_id(self, code_id: uuid.UUID) -> None:
        await self._session.execute(
            delete(OneTimeCode).where(OneTimeCode.id == code_id)
        )
        await self._commit()

    async def consume_email_verification(
        self, code_id: uuid.UUID, user_id: uuid.UUID
    ) -> None:
        """Mark the user verified and delete the code in one transaction."""
        await self._session.execute(
            update(User).where(User.id == user_id).values(email_verified=True)
        )
        await self._session.execute(
            delete(OneTimeCode).where(OneTimeCode.id == code_id)
        )
        await self._commit()

    async def consume_password_reset(
        self, code_id: uuid.UUID, user_id: uuid.UUID, password_hash: str
    ) -> bool:
        """Set the new password hash and delete the reset code in one transaction.

        Returns:
            False when the code was already gone (a concurrent consume won);
            nothing is written in that case.
        """
        deleted = await self._session.execute(
            delete(OneTimeCode).where(OneTimeCode.id == code_id)
        )
        if deleted.rowcount == 0:
            await self._session.rollback()
            return False
        await self._session.execute(
            update(User).where(User.id == user_id).values(password_hash=password_hash)
        )
        await self._commit()
        return True
