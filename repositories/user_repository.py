"""
User repository — lookups and writes against the ``users`` table.
"""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from repositories.base import BaseRepository
from schemas.models.user import User


class UserRepository(BaseRepository):
    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        return await self._session.get(User, user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        """Case-insensitive lookup; rows are stored lower-cased but older
        rows may not be."""
        stmt = select(User).where(func.lower(User.email) == email.lower()).limit(1)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> Optional[User]:
        stmt = select(User).where(User.username == username).limit(1)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self,
        *,
        email: str,
        username: str,
        password_hash: str,
        is_admin: bool = False,
    ) -> User:
        """Insert a new, unverified user.

        Raises:
            sqlalchemy.exc.IntegrityError: email or username already taken.
        """
        user = User(
            email=email,
            username=username,
            password_hash=password_hash,
            email_verified=False,
            is_admin=is_admin,
        )
        self._session.add(user)
        try:
            await self._session.flush()
        except SQLAlchemyError:
            await self._session.rollback()
            raise
        await self._commit()
        return user
