"""
Base repository for relational data access.

Repositories wrap one AsyncSession (one per request). Reads run inside the
session's autobegun transaction; write methods finish with ``_commit()`` so
every multi-statement write lands atomically or not at all.
"""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession


class BaseRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _commit(self) -> None:
        """Commit the current transaction, rolling back if the commit fails."""
        try:
            await self._session.commit()
        except SQLAlchemyError:
            await self._session.rollback()
            raise
