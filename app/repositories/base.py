from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession


class BaseRepository:
    """Thin base class that holds the database session.

    Every concrete repository receives an ``AsyncSession`` at
    construction time so that the qualification service can run several
    repositories inside the same unit-of-work for one turn.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def flush(self) -> None:
        """Flush pending changes without committing."""
        await self._db.flush()

    async def commit(self) -> None:
        """Commit the current transaction."""
        await self._db.commit()

    async def rollback(self) -> None:
        """Roll back the current transaction."""
        await self._db.rollback()

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        """Commit everything done inside the block, or nothing at all."""
        try:
            yield
            await self._db.commit()
        except Exception:
            await self._db.rollback()
            raise
