"""
Base service
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from authgate.common.exceptions import StoreError


class BaseService:
    """
    Shared service plumbing.

    Services own the transaction boundary of their writes and translate
    driver failures into ``StoreError``.
    """

    LOG_PREFIX = "[Service]"

    def __init__(self, db: AsyncSession):
        self.db = db

    async def commit(self):
        await self.db.commit()

    async def rollback(self):
        await self.db.rollback()

    @asynccontextmanager
    async def store_errors(self, operation: str) -> AsyncIterator[None]:
        """Roll back and re-raise driver errors as StoreError."""
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(f"{self.LOG_PREFIX} {operation} failed: {type(e).__name__}: {e}")
            try:
                await self.rollback()
            except SQLAlchemyError:
                logger.warning(f"{self.LOG_PREFIX} Rollback after failed {operation} also failed")
            raise StoreError(f"{operation} failed") from e
