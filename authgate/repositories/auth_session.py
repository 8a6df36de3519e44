"""
AuthSession repository
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from authgate.models.auth_session import AuthSession

from .base import BaseRepository


class AuthSessionRepository(BaseRepository[AuthSession]):
    def __init__(self, db: AsyncSession):
        super().__init__(AuthSession, db)

    async def get_by_token(self, token: str) -> Optional[AuthSession]:
        return await self.get_by(token=token)

    async def delete_by_token(self, token: str) -> int:
        result = await self.db.execute(delete(AuthSession).where(AuthSession.token == token))
        return result.rowcount or 0

    async def purge_expired(self, now: datetime) -> int:
        result = await self.db.execute(delete(AuthSession).where(AuthSession.expires_at <= now))
        return result.rowcount or 0
