"""Identity store service - the single write path for user rows"""

from datetime import datetime
from typing import Callable, List, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from authgate.core.oauth.providers.base import DraftIdentity
from authgate.models.base import utc_now
from authgate.models.user import User
from authgate.repositories.user import UserRepository
from authgate.services.base import BaseService


class UserService(BaseService):
    """Identity store"""

    LOG_PREFIX = "[UserStore]"

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utc_now):
        super().__init__(db)
        self.user_repo = UserRepository(db)
        self.clock = clock

    async def upsert_and_fetch(self, draft: DraftIdentity) -> User:
        """
        Record a successful login and return the canonical user.

        New (provider, provider_id): insert with login_count=1.
        Known: refresh email/name/avatar_url, bump last_login and login_count.

        Raises:
            ValueError: provider or provider_id is empty
            StoreError: the database failed; nothing is committed
        """
        if not draft.provider or not draft.provider_id:
            raise ValueError("provider and provider_id are required")

        async with self.store_errors("upsert"):
            user = await self.user_repo.upsert(
                email=draft.email or "",
                name=draft.name or "",
                provider=draft.provider,
                provider_id=draft.provider_id,
                avatar_url=draft.avatar_url or "",
                now=self.clock(),
            )
            await self.commit()

        logger.info(f"{self.LOG_PREFIX} Upserted user id={user.id} provider={user.provider} logins={user.login_count}")
        return user

    async def list_all(self) -> List[User]:
        """All users, most recent login first."""
        async with self.store_errors("list"):
            return await self.user_repo.list_by_last_login()

    async def get(self, provider: str, provider_id: str) -> Optional[User]:
        async with self.store_errors("lookup"):
            return await self.user_repo.get_by_identity(provider, provider_id)
