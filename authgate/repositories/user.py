"""
User repository.

``upsert`` is the only statement in the code base that writes user rows.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from authgate.models.user import User

from .base import BaseRepository

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class UserRepository(BaseRepository[User]):
    """User data access"""

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def upsert(
        self,
        *,
        email: str,
        name: str,
        provider: str,
        provider_id: str,
        avatar_url: str,
        now: datetime,
    ) -> User:
        """
        Insert or refresh the row for (provider, provider_id) in one statement.

        The unique constraint arbitrates concurrent callers: exactly one
        inserts, the others take the DO UPDATE branch and increment
        ``login_count`` on the committed row.
        """
        insert_fn = _UPSERT_INSERTS.get(self.dialect)
        if insert_fn is None:
            raise NotImplementedError(f"Upsert not supported for dialect '{self.dialect}'")

        insert_stmt = insert_fn(User).values(
            email=email,
            name=name,
            provider=provider,
            provider_id=provider_id,
            avatar_url=avatar_url,
            first_login=now,
            last_login=now,
            login_count=1,
        )
        stmt = insert_stmt.on_conflict_do_update(
            index_elements=["provider", "provider_id"],
            set_={
                "email": insert_stmt.excluded.email,
                "name": insert_stmt.excluded.name,
                "avatar_url": insert_stmt.excluded.avatar_url,
                "last_login": insert_stmt.excluded.last_login,
                # first_login and id are left as stored
                "login_count": User.login_count + 1,
            },
        ).returning(User)

        result = await self.db.execute(stmt, execution_options={"populate_existing": True})
        return result.scalar_one()

    async def get_by_identity(self, provider: str, provider_id: str) -> Optional[User]:
        return await self.get_by(provider=provider, provider_id=provider_id)

    async def list_by_last_login(self) -> List[User]:
        return await self.find(order_by="last_login", order_desc=True)
