"""Session service - browser session lifecycle"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from fastapi import Response
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from authgate.core.security import CookieSigner, generate_token
from authgate.core.settings import Settings
from authgate.models.base import utc_now
from authgate.repositories.auth_session import AuthSessionRepository
from authgate.services.base import BaseService

SESSION_COOKIE_SALT = "authgate.session"


@dataclass(frozen=True)
class SessionIdentity:
    """What a session remembers about its user."""

    user_id: int
    provider: str
    provider_id: str


class SessionService(BaseService):
    """
    Server-side sessions referenced by a signed cookie.

    The cookie holds only the signed session token. The row holds the
    descriptor and a fixed absolute expiry; resolving never extends it.
    """

    LOG_PREFIX = "[Session]"

    def __init__(self, db: AsyncSession, settings: Settings, clock: Callable[[], datetime] = utc_now):
        super().__init__(db)
        self.settings = settings
        self.session_repo = AuthSessionRepository(db)
        self.signer = CookieSigner(settings.session_secret, salt=SESSION_COOKIE_SALT)
        self.clock = clock

    @property
    def max_age(self) -> int:
        return self.settings.session_max_age_seconds

    async def create(self, user) -> str:
        """Persist a session for ``user`` and return the signed cookie value."""
        now = self.clock()
        token = generate_token(32)
        async with self.store_errors("session create"):
            await self.session_repo.create(
                {
                    "token": token,
                    "user_id": user.id,
                    "provider": user.provider,
                    "provider_id": user.provider_id,
                    "created_at": now,
                    "expires_at": now + timedelta(seconds=self.max_age),
                }
            )
            await self.commit()

        logger.info(f"{self.LOG_PREFIX} Session created for user_id={user.id}")
        return self.signer.sign(token)

    async def resolve(self, cookie_value: Optional[str]) -> Optional[SessionIdentity]:
        """
        Descriptor for a cookie, or None.

        Bad signature, unknown token and expired rows all give None; an
        expired row is deleted on the way.
        """
        token = self.signer.unsign(cookie_value, max_age=self.max_age)
        if not token:
            return None

        async with self.store_errors("session resolve"):
            session = await self.session_repo.get_by_token(token)
            if session is None:
                return None

            if session.expires_at <= self.clock():
                await self.session_repo.delete_by_token(token)
                await self.commit()
                logger.info(f"{self.LOG_PREFIX} Session expired for user_id={session.user_id}")
                return None

        return SessionIdentity(
            user_id=session.user_id,
            provider=session.provider,
            provider_id=session.provider_id,
        )

    async def destroy(self, cookie_value: Optional[str]) -> bool:
        """Delete the session row if there is one. Safe to call repeatedly."""
        token = self.signer.unsign(cookie_value, max_age=self.max_age)
        if not token:
            return False

        async with self.store_errors("session destroy"):
            deleted = await self.session_repo.delete_by_token(token)
            await self.commit()
        return deleted > 0

    async def purge_expired(self) -> int:
        async with self.store_errors("session purge"):
            deleted = await self.session_repo.purge_expired(self.clock())
            await self.commit()
        return deleted

    def set_cookie(self, response: Response, value: str) -> None:
        response.set_cookie(
            key=self.settings.session_cookie_name,
            value=value,
            max_age=self.max_age,
            httponly=True,
            secure=self.settings.cookie_secure,
            samesite="lax",
            path="/",
        )

    def clear_cookie(self, response: Response) -> None:
        response.delete_cookie(
            key=self.settings.session_cookie_name,
            httponly=True,
            secure=self.settings.cookie_secure,
            samesite="lax",
            path="/",
        )
