"""
OAuth service - login flow business logic

- start: build the provider authorization URL
- complete: code → provider profile → draft identity → identity store
"""

from datetime import datetime
from typing import Callable, Dict, Iterable, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from authgate.common.exceptions import NotFoundException
from authgate.core.oauth.providers.base import BaseOAuthProvider
from authgate.models.base import utc_now
from authgate.models.user import User
from authgate.services.base import BaseService
from authgate.services.user_service import UserService


class OAuthService(BaseService):
    """OAuth login service"""

    LOG_PREFIX = "[OAuthService]"

    def __init__(
        self,
        db: AsyncSession,
        providers: Dict[str, BaseOAuthProvider],
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(db)
        self.providers = providers
        self.user_service = UserService(db, clock=clock)

    def get_provider(self, name: str) -> BaseOAuthProvider:
        """
        Raises:
            NotFoundException: provider unknown or its credentials are not set
        """
        provider = self.providers.get(name)
        if provider is None:
            raise NotFoundException(f"OAuth provider '{name}' is not configured")
        return provider

    def start_login(self, provider_name: str, state: str, scopes: Optional[Iterable[str]] = None) -> str:
        provider = self.get_provider(provider_name)
        url = provider.initiate(state, scopes)
        logger.info(f"{self.LOG_PREFIX} Redirecting to {provider_name} authorization")
        return url

    async def complete_login(self, provider_name: str, code: str) -> User:
        """
        Finish the flow and return the stored user.

        Raises:
            ProviderAuthError: provider refused or failed; the store is untouched
            StoreError: the upsert failed
        """
        provider = self.get_provider(provider_name)
        profile = await provider.fetch_profile(code)
        draft = provider.complete(profile)
        if not draft.email:
            logger.info(f"{self.LOG_PREFIX} {provider_name} returned no email for subject; continuing")
        return await self.user_service.upsert_and_fetch(draft)
