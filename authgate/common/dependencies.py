"""
Shared dependencies

Everything request handlers need is read from ``app.state`` (populated by
``create_app``), so tests can swap the database, providers or clock.
"""

from datetime import datetime
from typing import Annotated, AsyncIterator, Callable, Dict, Optional

from fastapi import Depends, Header, Request
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from authgate.common.exceptions import LoginRequiredException, UnauthorizedException
from authgate.core.auth_state import AuthState, log_transition
from authgate.core.database import Database
from authgate.core.oauth.providers.base import BaseOAuthProvider
from authgate.core.security import bearer_credential, check_admin_secret
from authgate.core.settings import Settings
from authgate.models.user import User
from authgate.services.oauth_service import OAuthService
from authgate.services.session_service import SessionService
from authgate.services.user_service import UserService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_providers(request: Request) -> Dict[str, BaseOAuthProvider]:
    return request.app.state.providers


def get_clock(request: Request) -> Callable[[], datetime]:
    return request.app.state.clock


async def get_db(database: Database = Depends(get_database)) -> AsyncIterator[AsyncSession]:
    """Database session for one request"""
    async with database.session() as session:
        yield session


def get_user_service(
    db: AsyncSession = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> UserService:
    return UserService(db, clock=clock)


def get_session_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> SessionService:
    return SessionService(db, settings, clock=clock)


def get_oauth_service(
    db: AsyncSession = Depends(get_db),
    providers: Dict[str, BaseOAuthProvider] = Depends(get_providers),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> OAuthService:
    return OAuthService(db, providers, clock=clock)


async def get_current_user_optional(
    request: Request,
    settings: Settings = Depends(get_settings),
    session_service: SessionService = Depends(get_session_service),
    user_service: UserService = Depends(get_user_service),
) -> Optional[User]:
    """
    The logged-in user, or None.

    The session only stores (provider, provider_id); the user row is read
    fresh so the response reflects the latest profile.
    """
    cookie = request.cookies.get(settings.session_cookie_name)
    if not cookie:
        return None

    identity = await session_service.resolve(cookie)
    if identity is None:
        return None

    return await user_service.get(identity.provider, identity.provider_id)


async def require_user(
    request: Request,
    settings: Settings = Depends(get_settings),
    user: Optional[User] = Depends(get_current_user_optional),
) -> User:
    """
    Protected-route guard.

    Raises:
        LoginRequiredException: no usable session (redirect to login)
    """
    if user is not None:
        return user

    if request.cookies.get(settings.session_cookie_name):
        log_transition(AuthState.AUTHENTICATED, AuthState.ANONYMOUS, cause="session_invalid")
        cause = "session_invalid"
    else:
        cause = "no_session"
    logger.info(f"[AuthGuard] Login required path={request.url.path} cause={cause}")
    raise LoginRequiredException(cause=cause)


def require_admin(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Admin gate: ``Authorization: Bearer <admin secret>``.

    Raises:
        UnauthorizedException: missing, malformed or wrong secret
    """
    if not check_admin_secret(bearer_credential(authorization), settings.admin_secret):
        logger.warning("[AdminGate] Rejected admin request")
        raise UnauthorizedException()


CurrentUser = Annotated[User, Depends(require_user)]
OptionalUser = Annotated[Optional[User], Depends(get_current_user_optional)]
