"""
OAuth login endpoints.

- GET /auth/providers - list configured providers
- GET /auth/status - current session summary
- GET|POST /auth/logout - end the session
- GET /auth/{provider} - start authorization
- GET /auth/{provider}/callback - finish authorization, hand off to downstream
"""

import secrets
from datetime import datetime
from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse
from loguru import logger
from pydantic import BaseModel

from authgate.common.dependencies import (
    OptionalUser,
    get_clock,
    get_oauth_service,
    get_session_service,
    get_settings,
)
from authgate.common.exceptions import ProviderAuthError
from authgate.core.auth_state import AuthState, log_transition
from authgate.core.redirects import build_downstream_redirect
from authgate.core.security import CookieSigner, create_access_token, generate_token
from authgate.core.settings import Settings
from authgate.services.oauth_service import OAuthService
from authgate.services.session_service import SessionService

LOG_PREFIX = "[OAuthAPI]"
router = APIRouter(prefix="/auth", tags=["Auth"])

STATE_COOKIE_NAME = "authgate_oauth_state"
STATE_COOKIE_SALT = "authgate.oauth-state"
STATE_MAX_AGE_SECONDS = 600


# ==================== Response Models ====================


class OAuthProviderInfo(BaseModel):
    id: str
    display_name: str


class OAuthProvidersResponse(BaseModel):
    providers: List[OAuthProviderInfo]


class StatusUser(BaseModel):
    email: str
    name: str


class AuthStatusResponse(BaseModel):
    authenticated: bool
    user: Optional[StatusUser] = None


# ==================== Helpers ====================


def _state_signer(settings: Settings) -> CookieSigner:
    return CookieSigner(settings.session_secret, salt=STATE_COOKIE_SALT)


def _set_state_cookie(response: RedirectResponse, settings: Settings, value: str) -> None:
    response.set_cookie(
        key=STATE_COOKIE_NAME,
        value=value,
        max_age=STATE_MAX_AGE_SECONDS,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/auth",
    )


def _clear_state_cookie(response: RedirectResponse, settings: Settings) -> None:
    response.delete_cookie(
        key=STATE_COOKIE_NAME,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        path="/auth",
    )


def _verify_state(request: Request, settings: Settings, provider: str, state: Optional[str]) -> None:
    """
    Raises:
        ProviderAuthError: state missing, expired or not the one we issued
    """
    expected = _state_signer(settings).unsign(request.cookies.get(STATE_COOKIE_NAME), max_age=STATE_MAX_AGE_SECONDS)
    if not expected or not state:
        raise ProviderAuthError(provider, "missing_state")
    if not secrets.compare_digest(expected.encode("utf-8"), f"{provider}:{state}".encode("utf-8")):
        raise ProviderAuthError(provider, "state_mismatch")


def _failure_redirect(provider: str, settings: Settings) -> RedirectResponse:
    response = RedirectResponse(url=f"/?error={provider}_auth_failed", status_code=302)
    _clear_state_cookie(response, settings)
    return response


# ==================== API Endpoints ====================


@router.get("/providers", response_model=OAuthProvidersResponse)
async def list_oauth_providers(request: Request) -> OAuthProvidersResponse:
    """
    List configured OAuth providers.

    Used by the login page to render provider buttons.
    """
    providers = request.app.state.providers
    return OAuthProvidersResponse(
        providers=[OAuthProviderInfo(id=name, display_name=p.config.display_name) for name, p in providers.items()]
    )


@router.get("/status", response_model=AuthStatusResponse, response_model_exclude_none=True)
async def auth_status(user: OptionalUser) -> AuthStatusResponse:
    if user is None:
        return AuthStatusResponse(authenticated=False)
    return AuthStatusResponse(authenticated=True, user=StatusUser(email=user.email or "", name=user.name or ""))


@router.api_route("/logout", methods=["GET", "POST"])
async def logout(
    request: Request,
    settings: Settings = Depends(get_settings),
    session_service: SessionService = Depends(get_session_service),
) -> RedirectResponse:
    """Destroy the session (if any) and return to the landing page."""
    destroyed = await session_service.destroy(request.cookies.get(settings.session_cookie_name))
    if destroyed:
        log_transition(AuthState.AUTHENTICATED, AuthState.ANONYMOUS, cause="logout")

    response = RedirectResponse(url="/", status_code=302)
    session_service.clear_cookie(response)
    return response


@router.get("/{provider}")
async def oauth_authorize(
    provider: str,
    settings: Settings = Depends(get_settings),
    oauth_service: OAuthService = Depends(get_oauth_service),
) -> RedirectResponse:
    """
    Start the OAuth flow.

    Redirects to the provider's authorization page. The state value travels
    in the URL and, signed, in a short-lived cookie for the callback to
    compare against.
    """
    state = generate_token(32)
    authorization_url = oauth_service.start_login(provider, state)
    log_transition(AuthState.ANONYMOUS, AuthState.REDIRECTED, cause="authorize", provider=provider)

    response = RedirectResponse(url=authorization_url, status_code=302)
    _set_state_cookie(response, settings, _state_signer(settings).sign(f"{provider}:{state}"))
    return response


@router.get("/{provider}/callback")
async def oauth_callback(
    provider: str,
    request: Request,
    code: Optional[str] = Query(None, description="Authorization code"),
    state: Optional[str] = Query(None, description="State issued at authorization"),
    error: Optional[str] = Query(None, description="Provider error code"),
    settings: Settings = Depends(get_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
    oauth_service: OAuthService = Depends(get_oauth_service),
    session_service: SessionService = Depends(get_session_service),
) -> RedirectResponse:
    """
    Handle the provider callback.

    Success: store the user, open a session and redirect to the downstream
    application with a fresh token. Any provider-side failure redirects to
    the landing page with ``error=<provider>_auth_failed`` and stores nothing.
    """
    oauth_service.get_provider(provider)
    current = log_transition(AuthState.ANONYMOUS, AuthState.CALLBACK_PENDING, cause="callback", provider=provider)

    try:
        if error:
            raise ProviderAuthError(provider, f"provider_error:{error}")
        _verify_state(request, settings, provider, state)
        if not code:
            raise ProviderAuthError(provider, "missing_code")
        user = await oauth_service.complete_login(provider, code)
    except ProviderAuthError as e:
        log_transition(current, AuthState.FAILED, cause=e.reason, provider=provider)
        return _failure_redirect(provider, settings)

    session_value = await session_service.create(user)
    token = create_access_token(user, settings, now=clock())
    log_transition(current, AuthState.AUTHENTICATED, cause="login", provider=provider, user_id=user.id)
    logger.info(f"{LOG_PREFIX} Login complete provider={provider} user_id={user.id}")

    response = RedirectResponse(
        url=build_downstream_redirect(settings.downstream_url, token, user.email),
        status_code=302,
    )
    session_service.set_cookie(response, session_value)
    _clear_state_cookie(response, settings)
    return response
