"""Session-protected service routes"""

from datetime import datetime
from typing import Callable

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from loguru import logger

from authgate.common.dependencies import CurrentUser, get_clock, get_settings
from authgate.common.exceptions import ServiceUnavailableException
from authgate.core.redirects import build_downstream_redirect
from authgate.core.security import create_access_token
from authgate.core.settings import Settings

router = APIRouter(prefix="/service", tags=["Service"])


@router.get("/core")
async def open_core(
    user: CurrentUser,
    settings: Settings = Depends(get_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> RedirectResponse:
    """Re-enter the downstream application with a freshly minted token."""
    token = create_access_token(user, settings, now=clock())
    logger.info(f"[ServiceAPI] Handoff to core user_id={user.id}")
    return RedirectResponse(
        url=build_downstream_redirect(settings.downstream_url, token, user.email),
        status_code=302,
    )


@router.get("/{name}")
async def open_module(name: str, user: CurrentUser) -> RedirectResponse:
    raise ServiceUnavailableException(f"Module '{name}' not available")
