"""
Exception hierarchy and global handlers.

- HTTP-facing errors inherit ``AppException(HTTPException)`` and carry the
  status code plus a client-safe message.
- Non-HTTP errors (``ConfigurationError``, ``ProviderAuthError``,
  ``StoreError``) are raised by the core and translated at the edge.
- Every JSON error body is ``{"error": "<message>"}``; internal details go to
  the log, never to the client.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse, Response
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from authgate.common.response import error_response

GENERIC_SERVER_ERROR = "Internal server error"


class ConfigurationError(Exception):
    """Startup configuration is unusable (missing secret, bad downstream URL)."""


class ProviderAuthError(Exception):
    """The OAuth provider refused or failed the login."""

    def __init__(self, provider: str, reason: str):
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason


class StoreError(Exception):
    """The identity or session store could not complete an operation."""


class AppException(HTTPException):
    """Base class for errors rendered as an HTTP response."""

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        message: str = GENERIC_SERVER_ERROR,
        *,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)


class NotFoundException(AppException):
    """404"""

    def __init__(self, message: str = "Not Found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, message=message)


class UnauthorizedException(AppException):
    """401. The message stays generic so callers learn nothing about the secret."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            message=message,
            headers={"WWW-Authenticate": "Bearer"},
        )


class PayloadTooLargeException(AppException):
    """413"""

    def __init__(self, message: str = "Request body too large"):
        super().__init__(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, message=message)


class ServiceUnavailableException(AppException):
    """503"""

    def __init__(self, message: str = "Service unavailable"):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, message=message)


class LoginRequiredException(AppException):
    """
    No valid session on a protected route.

    Rendered as a redirect to the login page, not as JSON.
    """

    def __init__(self, cause: str = "no_session", location: str = "/?error=login_required"):
        super().__init__(status_code=status.HTTP_302_FOUND, message="Login required")
        self.cause = cause
        self.location = location


def create_error_response(status_code: int, message: str, headers: Optional[Dict[str, str]] = None) -> Response:
    return JSONResponse(status_code=status_code, content=error_response(message), headers=headers)


async def login_required_handler(request: Request, exc: LoginRequiredException) -> Response:
    return RedirectResponse(url=exc.location, status_code=status.HTTP_302_FOUND)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    """AppException and plain Starlette/FastAPI HTTPException (routing 404/405)."""
    return create_error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


async def request_validation_exception_handler(request: Request, exc: Exception) -> Response:
    return create_error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, "Request parameter validation failed")


async def store_error_handler(request: Request, exc: StoreError) -> Response:
    logger.opt(exception=exc).error("Store failure: {}", exc)
    return create_error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_SERVER_ERROR)


async def general_exception_handler(request: Request, exc: Exception) -> Response:
    """Uncaught fault (500)."""
    logger.opt(exception=exc).error("Unhandled exception: {}", type(exc).__name__)
    return create_error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_SERVER_ERROR)


def register_exception_handlers(app: Any) -> None:
    """Install all handlers on a FastAPI app."""
    app.add_exception_handler(LoginRequiredException, login_required_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)
