"""
Login flow states.

    ANONYMOUS -> REDIRECTED -> CALLBACK_PENDING -> AUTHENTICATED | FAILED
    AUTHENTICATED -> ANONYMOUS   (session destroyed or expired)

FAILED and an anonymous hit on a protected route look the same to the
browser (redirect with an ``error`` query parameter); the log keeps the
cause apart.
"""

from enum import Enum
from typing import Optional

from loguru import logger

LOG_PREFIX = "[AuthFlow]"


class AuthState(str, Enum):
    ANONYMOUS = "anonymous"
    REDIRECTED = "redirected"
    CALLBACK_PENDING = "callback_pending"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


_ALLOWED = {
    AuthState.ANONYMOUS: {AuthState.REDIRECTED, AuthState.CALLBACK_PENDING},
    AuthState.REDIRECTED: {AuthState.CALLBACK_PENDING},
    AuthState.CALLBACK_PENDING: {AuthState.AUTHENTICATED, AuthState.FAILED},
    AuthState.AUTHENTICATED: {AuthState.ANONYMOUS, AuthState.AUTHENTICATED},
    AuthState.FAILED: set(),
}


def can_transition(current: AuthState, target: AuthState) -> bool:
    return target in _ALLOWED[current]


def log_transition(
    current: AuthState,
    target: AuthState,
    *,
    cause: str,
    provider: Optional[str] = None,
    user_id: Optional[int] = None,
) -> AuthState:
    """Record a transition and return the new state."""
    if not can_transition(current, target):
        raise ValueError(f"Illegal auth transition {current.value} -> {target.value}")

    level = "WARNING" if target is AuthState.FAILED else "INFO"
    logger.log(
        level,
        f"{LOG_PREFIX} auth.transition from={current.value} to={target.value} cause={cause}"
        + (f" provider={provider}" if provider else "")
        + (f" user_id={user_id}" if user_id is not None else ""),
    )
    return target
