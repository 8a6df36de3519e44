"""
Service Layer
"""

from .base import BaseService
from .oauth_service import OAuthService
from .session_service import SessionIdentity, SessionService
from .user_service import UserService

__all__ = [
    "BaseService",
    "OAuthService",
    "SessionIdentity",
    "SessionService",
    "UserService",
]
