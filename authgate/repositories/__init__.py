from .auth_session import AuthSessionRepository
from .base import BaseRepository
from .user import UserRepository

__all__ = ["AuthSessionRepository", "BaseRepository", "UserRepository"]
