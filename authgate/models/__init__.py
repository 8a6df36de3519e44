from authgate.models.auth_session import AuthSession
from authgate.models.user import User

__all__ = ["AuthSession", "User"]
