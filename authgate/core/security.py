"""
Security primitives - handoff JWT, signed cookie values, admin secret check
"""

import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer
from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from .settings import Settings


def generate_token(length: int = 32) -> str:
    """Random URL-safe token (session ids, OAuth state)."""
    return secrets.token_urlsafe(length)


class TokenClaims(BaseModel):
    """Claims carried by the handoff token"""

    id: int
    email: str
    name: str
    provider: str
    iat: datetime
    exp: datetime


def create_access_token(user: Any, settings: Settings, now: Optional[datetime] = None) -> str:
    """
    Mint the handoff token for the downstream application.

    The claim set is exactly ``{id, email, name, provider, iat, exp}``.
    """
    issued_at = now or datetime.now(timezone.utc)
    expire = issued_at + timedelta(minutes=settings.token_expire_minutes)

    to_encode = {
        "id": user.id,
        "email": user.email or "",
        "name": user.name or "",
        "provider": user.provider,
        "iat": int(issued_at.timestamp()),
        "exp": int(expire.timestamp()),
    }

    return str(jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm))


def decode_access_token(token: str, settings: Settings) -> Optional[TokenClaims]:
    """Verify signature and expiry. Returns None for anything invalid."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return TokenClaims(**payload)
    except (JWTError, ValidationError):
        return None


def check_admin_secret(supplied: Optional[str], expected: str) -> bool:
    """
    Compare the supplied admin secret with the configured one.

    Length is not treated as secret: a length mismatch returns False without
    running the comparison. Equal-length inputs are compared in constant time.
    """
    if not supplied or not expected:
        return False

    supplied_bytes = supplied.encode("utf-8")
    expected_bytes = expected.encode("utf-8")
    if len(supplied_bytes) != len(expected_bytes):
        return False

    return hmac.compare_digest(supplied_bytes, expected_bytes)


def bearer_credential(authorization: Optional[str]) -> Optional[str]:
    """Extract the credential from an ``Authorization: Bearer <x>`` header."""
    if not authorization:
        return None
    scheme, _, credential = authorization.partition(" ")
    if scheme.lower() != "bearer" or not credential:
        return None
    return credential


class CookieSigner:
    """Sign/verify cookie payloads with the session secret (itsdangerous)."""

    def __init__(self, secret: str, salt: str):
        self._serializer = URLSafeTimedSerializer(secret, salt=salt)

    def sign(self, value: str) -> str:
        return str(self._serializer.dumps(value))

    def unsign(self, signed: Optional[str], max_age: int) -> Optional[str]:
        if not signed:
            return None
        try:
            value = self._serializer.loads(signed, max_age=max_age)
        except BadSignature:
            return None
        return value if isinstance(value, str) else None
