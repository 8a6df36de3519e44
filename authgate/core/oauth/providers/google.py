"""
Google (OpenID Connect userinfo).
"""

from typing import Any, Dict

from authgate.core.oauth.providers.base import BaseOAuthProvider, ProviderProfile


class GoogleProvider(BaseOAuthProvider):
    """Userinfo shape: ``sub``, ``email``, ``name``, ``picture``."""

    def to_profile(self, raw: Dict[str, Any]) -> ProviderProfile:
        email = raw.get("email")
        picture = raw.get("picture")
        return ProviderProfile(
            id=raw.get("sub", raw.get("id")),
            display_name=raw.get("name") or "",
            emails=[email] if email else [],
            photos=[picture] if picture else [],
            raw=raw,
        )
