"""
OAuth providers.

Implemented:
- GoogleProvider: OpenID Connect userinfo
- GitHubProvider: /user plus /user/emails
"""

from authgate.core.oauth.providers.base import BaseOAuthProvider, DraftIdentity, ProviderProfile
from authgate.core.oauth.providers.github import GitHubProvider
from authgate.core.oauth.providers.google import GoogleProvider

__all__ = [
    "BaseOAuthProvider",
    "DraftIdentity",
    "ProviderProfile",
    "GitHubProvider",
    "GoogleProvider",
]
