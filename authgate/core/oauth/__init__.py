"""
OAuth module.

Module layout:
- config.py: config loader (OAuthProviderConfig, OAuthConfigLoader)
- factory.py: provider registry
- providers/: provider implementations
  - base.py: abstract base class, ProviderProfile, DraftIdentity
  - google.py
  - github.py
"""

from authgate.core.oauth.config import OAuthConfigLoader, OAuthProviderConfig
from authgate.core.oauth.factory import build_providers
from authgate.core.oauth.providers import BaseOAuthProvider, DraftIdentity, ProviderProfile

__all__ = [
    "OAuthConfigLoader",
    "OAuthProviderConfig",
    "build_providers",
    "BaseOAuthProvider",
    "DraftIdentity",
    "ProviderProfile",
]
