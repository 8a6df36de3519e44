"""
Provider registry factory.

Turns loaded provider configs into provider instances. Only providers with
credentials appear in the result, so a lookup miss means "not configured".

Usage:
    providers = build_providers(OAuthConfigLoader(path), timeout=10.0)
    provider = providers.get("github")
"""

from typing import Dict, Optional, Type

import httpx
from loguru import logger

from authgate.core.oauth.config import OAuthConfigLoader
from authgate.core.oauth.providers.base import BaseOAuthProvider
from authgate.core.oauth.providers.github import GitHubProvider
from authgate.core.oauth.providers.google import GoogleProvider

LOG_PREFIX = "[OAuthFactory]"

# Template name -> provider class
_PROVIDER_CLASSES: Dict[str, Type[BaseOAuthProvider]] = {
    "google": GoogleProvider,
    "github": GitHubProvider,
}


def build_providers(
    loader: OAuthConfigLoader,
    timeout: float = 10.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, BaseOAuthProvider]:
    """
    Instantiate every configured provider.

    Args:
        loader: Config loader
        timeout: HTTP timeout for provider round trips
        transport: Optional httpx transport (tests)

    Returns:
        Provider tag -> provider instance
    """
    providers: Dict[str, BaseOAuthProvider] = {}
    for name, config in loader.get_all_providers().items():
        provider_class = _PROVIDER_CLASSES.get(config.template)
        if provider_class is None:
            logger.warning(f"{LOG_PREFIX} No provider implementation for '{name}' (template '{config.template}')")
            continue
        providers[name] = provider_class(config, timeout=timeout, transport=transport)
        logger.debug(f"{LOG_PREFIX} Created provider: {name}")
    return providers
