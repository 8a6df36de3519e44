"""
OAuth provider config loader.

Loads provider configs from YAML with support for:
- built-in provider templates (Google, GitHub)
- env var expansion ``${VAR_NAME}`` and ``${VAR_NAME:-default}``
- silent omission of providers whose credentials are not set
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from loguru import logger

LOG_PREFIX = "[OAuthConfig]"

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent.parent.parent / "config" / "oauth_providers.yaml"

# ==================== Built-in Provider Templates ====================
# Users only need client_id/client_secret (and usually callback_url)

PROVIDER_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "google": {
        "display_name": "Google",
        "authorize_url": "https://accounts.google.com/o/oauth2/v2/auth",
        "token_url": "https://oauth2.googleapis.com/token",
        "userinfo_url": "https://openidconnect.googleapis.com/v1/userinfo",
        "scopes": ["profile", "email"],
        "token_endpoint_auth_method": "client_secret_post",
    },
    "github": {
        "display_name": "GitHub",
        "authorize_url": "https://github.com/login/oauth/authorize",
        "token_url": "https://github.com/login/oauth/access_token",
        "userinfo_url": "https://api.github.com/user",
        "emails_url": "https://api.github.com/user/emails",
        "scopes": ["user:email"],
        "token_endpoint_auth_method": "client_secret_post",
        "userinfo_headers": {"Accept": "application/vnd.github+json"},
    },
}

_KNOWN_KEYS = {
    "enabled",
    "template",
    "display_name",
    "client_id",
    "client_secret",
    "callback_url",
    "authorize_url",
    "token_url",
    "userinfo_url",
    "scopes",
    "token_endpoint_auth_method",
    "userinfo_headers",
}

_ENV_PATTERN = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")


@dataclass
class OAuthProviderConfig:
    """Single OAuth provider config."""

    name: str  # Provider tag (e.g. "github"); stored in users.provider
    display_name: str
    client_id: str
    client_secret: str
    callback_url: str
    authorize_url: str
    token_url: str
    userinfo_url: str
    scopes: List[str] = field(default_factory=list)
    token_endpoint_auth_method: str = "client_secret_post"
    userinfo_headers: Dict[str, str] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)
    template: str = ""


class OAuthConfigLoader:
    """OAuth config loader."""

    def __init__(self, config_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None):
        self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        # ${VAR} lookups; the process environment unless given
        self.environ = os.environ if environ is None else environ
        self._providers: Dict[str, OAuthProviderConfig] = {}
        self._loaded: bool = False

    def load(self, force_reload: bool = False) -> None:
        """
        Load the config file.

        A missing or empty file yields no providers. A malformed provider entry
        is logged and skipped; the rest still load.
        """
        if self._loaded and not force_reload:
            return

        self._providers.clear()

        if not self.config_path.exists():
            logger.warning(f"{LOG_PREFIX} Config file not found: {self.config_path}")
            self._loaded = True
            return

        with open(self.config_path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)

        if not raw:
            logger.warning(f"{LOG_PREFIX} Config file is empty: {self.config_path}")
            self._loaded = True
            return

        for name, config in (raw.get("providers") or {}).items():
            if not config.get("enabled", True):
                logger.debug(f"{LOG_PREFIX} Provider '{name}' is disabled, skipping")
                continue

            try:
                provider = self._parse_provider(name, config)
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"{LOG_PREFIX} Failed to load provider '{name}': {e}")
                continue

            if provider:
                self._providers[name] = provider
                logger.info(f"{LOG_PREFIX} Loaded provider: {name}")

        self._loaded = True
        logger.info(f"{LOG_PREFIX} Loaded {len(self._providers)} OAuth providers")

    def _parse_provider(self, name: str, config: Dict[str, Any]) -> Optional[OAuthProviderConfig]:
        """Parse a single provider config."""
        config = self._expand_env_vars(config)

        template_name = config.get("template", name)
        template = PROVIDER_TEMPLATES.get(template_name, {})

        # User config overrides template
        merged = {**template, **config}

        client_id = str(merged.get("client_id") or "").strip()
        client_secret = str(merged.get("client_secret") or "").strip()

        if not client_id or not client_secret:
            logger.info(f"{LOG_PREFIX} Provider '{name}' has no credentials, not enabling it")
            return None

        callback_url = str(merged.get("callback_url") or "").strip()
        if not callback_url:
            raise ValueError("callback_url is required")

        scopes = merged.get("scopes", [])
        if isinstance(scopes, str):
            scopes = scopes.split()

        return OAuthProviderConfig(
            name=name,
            display_name=merged.get("display_name", name.capitalize()),
            client_id=client_id,
            client_secret=client_secret,
            callback_url=callback_url,
            authorize_url=merged["authorize_url"],
            token_url=merged["token_url"],
            userinfo_url=merged["userinfo_url"],
            scopes=list(scopes),
            token_endpoint_auth_method=merged.get("token_endpoint_auth_method", "client_secret_post"),
            userinfo_headers=dict(merged.get("userinfo_headers") or {}),
            extra={k: v for k, v in merged.items() if k not in _KNOWN_KEYS},
            template=template_name,
        )

    def _expand_env_vars(self, obj: Any) -> Any:
        """Recursively replace ${VAR} / ${VAR:-default} from ``self.environ``."""
        if isinstance(obj, str):
            return _ENV_PATTERN.sub(lambda m: self.environ.get(m.group(1)) or (m.group(2) or ""), obj)
        elif isinstance(obj, dict):
            return {k: self._expand_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [self._expand_env_vars(i) for i in obj]
        return obj

    def get_provider(self, name: str) -> Optional[OAuthProviderConfig]:
        self.load()
        return self._providers.get(name)

    def get_all_providers(self) -> Dict[str, OAuthProviderConfig]:
        self.load()
        return self._providers.copy()
