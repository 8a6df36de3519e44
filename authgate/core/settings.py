"""
Application settings.

Every value comes from the environment (or ``.env``). Secrets have no
defaults: a missing or blank secret, or a downstream URL that is not on the
redirect allowlist, makes ``load_settings`` raise ``ConfigurationError`` and
the process refuses to start.
"""

import os
from pathlib import Path
from typing import Dict, List, Optional, Union

from dotenv import dotenv_values
from pydantic import AliasChoices, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from authgate.common.exceptions import ConfigurationError
from authgate.core.redirects import ensure_allowed_redirect

BASE_DIR = Path(__file__).resolve().parent.parent.parent
ENV_FILE = BASE_DIR / ".env"

DEFAULT_CSP_DIRECTIVES: Dict[str, List[str]] = {
    "default-src": ["'self'"],
    "script-src": ["'self'", "'unsafe-inline'", "https://accounts.google.com", "https://apis.google.com"],
    "style-src": ["'self'", "'unsafe-inline'"],
    "font-src": ["'self'"],
    "img-src": ["'self'", "data:", "https://lh3.googleusercontent.com", "https://avatars.githubusercontent.com"],
    "connect-src": ["'self'", "wss://archie.averroes.cloud"],
    "frame-src": ["https://accounts.google.com"],
    "object-src": ["'none'"],
    "base-uri": ["'self'"],
    "form-action": ["'self'", "https://accounts.google.com", "https://github.com"],
    "upgrade-insecure-requests": [],
}

DEFAULT_PERMISSIONS_POLICY: Dict[str, List[str]] = {
    "camera": [],
    "microphone": [],
    "geolocation": [],
    "payment": [],
}


class Settings(BaseSettings):
    """Gateway configuration"""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # App
    app_name: str = Field(default="authgate", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    debug: bool = Field(
        default=False,
        validation_alias=AliasChoices("DEBUG", "APP_DEBUG"),
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("LOG_LEVEL", "APP_LOG_LEVEL"),
        description="Minimum loguru level"
    )
    log_dir: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("LOG_DIR"),
        description="Directory for rotated log files; console only when unset"
    )

    # Server
    host: str = Field(
        default="0.0.0.0",
        validation_alias=AliasChoices("HOST", "SERVER_HOST"),
        description="Bind address"
    )
    port: int = Field(
        default=3001,
        validation_alias=AliasChoices("PORT", "SERVER_PORT"),
        description="Bind port"
    )

    # Secrets (required)
    jwt_secret: str = Field(
        ...,
        validation_alias=AliasChoices("JWT_SECRET", "JWT_SECRET_KEY"),
        description="HMAC secret used to sign handoff tokens"
    )
    session_secret: str = Field(
        ...,
        validation_alias=AliasChoices("SESSION_SECRET", "SESSION_SECRET_KEY"),
        description="Secret used to sign the session and OAuth state cookies"
    )
    admin_secret: str = Field(
        ...,
        validation_alias=AliasChoices("ADMIN_PASSWORD", "ADMIN_SECRET"),
        description="Shared bearer secret for /admin endpoints"
    )

    # Token
    jwt_algorithm: str = Field(
        default="HS256",
        validation_alias=AliasChoices("JWT_ALGORITHM"),
        description="JWT signing algorithm"
    )
    token_expire_minutes: int = Field(
        default=60 * 24,
        gt=0,
        validation_alias=AliasChoices("TOKEN_EXPIRE_MINUTES", "JWT_EXPIRE_MINUTES"),
        description="Lifetime of minted tokens in minutes"
    )

    # Downstream application
    downstream_url: str = Field(
        default="https://archie.averroes.cloud",
        validation_alias=AliasChoices("DOWNSTREAM_URL", "ARCHIE_URL"),
        description="Application that receives the token after login"
    )

    # Session cookie
    session_cookie_name: str = Field(
        default="authgate_session",
        validation_alias=AliasChoices("SESSION_COOKIE_NAME"),
        description="Session cookie name"
    )
    session_max_age_seconds: int = Field(
        default=24 * 60 * 60,
        gt=0,
        validation_alias=AliasChoices("SESSION_MAX_AGE_SECONDS"),
        description="Absolute session lifetime"
    )
    cookie_secure: bool = Field(
        default=True,
        validation_alias=AliasChoices("COOKIE_SECURE", "SESSION_COOKIE_SECURE"),
        description="Set the Secure flag on cookies (disable only for plain-HTTP development)"
    )

    # Storage
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/users.db",
        validation_alias=AliasChoices("DATABASE_URL", "DB_URL"),
        description="SQLAlchemy async database URL"
    )
    database_echo: bool = Field(
        default=False,
        validation_alias=AliasChoices("DATABASE_ECHO", "DB_ECHO", "SQL_ECHO"),
        description="Enable SQL query logging"
    )
    redis_url: Optional[str] = Field(
        default=None,
        validation_alias="REDIS_URL",
        description="Redis URL for shared rate-limit counters"
    )
    redis_pool_size: int = Field(
        default=10,
        validation_alias=AliasChoices("REDIS_POOL_SIZE"),
        description="Redis connection pool size"
    )

    # OAuth
    oauth_config_path: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("OAUTH_CONFIG_PATH"),
        description="Path to oauth_providers.yaml"
    )
    oauth_http_timeout: float = Field(
        default=10.0,
        gt=0,
        validation_alias=AliasChoices("OAUTH_HTTP_TIMEOUT"),
        description="Timeout in seconds for provider round trips"
    )

    # Request limits
    max_body_bytes: int = Field(
        default=1024,
        gt=0,
        validation_alias=AliasChoices("MAX_BODY_BYTES"),
        description="Largest accepted request body"
    )
    trusted_proxy_hops: int = Field(
        default=1,
        ge=0,
        validation_alias=AliasChoices("TRUSTED_PROXY_HOPS", "TRUST_PROXY"),
        description="Number of reverse proxies whose X-Forwarded-For entries are trusted"
    )

    # Rate limiting
    rate_limit_global_max: int = Field(default=100, gt=0, validation_alias="RATE_LIMIT_GLOBAL_MAX")
    rate_limit_global_window_seconds: int = Field(
        default=15 * 60, gt=0, validation_alias="RATE_LIMIT_GLOBAL_WINDOW_SECONDS"
    )
    rate_limit_auth_max: int = Field(default=20, gt=0, validation_alias="RATE_LIMIT_AUTH_MAX")
    rate_limit_auth_window_seconds: int = Field(
        default=15 * 60, gt=0, validation_alias="RATE_LIMIT_AUTH_WINDOW_SECONDS"
    )
    rate_limit_admin_max: int = Field(default=5, gt=0, validation_alias="RATE_LIMIT_ADMIN_MAX")
    rate_limit_admin_window_seconds: int = Field(
        default=15 * 60, gt=0, validation_alias="RATE_LIMIT_ADMIN_WINDOW_SECONDS"
    )

    # Security headers
    csp_directives: Dict[str, List[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_CSP_DIRECTIVES.items()},
        validation_alias=AliasChoices("CSP_DIRECTIVES"),
        description="Content-Security-Policy as directive -> allowed sources (JSON)"
    )
    permissions_policy: Dict[str, List[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_PERMISSIONS_POLICY.items()},
        validation_alias=AliasChoices("PERMISSIONS_POLICY"),
        description="Permissions-Policy as feature -> allow-list (JSON)"
    )
    hsts_max_age_seconds: int = Field(
        default=31536000,
        ge=0,
        validation_alias=AliasChoices("HSTS_MAX_AGE_SECONDS"),
        description="Strict-Transport-Security max-age"
    )

    @field_validator("jwt_secret", "session_secret", "admin_secret")
    @classmethod
    def secret_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must be set to a non-empty value")
        return v

    @model_validator(mode="after")
    def check_downstream_url(self) -> "Settings":
        ensure_allowed_redirect(self.downstream_url)
        return self


def load_settings(**overrides) -> Settings:
    """
    Build and validate settings.

    Raises:
        ConfigurationError: a secret is missing or the downstream URL is rejected.
            Only field names are reported, never values.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        problems = []
        for err in e.errors():
            field_path = ".".join(str(x) for x in err.get("loc", ())) or "settings"
            problems.append(f"{field_path}: {err.get('msg')}")
        raise ConfigurationError("Invalid configuration: " + "; ".join(problems)) from None


def load_environ(env_file: Optional[Union[str, Path]] = ENV_FILE) -> Dict[str, str]:
    """
    ``.env`` values overlaid by the process environment.

    ``Settings`` reads ``.env`` without exporting it, so values only referenced
    from ``config/oauth_providers.yaml`` (provider credentials) are resolved
    against this mapping instead of ``os.environ``.
    """
    environ: Dict[str, str] = {}
    if env_file and Path(env_file).is_file():
        environ.update({k: v for k, v in dotenv_values(env_file, encoding="utf-8").items() if v is not None})
    environ.update(os.environ)
    return environ
