"""
Shared fixtures.

- ``settings``: valid configuration pointing at a temporary SQLite file
- ``provider_server``: scripted Google/GitHub endpoints behind httpx.MockTransport
- ``clock``: frozen, manually advanced clock for sessions, tokens and rate limits
- ``client``: TestClient around a fully wired app (lifespan included)
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from authgate.core.database import Database
from authgate.core.oauth.config import PROVIDER_TEMPLATES, OAuthProviderConfig
from authgate.core.oauth.providers.github import GitHubProvider
from authgate.core.oauth.providers.google import GoogleProvider
from authgate.core.settings import Settings
from authgate.main import create_app

JWT_SECRET = "test-jwt-secret"
SESSION_SECRET = "test-session-secret"
ADMIN_SECRET = "test-admin-secret"
DOWNSTREAM_URL = "https://archie.averroes.cloud"


def make_settings(tmp_path, **overrides) -> Settings:
    values: Dict[str, Any] = {
        "jwt_secret": JWT_SECRET,
        "session_secret": SESSION_SECRET,
        "admin_secret": ADMIN_SECRET,
        "downstream_url": DOWNSTREAM_URL,
        "database_url": f"sqlite+aiosqlite:///{tmp_path / 'users.db'}",
        "redis_url": None,
        "cookie_secure": False,
        "debug": False,
        "log_dir": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_provider_config(name: str, **overrides) -> OAuthProviderConfig:
    template = PROVIDER_TEMPLATES[name]
    values: Dict[str, Any] = {
        "name": name,
        "display_name": template["display_name"],
        "client_id": f"{name}-client-id",
        "client_secret": f"{name}-client-secret",
        "callback_url": f"https://averroes.cloud/auth/{name}/callback",
        "authorize_url": template["authorize_url"],
        "token_url": template["token_url"],
        "userinfo_url": template["userinfo_url"],
        "scopes": list(template["scopes"]),
        "userinfo_headers": dict(template.get("userinfo_headers", {})),
        "extra": {"emails_url": template["emails_url"]} if "emails_url" in template else {},
        "template": name,
    }
    values.update(overrides)
    return OAuthProviderConfig(**values)


class FrozenClock:
    """Callable returning an aware UTC datetime; ``time()`` gives the epoch float."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def time(self) -> float:
        return self.now.timestamp()

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeProviderServer:
    """
    Scripted provider endpoints.

    Attributes are mutated by tests to simulate failures.
    """

    def __init__(self):
        self.token_status = 200
        self.token_body: Dict[str, Any] = {"access_token": "provider-access-token", "token_type": "bearer"}
        self.userinfo_status = 200
        self.google_userinfo: Dict[str, Any] = {
            "sub": "g-1001",
            "email": "ada@example.com",
            "name": "Ada Lovelace",
            "picture": "https://lh3.googleusercontent.com/a/ada.png",
        }
        self.github_user: Dict[str, Any] = {
            "id": 4242,
            "login": "octo",
            "name": None,
            "email": None,
            "avatar_url": "https://avatars.githubusercontent.com/u/4242",
        }
        self.github_emails_status = 200
        self.github_emails: List[Dict[str, Any]] = [
            {"email": "octo@users.noreply.github.com", "primary": False, "verified": True},
            {"email": "octo@example.com", "primary": True, "verified": True},
        ]
        # raw body for /user/emails, overriding github_emails
        self.github_emails_raw: Optional[bytes] = None
        self.timeout = False
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.timeout:
            raise httpx.ReadTimeout("provider timed out", request=request)

        host, path = request.url.host, request.url.path
        if (host, path) in (("oauth2.googleapis.com", "/token"), ("github.com", "/login/oauth/access_token")):
            return httpx.Response(self.token_status, json=self.token_body)
        if host == "openidconnect.googleapis.com":
            return httpx.Response(self.userinfo_status, json=self.google_userinfo)
        if host == "api.github.com" and path == "/user":
            return httpx.Response(self.userinfo_status, json=self.github_user)
        if host == "api.github.com" and path == "/user/emails" and self.github_emails_raw is not None:
            return httpx.Response(self.github_emails_status, content=self.github_emails_raw)
        if host == "api.github.com" and path == "/user/emails":
            return httpx.Response(self.github_emails_status, json=self.github_emails)
        return httpx.Response(404, json={"message": "Not Found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def provider_server() -> FakeProviderServer:
    return FakeProviderServer()


@pytest.fixture
def providers(provider_server):
    transport = provider_server.transport
    return {
        "google": GoogleProvider(make_provider_config("google"), transport=transport),
        "github": GitHubProvider(make_provider_config("github"), transport=transport),
    }


@pytest_asyncio.fixture
async def database(settings):
    db = Database(settings.database_url)
    db.connect()
    await db.create_all()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def db_session(database):
    async with database.session() as session:
        yield session


@pytest.fixture
def app(settings, providers, clock):
    return create_app(settings, providers=providers, clock=clock, rate_limit_clock=clock.time)


@pytest.fixture
def client(app):
    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client


@pytest.fixture
def login(client):
    """Run the authorize + callback round trip; returns the callback response."""

    def _login(provider: str = "google", code: str = "auth-code") -> httpx.Response:
        start = client.get(f"/auth/{provider}")
        assert start.status_code == 302
        state = parse_qs(urlsplit(start.headers["location"]).query)["state"][0]
        return client.get(f"/auth/{provider}/callback", params={"code": code, "state": state})

    return _login
