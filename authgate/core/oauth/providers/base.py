"""
Base class for OAuth providers.

A provider knows how to start the authorization-code flow, how to trade a
code for the user's profile, and how to reduce that profile to the
provider-agnostic ``DraftIdentity`` the identity store accepts.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import parse_qsl, urlencode

import httpx
from loguru import logger

from authgate.common.exceptions import ProviderAuthError
from authgate.core.oauth.config import OAuthProviderConfig

LOG_PREFIX = "[OAuthProvider]"


@dataclass
class ProviderProfile:
    """
    Profile as returned by a provider, after light reshaping.

    ``emails`` and ``photos`` are ordered by preference.
    """

    id: Any
    display_name: str = ""
    username: str = ""
    emails: List[str] = field(default_factory=list)
    photos: List[str] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DraftIdentity:
    """Normalized identity, not yet persisted."""

    email: str
    name: str
    provider: str
    provider_id: str
    avatar_url: str


class BaseOAuthProvider(ABC):
    """
    Base class for OAuth providers.

    Subclasses implement ``to_profile`` and may add extra fetches in
    ``_enrich_userinfo``.
    """

    def __init__(
        self,
        config: OAuthProviderConfig,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return self.config.name

    def initiate(self, state: str, scopes: Optional[Iterable[str]] = None) -> str:
        """Authorization URL the browser is redirected to."""
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.callback_url,
            "response_type": "code",
            "scope": " ".join(scopes if scopes is not None else self.config.scopes),
            "state": state,
        }
        return f"{self.config.authorize_url}?{urlencode(params)}"

    async def fetch_profile(self, code: str) -> ProviderProfile:
        """
        code → token → userinfo.

        Raises:
            ProviderAuthError: any provider-side failure, including timeouts
        """
        if not code:
            raise ProviderAuthError(self.name, "missing authorization code")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                access_token = await self._exchange_code(client, code)
                raw = await self._fetch_userinfo(client, access_token)
                raw = await self._enrich_userinfo(client, access_token, raw)
        except (httpx.HTTPError, ValueError) as e:
            # ValueError: undecodable JSON body
            logger.warning(f"{LOG_PREFIX} {self.name} round trip failed: {type(e).__name__}")
            raise ProviderAuthError(self.name, f"provider request failed: {type(e).__name__}") from e

        return self.to_profile(raw)

    @abstractmethod
    def to_profile(self, raw: Dict[str, Any]) -> ProviderProfile:
        """Reshape the provider's userinfo payload."""

    def complete(self, profile: ProviderProfile) -> DraftIdentity:
        """
        Apply the field policy shared by every provider.

        email: first listed address, else the raw ``email`` field, else "".
        name: display name, else username, else "".
        provider_id: subject id as a string.
        avatar_url: first photo, else "".
        """
        provider_id = "" if profile.id is None else str(profile.id).strip()
        if not provider_id:
            raise ProviderAuthError(self.name, "profile has no subject id")

        email = next((e for e in profile.emails if e), "")
        if not email:
            secondary = profile.raw.get("email")
            email = secondary if isinstance(secondary, str) else ""

        return DraftIdentity(
            email=email,
            name=profile.display_name or profile.username or "",
            provider=self.name,
            provider_id=provider_id,
            avatar_url=next((p for p in profile.photos if p), ""),
        )

    async def _exchange_code(self, client: httpx.AsyncClient, code: str) -> str:
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.config.callback_url,
        }
        auth = None
        if self.config.token_endpoint_auth_method == "client_secret_basic":
            auth = httpx.BasicAuth(self.config.client_id, self.config.client_secret)
        else:
            data["client_id"] = self.config.client_id
            data["client_secret"] = self.config.client_secret

        response = await client.post(
            self.config.token_url, data=data, headers={"Accept": "application/json"}, auth=auth
        )
        if response.status_code != 200:
            logger.warning(f"{LOG_PREFIX} {self.name} token exchange failed: {response.status_code}")
            raise ProviderAuthError(self.name, f"token exchange failed: {response.status_code}")

        # GitHub may answer form-encoded
        if "application/json" in response.headers.get("content-type", ""):
            tokens = response.json()
        else:
            tokens = dict(parse_qsl(response.text))

        if tokens.get("error"):
            raise ProviderAuthError(self.name, f"token exchange error: {tokens.get('error')}")

        access_token = tokens.get("access_token")
        if not access_token:
            raise ProviderAuthError(self.name, "no access token in response")
        return str(access_token)

    async def _fetch_userinfo(self, client: httpx.AsyncClient, access_token: str) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {access_token}", **self.config.userinfo_headers}
        response = await client.get(self.config.userinfo_url, headers=headers)
        if response.status_code != 200:
            logger.warning(f"{LOG_PREFIX} {self.name} userinfo fetch failed: {response.status_code}")
            raise ProviderAuthError(self.name, f"userinfo fetch failed: {response.status_code}")
        payload = response.json()
        if not isinstance(payload, dict):
            raise ProviderAuthError(self.name, "userinfo is not an object")
        return payload

    async def _enrich_userinfo(
        self, client: httpx.AsyncClient, access_token: str, raw: Dict[str, Any]
    ) -> Dict[str, Any]:
        return raw

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name}>"
