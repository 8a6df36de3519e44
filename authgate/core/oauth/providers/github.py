"""
GitHub.

``/user`` often has ``email: null`` (private address), so the address list
comes from ``/user/emails`` when the ``user:email`` scope was granted.
"""

from typing import Any, Dict, List

import httpx
from loguru import logger

from authgate.core.oauth.providers.base import BaseOAuthProvider, ProviderProfile

LOG_PREFIX = "[GitHubProvider]"

DEFAULT_EMAILS_URL = "https://api.github.com/user/emails"


class GitHubProvider(BaseOAuthProvider):
    """Userinfo shape: ``id`` (int), ``login``, ``name``, ``email``, ``avatar_url``."""

    async def _enrich_userinfo(
        self, client: httpx.AsyncClient, access_token: str, raw: Dict[str, Any]
    ) -> Dict[str, Any]:
        emails_url = self.config.extra.get("emails_url", DEFAULT_EMAILS_URL)
        response = await client.get(
            emails_url,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/vnd.github+json",
            },
        )
        if response.status_code != 200:
            # Not fatal: the login proceeds with the /user email, or none
            logger.info(f"{LOG_PREFIX} /user/emails unavailable: {response.status_code}")
            return raw

        try:
            entries = response.json()
        except ValueError:
            logger.info(f"{LOG_PREFIX} /user/emails returned a non-JSON body")
            return raw

        if isinstance(entries, list):
            raw = {**raw, "emails": self._order_emails(entries)}
        return raw

    @staticmethod
    def _order_emails(entries: List[Any]) -> List[str]:
        """Primary first, then verified, then the rest; API order within each group."""
        usable = [e for e in entries if isinstance(e, dict) and e.get("email")]
        ranked = sorted(
            enumerate(usable),
            key=lambda item: (not item[1].get("primary"), not item[1].get("verified"), item[0]),
        )
        return [entry["email"] for _, entry in ranked]

    def to_profile(self, raw: Dict[str, Any]) -> ProviderProfile:
        avatar = raw.get("avatar_url")
        return ProviderProfile(
            id=raw.get("id"),
            display_name=raw.get("name") or "",
            username=raw.get("login") or "",
            emails=list(raw.get("emails") or []),
            photos=[avatar] if avatar else [],
            raw=raw,
        )
