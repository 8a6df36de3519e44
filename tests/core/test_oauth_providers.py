"""Provider round trips against scripted endpoints."""

from urllib.parse import parse_qs, urlsplit

import pytest

from authgate.common.exceptions import ProviderAuthError
from authgate.core.oauth.providers.base import ProviderProfile
from authgate.core.oauth.providers.github import GitHubProvider


class TestInitiate:
    def test_authorization_url(self, providers):
        url = providers["google"].initiate("state-123")

        parts = urlsplit(url)
        query = parse_qs(parts.query)
        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "https://accounts.google.com/o/oauth2/v2/auth"
        assert query["client_id"] == ["google-client-id"]
        assert query["redirect_uri"] == ["https://averroes.cloud/auth/google/callback"]
        assert query["response_type"] == ["code"]
        assert query["scope"] == ["profile email"]
        assert query["state"] == ["state-123"]

    def test_explicit_scopes(self, providers):
        query = parse_qs(urlsplit(providers["github"].initiate("s", scopes=["read:user"])).query)

        assert query["scope"] == ["read:user"]


class TestGoogleProvider:
    @pytest.mark.asyncio
    async def test_fetch_and_complete(self, providers, provider_server):
        provider = providers["google"]

        draft = provider.complete(await provider.fetch_profile("code-1"))

        assert draft.provider == "google"
        assert draft.provider_id == "g-1001"
        assert draft.email == "ada@example.com"
        assert draft.name == "Ada Lovelace"
        assert draft.avatar_url.endswith("/ada.png")

        token_request = provider_server.requests[0]
        form = parse_qs(token_request.content.decode())
        assert form["code"] == ["code-1"]
        assert form["client_secret"] == ["google-client-secret"]
        userinfo_request = provider_server.requests[1]
        assert userinfo_request.headers["Authorization"] == "Bearer provider-access-token"

    @pytest.mark.asyncio
    async def test_token_endpoint_failure(self, providers, provider_server):
        provider_server.token_status = 400

        with pytest.raises(ProviderAuthError):
            await providers["google"].fetch_profile("bad-code")

    @pytest.mark.asyncio
    async def test_token_error_body(self, providers, provider_server):
        provider_server.token_body = {"error": "bad_verification_code"}

        with pytest.raises(ProviderAuthError, match="bad_verification_code"):
            await providers["google"].fetch_profile("bad-code")

    @pytest.mark.asyncio
    async def test_userinfo_failure(self, providers, provider_server):
        provider_server.userinfo_status = 401

        with pytest.raises(ProviderAuthError):
            await providers["google"].fetch_profile("code")

    @pytest.mark.asyncio
    async def test_timeout_is_provider_failure(self, providers, provider_server):
        provider_server.timeout = True

        with pytest.raises(ProviderAuthError):
            await providers["google"].fetch_profile("code")

    @pytest.mark.asyncio
    async def test_missing_code(self, providers, provider_server):
        with pytest.raises(ProviderAuthError):
            await providers["google"].fetch_profile("")
        assert provider_server.requests == []


class TestGitHubProvider:
    @pytest.mark.asyncio
    async def test_private_email_comes_from_emails_endpoint(self, providers):
        provider = providers["github"]

        draft = provider.complete(await provider.fetch_profile("code"))

        assert draft.provider_id == "4242"
        assert isinstance(draft.provider_id, str)
        # primary address first
        assert draft.email == "octo@example.com"
        # no display name: falls back to the login
        assert draft.name == "octo"
        assert draft.avatar_url == "https://avatars.githubusercontent.com/u/4242"

    @pytest.mark.asyncio
    async def test_emails_endpoint_failure_is_not_fatal(self, providers, provider_server):
        provider_server.github_emails_status = 403
        provider_server.github_user["email"] = "public@example.com"

        draft = providers["github"].complete(await providers["github"].fetch_profile("code"))

        assert draft.email == "public@example.com"

    @pytest.mark.asyncio
    async def test_emails_endpoint_non_json_is_not_fatal(self, providers, provider_server):
        provider_server.github_emails_raw = b"<html>rate limited</html>"
        provider_server.github_user["email"] = "public@example.com"

        draft = providers["github"].complete(await providers["github"].fetch_profile("code"))

        assert draft.email == "public@example.com"
        assert draft.provider_id == "4242"

    @pytest.mark.asyncio
    async def test_no_email_anywhere(self, providers, provider_server):
        provider_server.github_emails_status = 404

        draft = providers["github"].complete(await providers["github"].fetch_profile("code"))

        assert draft.email == ""

    def test_email_ordering(self):
        ordered = GitHubProvider._order_emails(
            [
                {"email": "c@example.com", "primary": False, "verified": False},
                {"email": "b@example.com", "primary": False, "verified": True},
                {"email": "a@example.com", "primary": True, "verified": True},
                {"primary": True},
            ]
        )

        assert ordered == ["a@example.com", "b@example.com", "c@example.com"]


class TestCompletePolicy:
    @pytest.fixture
    def provider(self, providers):
        return providers["google"]

    def test_missing_subject_id(self, provider):
        with pytest.raises(ProviderAuthError):
            provider.complete(ProviderProfile(id=None, display_name="x"))

    def test_blank_subject_id(self, provider):
        with pytest.raises(ProviderAuthError):
            provider.complete(ProviderProfile(id="  "))

    def test_email_falls_back_to_raw_field(self, provider):
        draft = provider.complete(ProviderProfile(id=1, emails=[], raw={"email": "raw@example.com"}))

        assert draft.email == "raw@example.com"

    def test_name_fallbacks(self, provider):
        assert provider.complete(ProviderProfile(id=1, display_name="", username="user")).name == "user"
        assert provider.complete(ProviderProfile(id=1)).name == ""

    def test_numeric_id_becomes_string(self, provider):
        assert provider.complete(ProviderProfile(id=123)).provider_id == "123"
