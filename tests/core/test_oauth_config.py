"""Provider config loading and the provider registry."""

import textwrap

import pytest

from authgate.core.oauth.config import OAuthConfigLoader
from authgate.core.oauth.factory import build_providers
from authgate.core.oauth.providers.github import GitHubProvider
from authgate.core.oauth.providers.google import GoogleProvider
from authgate.core.settings import load_environ, load_settings


def write_config(tmp_path, body: str):
    path = tmp_path / "oauth_providers.yaml"
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return str(path)


@pytest.fixture
def oauth_env(monkeypatch):
    monkeypatch.setenv("TEST_GOOGLE_ID", "google-id")
    monkeypatch.setenv("TEST_GOOGLE_SECRET", "google-secret")
    monkeypatch.delenv("TEST_GITHUB_ID", raising=False)
    monkeypatch.delenv("TEST_GITHUB_SECRET", raising=False)
    monkeypatch.delenv("TEST_GOOGLE_CALLBACK", raising=False)


class TestOAuthConfigLoader:
    def test_expands_env_and_applies_template(self, tmp_path, oauth_env):
        path = write_config(
            tmp_path,
            """
            providers:
              google:
                client_id: ${TEST_GOOGLE_ID}
                client_secret: ${TEST_GOOGLE_SECRET}
                callback_url: ${TEST_GOOGLE_CALLBACK:-https://averroes.cloud/auth/google/callback}
            """,
        )

        config = OAuthConfigLoader(path).get_provider("google")

        assert config is not None
        assert config.client_id == "google-id"
        assert config.callback_url == "https://averroes.cloud/auth/google/callback"
        assert config.authorize_url == "https://accounts.google.com/o/oauth2/v2/auth"
        assert config.scopes == ["profile", "email"]
        assert config.template == "google"

    def test_provider_without_credentials_is_omitted(self, tmp_path, oauth_env):
        path = write_config(
            tmp_path,
            """
            providers:
              google:
                client_id: ${TEST_GOOGLE_ID}
                client_secret: ${TEST_GOOGLE_SECRET}
                callback_url: https://averroes.cloud/auth/google/callback
              github:
                client_id: ${TEST_GITHUB_ID}
                client_secret: ${TEST_GITHUB_SECRET}
                callback_url: https://averroes.cloud/auth/github/callback
            """,
        )

        assert set(OAuthConfigLoader(path).get_all_providers()) == {"google"}

    def test_disabled_and_broken_entries_are_skipped(self, tmp_path, oauth_env):
        path = write_config(
            tmp_path,
            """
            providers:
              google:
                enabled: false
                client_id: a
                client_secret: b
                callback_url: https://averroes.cloud/auth/google/callback
              github:
                client_id: a
                client_secret: b
            """,
        )

        assert OAuthConfigLoader(path).get_all_providers() == {}

    def test_missing_file_yields_no_providers(self, tmp_path):
        assert OAuthConfigLoader(str(tmp_path / "absent.yaml")).get_all_providers() == {}

    def test_string_scopes_are_split(self, tmp_path):
        path = write_config(
            tmp_path,
            """
            providers:
              github:
                client_id: a
                client_secret: b
                callback_url: https://averroes.cloud/auth/github/callback
                scopes: "read:user user:email"
            """,
        )

        assert OAuthConfigLoader(path).get_provider("github").scopes == ["read:user", "user:email"]

    def test_shipped_config_parses(self, monkeypatch):
        for var in ("GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "GITHUB_CLIENT_ID", "GITHUB_CLIENT_SECRET"):
            monkeypatch.setenv(var, f"{var.lower()}-value")
        monkeypatch.delenv("GITHUB_CALLBACK_URL", raising=False)

        providers = OAuthConfigLoader().get_all_providers()

        assert set(providers) == {"google", "github"}
        assert providers["github"].callback_url == "https://averroes.cloud/auth/github/callback"


class TestBuildProviders:
    def test_instantiates_by_template(self, tmp_path):
        path = write_config(
            tmp_path,
            """
            providers:
              google:
                client_id: a
                client_secret: b
                callback_url: https://averroes.cloud/auth/google/callback
              github:
                client_id: c
                client_secret: d
                callback_url: https://averroes.cloud/auth/github/callback
              gitlab:
                client_id: e
                client_secret: f
                callback_url: https://averroes.cloud/auth/gitlab/callback
                authorize_url: https://gitlab.com/oauth/authorize
                token_url: https://gitlab.com/oauth/token
                userinfo_url: https://gitlab.com/api/v4/user
            """,
        )

        providers = build_providers(OAuthConfigLoader(path), timeout=3.0)

        assert isinstance(providers["google"], GoogleProvider)
        assert isinstance(providers["github"], GitHubProvider)
        assert providers["google"].timeout == 3.0
        # no provider class for gitlab
        assert "gitlab" not in providers


class TestDotenvCredentials:
    """Provider credentials kept in ``.env`` next to the secrets."""

    @pytest.fixture
    def env_file(self, tmp_path, monkeypatch):
        for var in (
            "JWT_SECRET",
            "SESSION_SECRET",
            "ADMIN_PASSWORD",
            "GOOGLE_CLIENT_ID",
            "GOOGLE_CLIENT_SECRET",
            "GOOGLE_CALLBACK_URL",
            "GITHUB_CLIENT_ID",
            "GITHUB_CLIENT_SECRET",
        ):
            monkeypatch.delenv(var, raising=False)
        path = tmp_path / ".env"
        path.write_text(
            textwrap.dedent(
                """
                JWT_SECRET=j
                SESSION_SECRET=s
                ADMIN_PASSWORD=a
                GOOGLE_CLIENT_ID=gid
                GOOGLE_CLIENT_SECRET=gsecret
                """
            ),
            encoding="utf-8",
        )
        return path

    def test_providers_built_from_dotenv(self, env_file):
        settings = load_settings(_env_file=env_file)

        loader = OAuthConfigLoader(settings.oauth_config_path, environ=load_environ(env_file))
        providers = build_providers(loader)

        assert settings.jwt_secret == "j"
        assert set(providers) == {"google"}
        assert providers["google"].config.client_id == "gid"
        assert providers["google"].config.callback_url == "https://averroes.cloud/auth/google/callback"

    def test_process_environment_wins(self, env_file, monkeypatch):
        monkeypatch.setenv("GOOGLE_CLIENT_ID", "from-process")

        assert load_environ(env_file)["GOOGLE_CLIENT_ID"] == "from-process"

    def test_missing_env_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GITHUB_CLIENT_ID", "only-process")

        environ = load_environ(tmp_path / "absent.env")

        assert environ["GITHUB_CLIENT_ID"] == "only-process"
        assert "GOOGLE_CLIENT_SECRET" not in environ
