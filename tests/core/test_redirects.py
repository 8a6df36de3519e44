"""Redirect allowlist guard."""

from urllib.parse import parse_qs, urlsplit

import pytest

from authgate.core.redirects import ALLOWED_REDIRECT_HOSTS, build_downstream_redirect, ensure_allowed_redirect

ALLOWED = ["archie.averroes.cloud"]


class TestEnsureAllowedRedirect:
    @pytest.mark.parametrize(
        "url",
        [
            "https://archie.averroes.cloud",
            "https://archie.averroes.cloud/app?x=1",
            "http://ARCHIE.averroes.cloud:8443/",
        ],
    )
    def test_accepts_allowlisted_host(self, url):
        assert ensure_allowed_redirect(url, ALLOWED) == url

    @pytest.mark.parametrize(
        "url",
        [
            "https://evil.example",
            "https://archie.averroes.cloud.evil.example",
            "https://evil.example/?next=https://archie.averroes.cloud",
            "https://archie.averroes.cloud@evil.example/",
        ],
    )
    def test_rejects_other_hosts(self, url):
        with pytest.raises(ValueError):
            ensure_allowed_redirect(url, ALLOWED)

    @pytest.mark.parametrize(
        "url",
        ["", "archie.averroes.cloud", "ftp://archie.averroes.cloud", "javascript:alert(1)", "https://", "https://archie.averroes.cloud:99999/"],
    )
    def test_rejects_malformed(self, url):
        with pytest.raises(ValueError):
            ensure_allowed_redirect(url, ALLOWED)

    def test_empty_allowlist_rejects_everything(self):
        with pytest.raises(ValueError):
            ensure_allowed_redirect("https://archie.averroes.cloud", [])

    def test_default_allowlist_is_archie_only(self):
        assert ALLOWED_REDIRECT_HOSTS == ("archie.averroes.cloud",)
        assert ensure_allowed_redirect("https://archie.averroes.cloud/app") == "https://archie.averroes.cloud/app"
        with pytest.raises(ValueError):
            ensure_allowed_redirect("https://app.example.org/")


class TestBuildDownstreamRedirect:
    def test_appends_token_and_encoded_email(self):
        url = build_downstream_redirect("https://archie.averroes.cloud", "tok.en.value", "a+b@example.com")

        parts = urlsplit(url)
        assert parts.netloc == "archie.averroes.cloud"
        query = parse_qs(parts.query)
        assert query["token"] == ["tok.en.value"]
        assert query["user"] == ["a+b@example.com"]
        assert "a%2Bb%40example.com" in parts.query

    def test_keeps_existing_query(self):
        url = build_downstream_redirect("https://archie.averroes.cloud/app?lang=en", "t", "")

        query = parse_qs(urlsplit(url).query, keep_blank_values=True)
        assert query["lang"] == ["en"]
        assert query["user"] == [""]
