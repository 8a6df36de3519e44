"""Handoff tokens, admin secret comparison, signed cookie values."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from jose import jwt

from authgate.core.security import (
    CookieSigner,
    bearer_credential,
    check_admin_secret,
    create_access_token,
    decode_access_token,
)


@pytest.fixture
def user():
    return SimpleNamespace(id=7, email="ada@example.com", name="Ada", provider="google", provider_id="g-1")


class TestAccessToken:
    def test_claim_set_is_exact(self, user, settings):
        token = create_access_token(user, settings)

        claims = jwt.get_unverified_claims(token)
        assert set(claims) == {"id", "email", "name", "provider", "iat", "exp"}
        assert claims["id"] == 7
        assert claims["provider"] == "google"
        assert "provider_id" not in claims

    def test_lifetime_is_24_hours(self, user, settings):
        now = datetime.now(timezone.utc).replace(microsecond=0)
        token = create_access_token(user, settings, now=now)

        claims = jwt.get_unverified_claims(token)
        assert claims["exp"] - claims["iat"] == 24 * 60 * 60

    def test_round_trip(self, user, settings):
        claims = decode_access_token(create_access_token(user, settings), settings)

        assert claims is not None
        assert claims.email == "ada@example.com"
        assert claims.name == "Ada"

    def test_expired_token_is_rejected(self, user, settings):
        issued = datetime.now(timezone.utc) - timedelta(hours=25)

        assert decode_access_token(create_access_token(user, settings, now=issued), settings) is None

    def test_wrong_secret_is_rejected(self, user, settings):
        token = create_access_token(user, settings)
        other = settings.model_copy(update={"jwt_secret": "another-secret"})

        assert decode_access_token(token, other) is None

    def test_tampered_token_is_rejected(self, user, settings):
        header, payload, signature = create_access_token(user, settings).split(".")
        forged = jwt.encode({"id": 1, "email": "x", "name": "x", "provider": "google"}, "guess")
        forged_payload = forged.split(".")[1]

        assert decode_access_token(f"{header}.{forged_payload}.{signature}", settings) is None

    def test_empty_email_is_allowed(self, settings):
        user = SimpleNamespace(id=3, email="", name="", provider="github")

        claims = decode_access_token(create_access_token(user, settings), settings)

        assert claims is not None
        assert claims.email == ""


class TestCheckAdminSecret:
    def test_match(self):
        assert check_admin_secret("s3cret-value", "s3cret-value") is True

    @pytest.mark.parametrize("supplied", [None, "", "s3cret-valuX", "short", "s3cret-value-longer"])
    def test_mismatch(self, supplied):
        assert check_admin_secret(supplied, "s3cret-value") is False

    def test_empty_expected_never_matches(self):
        assert check_admin_secret("", "") is False

    def test_length_mismatch_skips_comparison(self):
        with patch("authgate.core.security.hmac.compare_digest") as compare:
            assert check_admin_secret("abc", "abcd") is False
            compare.assert_not_called()

    def test_equal_length_uses_constant_time_compare(self):
        with patch("authgate.core.security.hmac.compare_digest", return_value=False) as compare:
            assert check_admin_secret("abcd", "abce") is False
            compare.assert_called_once_with(b"abcd", b"abce")


class TestBearerCredential:
    @pytest.mark.parametrize(
        "header, expected",
        [
            ("Bearer abc", "abc"),
            ("bearer abc", "abc"),
            ("Basic abc", None),
            ("Bearer", None),
            ("", None),
            (None, None),
        ],
    )
    def test_parse(self, header, expected):
        assert bearer_credential(header) == expected


class TestCookieSigner:
    def test_sign_and_unsign(self):
        signer = CookieSigner("secret", salt="test")

        assert signer.unsign(signer.sign("value"), max_age=60) == "value"

    def test_other_secret_or_salt_fails(self):
        signed = CookieSigner("secret", salt="test").sign("value")

        assert CookieSigner("other", salt="test").unsign(signed, max_age=60) is None
        assert CookieSigner("secret", salt="other").unsign(signed, max_age=60) is None

    def test_garbage_fails(self):
        signer = CookieSigner("secret", salt="test")

        assert signer.unsign("not-a-signed-value", max_age=60) is None
        assert signer.unsign(None, max_age=60) is None
