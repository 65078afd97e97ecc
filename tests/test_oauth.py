"""Tests for the Google OAuth helper."""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import pytest
import requests
from google.auth.exceptions import RefreshError

from email_backend.auth.oauth import GoogleOAuthProvider
from email_backend.utils.errors import OAuthError, TokenRefreshError


@pytest.fixture
def oauth():
    return GoogleOAuthProvider(client_id="client-id", client_secret="client-secret",
                               redirect_uri="http://localhost:3000/auth/google/callback")


def test_requires_client_credentials():
    with pytest.raises(OAuthError):
        GoogleOAuthProvider()


def test_authorization_url(oauth):
    url = oauth.get_authorization_url("state-123")

    query = parse_qs(urlparse(url).query)
    assert url.startswith("https://accounts.google.com/o/oauth2/auth")
    assert query["client_id"] == ["client-id"]
    assert query["state"] == ["state-123"]
    assert query["access_type"] == ["offline"]
    assert query["prompt"] == ["consent"]
    assert "https://www.googleapis.com/auth/gmail.modify" in query["scope"][0]


class TestCodeExchange:
    def test_exchange(self, oauth):
        with patch("email_backend.auth.oauth.Flow") as flow_cls:
            flow = flow_cls.from_client_config.return_value
            flow.credentials = SimpleNamespace(
                token="access", refresh_token="refresh", expiry=datetime(2030, 1, 1, 12, 0),
            )

            bundle = oauth.exchange_code_for_tokens("auth-code")

        flow.fetch_token.assert_called_once_with(code="auth-code")
        assert bundle.access_token == "access"
        assert bundle.refresh_token == "refresh"
        assert bundle.expires_at == datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_exchange_failure(self, oauth):
        with patch("email_backend.auth.oauth.Flow") as flow_cls:
            flow_cls.from_client_config.return_value.fetch_token.side_effect = ValueError("invalid_grant")
            with pytest.raises(OAuthError, match="invalid_grant"):
                oauth.exchange_code_for_tokens("bad-code")

    def test_exchange_without_token(self, oauth):
        with patch("email_backend.auth.oauth.Flow") as flow_cls:
            flow_cls.from_client_config.return_value.credentials = SimpleNamespace(
                token=None, refresh_token=None, expiry=None,
            )
            with pytest.raises(OAuthError):
                oauth.exchange_code_for_tokens("auth-code")


class TestRefresh:
    def test_refresh_keeps_old_refresh_token(self, oauth):
        with patch("email_backend.auth.oauth.Credentials") as credentials_cls:
            credentials = credentials_cls.return_value
            credentials.token = "new-access"
            credentials.refresh_token = None
            credentials.expiry = datetime(2030, 1, 1)

            bundle = oauth.refresh_tokens("old-refresh")

        credentials.refresh.assert_called_once()
        assert credentials_cls.call_args.kwargs["refresh_token"] == "old-refresh"
        assert bundle.access_token == "new-access"
        assert bundle.refresh_token == "old-refresh"

    def test_refresh_rejected(self, oauth):
        with patch("email_backend.auth.oauth.Credentials") as credentials_cls:
            credentials_cls.return_value.refresh.side_effect = RefreshError("invalid_grant")
            with pytest.raises(TokenRefreshError):
                oauth.refresh_tokens("revoked")

    def test_refresh_without_token(self, oauth):
        with pytest.raises(TokenRefreshError):
            oauth.refresh_tokens("")


class TestProfile:
    def test_fetch_profile(self, oauth):
        response = MagicMock(status_code=200)
        response.json.return_value = {
            "id": "1234",
            "email": " carol@gmail.com ",
            "given_name": "Carol",
            "family_name": "Smith",
            "picture": "https://pic",
        }
        with patch("email_backend.auth.oauth.requests.get", return_value=response) as get:
            profile = oauth.fetch_profile("access")

        assert get.call_args.kwargs["headers"] == {"Authorization": "Bearer access"}
        assert get.call_args.kwargs["timeout"] == 10
        assert profile.google_id == "1234"
        assert profile.email == "carol@gmail.com"
        assert (profile.first_name, profile.last_name) == ("Carol", "Smith")

    def test_http_error(self, oauth):
        response = MagicMock(status_code=401, text="unauthorized")
        with patch("email_backend.auth.oauth.requests.get", return_value=response):
            with pytest.raises(OAuthError, match="401"):
                oauth.fetch_profile("expired")

    def test_connection_error(self, oauth):
        with patch("email_backend.auth.oauth.requests.get", side_effect=requests.ConnectionError("down")):
            with pytest.raises(OAuthError):
                oauth.fetch_profile("access")

    def test_profile_without_email(self, oauth):
        response = MagicMock(status_code=200)
        response.json.return_value = {"id": "1234"}
        with patch("email_backend.auth.oauth.requests.get", return_value=response):
            with pytest.raises(OAuthError, match="no email"):
                oauth.fetch_profile("access")
