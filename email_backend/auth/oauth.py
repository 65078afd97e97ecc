"""
Google OAuth2 handling.

This module builds the consent URL, exchanges authorization codes for
tokens, refreshes access tokens and fetches the Google profile of the
signed-in user. Consent itself happens in the user's browser; callers pass
the code Google redirects back with.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import requests
from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from email_backend import config
from email_backend.utils.errors import OAuthError, TokenRefreshError


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TokenBundle:
    """Container for OAuth2 tokens."""
    access_token: str
    refresh_token: Optional[str]
    expires_at: datetime


@dataclass(slots=True)
class GoogleProfile:
    """The parts of a Google profile the backend keeps."""
    google_id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    picture: Optional[str] = None


class GoogleOAuthProvider:
    """OAuth2 provider for Google/Gmail accounts (web server flow)."""

    AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

    # Identity scopes requested alongside the Gmail scopes
    PROFILE_SCOPES = [
        "openid",
        "https://www.googleapis.com/auth/userinfo.email",
        "https://www.googleapis.com/auth/userinfo.profile",
    ]

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        scopes: Optional[List[str]] = None,
        timeout: int = 10,
    ):
        """
        Initialize the Google OAuth provider.

        Args:
            client_id: OAuth client ID (defaults to config.GOOGLE_CLIENT_ID).
            client_secret: OAuth client secret (defaults to config.GOOGLE_CLIENT_SECRET).
            redirect_uri: Callback URL registered with Google.
            scopes: Scopes to request (defaults to profile plus Gmail scopes).
            timeout: Timeout in seconds for the userinfo request.

        Raises:
            OAuthError: If the client ID or secret is missing.
        """
        self.client_id = client_id or config.GOOGLE_CLIENT_ID
        self.client_secret = client_secret or config.GOOGLE_CLIENT_SECRET
        self.redirect_uri = redirect_uri or config.GOOGLE_CALLBACK_URL
        self.scopes = scopes or self.PROFILE_SCOPES + config.GMAIL_SCOPES
        self.timeout = timeout

        if not self.client_id or not self.client_secret:
            raise OAuthError("Google OAuth client ID and secret must be configured")

    def _client_config(self) -> Dict[str, Any]:
        return {
            "web": {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": self.AUTH_URI,
                "token_uri": config.GOOGLE_TOKEN_URI,
                "redirect_uris": [self.redirect_uri],
            }
        }

    def _flow(self) -> Flow:
        return Flow.from_client_config(
            self._client_config(),
            scopes=self.scopes,
            redirect_uri=self.redirect_uri,
            # consent and code exchange happen in separate requests
            autogenerate_code_verifier=False,
        )

    def get_authorization_url(self, state: str) -> str:
        """
        Generate the Google consent URL.

        Offline access with a forced consent prompt, so Google returns a
        refresh token.
        """
        auth_url, _ = self._flow().authorization_url(
            access_type="offline",
            prompt="consent",
            state=state,
        )
        return auth_url

    def exchange_code_for_tokens(self, code: str) -> TokenBundle:
        """
        Exchange an authorization code for tokens.

        Raises:
            OAuthError: If the exchange fails or yields no access token.
        """
        flow = self._flow()
        try:
            flow.fetch_token(code=code)
        except Exception as e:
            # oauthlib raises a variety of error types here
            logger.error(f"Google code exchange failed: {e}")
            raise OAuthError(f"Token exchange failed: {e}") from e

        credentials = flow.credentials
        if not credentials or not credentials.token:
            raise OAuthError("Token exchange failed: no access token in credentials")
        return _bundle_from_credentials(credentials)

    def refresh_tokens(self, refresh_token: str) -> TokenBundle:
        """
        Refresh an access token.

        Google does not always return a new refresh token; the old one is
        kept in that case.

        Raises:
            TokenRefreshError: If the refresh fails.
        """
        if not refresh_token:
            raise TokenRefreshError("No refresh token available")

        credentials = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=config.GOOGLE_TOKEN_URI,
            client_id=self.client_id,
            client_secret=self.client_secret,
            scopes=self.scopes,
        )
        try:
            credentials.refresh(Request())
        except RefreshError as e:
            logger.error(f"Google token refresh failed: {e}")
            raise TokenRefreshError(f"Token refresh failed: {e}") from e

        bundle = _bundle_from_credentials(credentials)
        bundle.refresh_token = bundle.refresh_token or refresh_token
        return bundle

    def fetch_profile(self, access_token: str) -> GoogleProfile:
        """
        Fetch the user's profile from Google's userinfo API.

        Raises:
            OAuthError: If the request fails or the profile has no email.
        """
        try:
            response = requests.get(
                self.USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Error fetching user info from Google: {e}")
            raise OAuthError(f"Could not fetch Google profile: {e}") from e

        if response.status_code != 200:
            logger.error(f"Failed to fetch user info: HTTP {response.status_code} - {response.text}")
            raise OAuthError(f"Could not fetch Google profile: HTTP {response.status_code}")

        info = response.json()
        email = (info.get("email") or "").strip()
        if not email:
            raise OAuthError("Google profile has no email address")

        return GoogleProfile(
            google_id=str(info.get("id", "")),
            email=email,
            first_name=(info.get("given_name") or "").strip(),
            last_name=(info.get("family_name") or "").strip(),
            picture=info.get("picture"),
        )


def _bundle_from_credentials(credentials: Credentials) -> TokenBundle:
    # google-auth keeps expiry as naive UTC
    if credentials.expiry is not None:
        expires_at = credentials.expiry.replace(tzinfo=timezone.utc)
    else:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=3600)
    return TokenBundle(
        access_token=credentials.token,
        refresh_token=credentials.refresh_token,
        expires_at=expires_at,
    )
