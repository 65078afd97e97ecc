"""
Account authentication: registration, login, token refresh and Google sign-in.

Local accounts authenticate with an email and password. Google sign-in finds
the account by Google id, links an existing local account with the same
email, or creates a new one, and stores the Google tokens (encrypted) so the
Gmail provider can use them.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from email_backend.auth import passwords, tokens
from email_backend.auth.oauth import GoogleProfile, TokenBundle
from email_backend.models import Account, RefreshToken
from email_backend.storage import account_repo, db, token_repo
from email_backend.utils.errors import BadRequestError, NotFoundError, UnauthorizedError
from email_backend.utils.helpers import validate_email


logger = logging.getLogger(__name__)


AUTH_PROVIDER_LOCAL = "local"
AUTH_PROVIDER_GOOGLE = "google"


@dataclass(slots=True)
class AuthResult:
    """Tokens issued on login."""
    access_token: str
    refresh_token: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None


@dataclass(slots=True)
class UserInfo:
    username: str
    email: str
    role: str
    picture: Optional[str] = None


class AuthService:

    def register_user(self, username: str, email: str, password: str) -> Account:
        """
        Create a local account.

        Raises:
            BadRequestError: If a field is missing or invalid, or the email
                or username is already in use.
        """
        username = (username or "").strip()
        email = (email or "").strip()
        if not username:
            raise BadRequestError("Username is required")
        if not validate_email(email):
            raise BadRequestError("A valid email is required")
        if not password:
            raise BadRequestError("Password is required")

        if account_repo.find_account(email=email):
            raise BadRequestError("The email is already in use")
        if account_repo.find_account(username=username):
            raise BadRequestError("Username already exists")

        account = account_repo.save(Account(
            username=username,
            email=email,
            password_hash=passwords.hash_password(password),
            auth_provider=AUTH_PROVIDER_LOCAL,
            role="user",
        ))
        logger.info(f"Registered user {account.id} ({account.email})")
        return account

    def login_user(self, email: str, password: str) -> AuthResult:
        """
        Authenticate with email and password.

        Raises:
            NotFoundError: If no account has this email.
            BadRequestError: If the password does not match.
        """
        account = account_repo.find_account(email=(email or "").strip())
        if account is None:
            raise NotFoundError("User not found")
        if not passwords.verify_password(password, account.password_hash):
            logger.warning(f"Failed login for account {account.id}")
            raise BadRequestError("Invalid email or password")

        result = self._issue_tokens(account)
        logger.info(f"User {account.id} logged in")
        return result

    def refresh_token(self, token: str, rotate: bool = False) -> AuthResult:
        """
        Issue a new access token for a refresh token.

        Args:
            token: The opaque refresh token.
            rotate: Replace the refresh token with a new one.

        Raises:
            UnauthorizedError: If the token is unknown or expired. Expired
                tokens are deleted.
            NotFoundError: If the token's account no longer exists.
        """
        stored = token_repo.find_token(token) if token else None
        if stored is None:
            raise UnauthorizedError("Invalid refresh token")

        if stored.expires_at is None or db.utcnow() > stored.expires_at:
            token_repo.delete_token(stored.token)
            raise UnauthorizedError("Refresh token expired")

        account = account_repo.get_account(stored.account_id)
        if account is None:
            raise NotFoundError("User not found")

        result = AuthResult(access_token=tokens.create_access_token(account))
        if rotate:
            token_repo.delete_token(stored.token)
            result.refresh_token = self._store_refresh_token(account)
            logger.info(f"Rotated refresh token for account {account.id}")
        return result

    def verify_access_token(self, token: str) -> Dict[str, Any]:
        return tokens.verify_access_token(token)

    def logout(self, account_id: str) -> int:
        """Revoke every refresh token of the account. Returns how many were removed."""
        removed = token_repo.delete_for_account(account_id)
        logger.info(f"Logged out account {account_id} ({removed} refresh token(s) revoked)")
        return removed

    def get_user_info(self, account_id: str) -> UserInfo:
        account = account_repo.get_account(account_id)
        if account is None:
            raise NotFoundError("User not found")
        return UserInfo(
            username=account.username,
            email=account.email,
            role=account.role or "user",
            picture=account.picture,
        )

    def find_or_create_google_user(self, profile: GoogleProfile, bundle: TokenBundle) -> AuthResult:
        """
        Sign in with Google.

        The account is matched by Google id first, then by email (linking a
        local account), and created otherwise. The access token, expiry and
        picture are always updated; the refresh token only when Google sent
        one.
        """
        account = account_repo.find_account(google_id=profile.google_id)

        if account is None:
            account = account_repo.find_account(email=profile.email)
            if account is not None:
                account.google_id = profile.google_id
                account.auth_provider = AUTH_PROVIDER_GOOGLE
                logger.info(f"Linking Google account to existing account {account.id}")
            else:
                account = Account(
                    username=_google_username(profile),
                    email=profile.email,
                    google_id=profile.google_id,
                    auth_provider=AUTH_PROVIDER_GOOGLE,
                    role="user",
                )
                logger.info(f"Creating account for Google user {profile.email}")

        account.google_access_token = bundle.access_token
        account.google_token_expiry = bundle.expires_at
        account.picture = profile.picture
        if bundle.refresh_token:
            account.google_refresh_token = bundle.refresh_token

        account = account_repo.save(account)
        return self._issue_tokens(account)

    def _issue_tokens(self, account: Account) -> AuthResult:
        return AuthResult(
            access_token=tokens.create_access_token(account),
            refresh_token=self._store_refresh_token(account),
            email=account.email,
            username=account.username,
        )

    def _store_refresh_token(self, account: Account) -> str:
        value = tokens.generate_refresh_token()
        token_repo.insert_token(RefreshToken(
            token=value,
            account_id=account.id,
            expires_at=tokens.refresh_token_expiry(),
        ))
        return value


def _google_username(profile: GoogleProfile) -> str:
    parts = [part.lower() for part in (profile.first_name, profile.last_name) if part]
    if not parts:
        parts = [profile.email.split("@")[0].lower()]
    parts.append(str(int(time.time() * 1000)))
    return "_".join(parts)
