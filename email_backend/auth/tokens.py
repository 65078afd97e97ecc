"""
Access and refresh tokens.

Access tokens are short-lived JWTs signed with config.JWT_SECRET. Refresh
tokens are opaque random strings kept in the refresh_tokens table.
"""
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from email_backend import config
from email_backend.models import Account
from email_backend.utils.errors import UnauthorizedError


REFRESH_TOKEN_BYTES = 40


def create_access_token(account: Account, now: Optional[datetime] = None) -> str:
    """Sign a JWT carrying the account's id, email, username and role."""
    now = now or datetime.now(timezone.utc)
    payload = {
        "user_id": account.id,
        "email": account.email,
        "username": account.username,
        "role": account.role or "user",
        "iat": now,
        "exp": now + timedelta(minutes=config.ACCESS_TOKEN_MINUTES),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def verify_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate an access token.

    Returns:
        The token claims.

    Raises:
        UnauthorizedError: If the token is expired, tampered with or malformed.
    """
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise UnauthorizedError("Access token expired") from e
    except jwt.InvalidTokenError as e:
        raise UnauthorizedError("Invalid access token") from e


def generate_refresh_token() -> str:
    """80 hex characters of randomness."""
    return secrets.token_hex(REFRESH_TOKEN_BYTES)


def refresh_token_expiry(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now + timedelta(days=config.REFRESH_TOKEN_EXPIRY_DAYS)
