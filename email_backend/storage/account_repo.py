"""
Credential store: persistence for user accounts.

This module manages account records, including the Google linkage. OAuth
tokens are encrypted before they reach SQLite and decrypted when an account
is loaded, so callers only ever see plain Account models.
"""
import logging
import sqlite3
from datetime import datetime
from typing import Any, Dict, Optional

from email_backend.models import Account
from email_backend.storage import db
from email_backend.storage.encryption import decrypt_text, encrypt_text
from email_backend.utils.errors import BadRequestError, DecryptionError
from email_backend.utils.helpers import new_id


logger = logging.getLogger(__name__)


_FILTER_COLUMNS = ("id", "email", "username", "google_id")

# Patchable model attributes and the column each one is stored in
_PATCH_COLUMNS = {
    "username": "username",
    "email": "email",
    "password_hash": "password_hash",
    "google_id": "google_id",
    "google_access_token": "encrypted_google_access_token",
    "google_refresh_token": "encrypted_google_refresh_token",
    "google_token_expiry": "google_token_expiry",
    "picture": "picture",
    "auth_provider": "auth_provider",
    "role": "role",
    "watch_history_id": "watch_history_id",
    "watch_expiration": "watch_expiration",
}

_ENCRYPTED_FIELDS = ("google_access_token", "google_refresh_token")


def find_account(**filters: Any) -> Optional[Account]:
    """
    Find a single account matching all the given filters.

    Args:
        **filters: Any of id, email, username, google_id. Email is
            matched case-insensitively.

    Returns:
        The matching Account or None.

    Raises:
        ValueError: If no filter or an unsupported filter is given.

    Example:
        >>> find_account(email="bob@example.com")
    """
    if not filters:
        raise ValueError("find_account requires at least one filter")

    clauses = []
    params = []
    for key, value in filters.items():
        if key not in _FILTER_COLUMNS:
            raise ValueError(f"Unsupported account filter: {key}")
        if key == "email":
            clauses.append("LOWER(email) = LOWER(?)")
        else:
            clauses.append(f"{key} = ?")
        params.append(value)

    row = db.fetchone(
        f"SELECT * FROM accounts WHERE {' AND '.join(clauses)}",
        tuple(params)
    )
    if row:
        return _row_to_account(row)
    return None


def get_account(account_id: str) -> Optional[Account]:
    """Get an account by ID."""
    return find_account(id=account_id)


def save(account: Account) -> Account:
    """
    Insert a new account, or overwrite every column of an existing one.

    Args:
        account: The account to persist. A new id is generated when unset.

    Returns:
        The account with its ID and timestamps populated.

    Raises:
        BadRequestError: If the username, email or google_id is already taken.
    """
    now = db.utcnow()
    is_new = account.id is None or get_account(account.id) is None
    if account.id is None:
        account.id = new_id()
    if account.created_at is None:
        account.created_at = now
    account.updated_at = now

    values = (
        account.username,
        account.email,
        account.password_hash,
        account.google_id,
        _encrypt_optional(account.google_access_token),
        _encrypt_optional(account.google_refresh_token),
        db.to_db_datetime(account.google_token_expiry),
        account.picture,
        account.auth_provider,
        account.role,
        account.watch_history_id,
        account.watch_expiration,
        db.to_db_datetime(account.updated_at),
    )

    try:
        if is_new:
            db.execute(
                """
                INSERT INTO accounts (
                    username, email, password_hash, google_id,
                    encrypted_google_access_token, encrypted_google_refresh_token,
                    google_token_expiry, picture, auth_provider, role,
                    watch_history_id, watch_expiration, updated_at,
                    id, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                values + (account.id, db.to_db_datetime(account.created_at))
            )
        else:
            db.execute(
                """
                UPDATE accounts
                SET username = ?, email = ?, password_hash = ?, google_id = ?,
                    encrypted_google_access_token = ?, encrypted_google_refresh_token = ?,
                    google_token_expiry = ?, picture = ?, auth_provider = ?, role = ?,
                    watch_history_id = ?, watch_expiration = ?, updated_at = ?
                WHERE id = ?
                """,
                values + (account.id,)
            )
    except sqlite3.IntegrityError as e:
        raise BadRequestError(f"Account already exists: {str(e)}") from e

    logger.info(f"Saved account {account.id} ({account.email})")
    return account


def update_one(account_id: str, patch: Dict[str, Any]) -> bool:
    """
    Apply a partial update to an account.

    Args:
        account_id: The account ID.
        patch: Mapping of Account attribute names to new values. Token
            values are encrypted; None clears a column.

    Returns:
        True if an account was updated.

    Raises:
        ValueError: If the patch names an unknown attribute.
    """
    if not patch:
        return False

    assignments = []
    params = []
    for key, value in patch.items():
        column = _PATCH_COLUMNS.get(key)
        if column is None:
            raise ValueError(f"Unsupported account field: {key}")
        if key in _ENCRYPTED_FIELDS:
            value = _encrypt_optional(value)
        elif isinstance(value, datetime):
            value = db.to_db_datetime(value)
        assignments.append(f"{column} = ?")
        params.append(value)

    assignments.append("updated_at = ?")
    params.append(db.to_db_datetime(db.utcnow()))
    params.append(account_id)

    cursor = db.execute(
        f"UPDATE accounts SET {', '.join(assignments)} WHERE id = ?",
        tuple(params)
    )
    return cursor.rowcount > 0


def _encrypt_optional(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return encrypt_text(value)


def _decrypt_optional(account_id: str, stored: Optional[str]) -> Optional[str]:
    if not stored:
        return None
    try:
        return decrypt_text(stored)
    except DecryptionError as e:
        logger.warning(f"Could not decrypt stored token for account {account_id}: {e}")
        return None


def _row_to_account(row: sqlite3.Row) -> Account:
    """Convert a database row to an Account model."""
    return Account(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        password_hash=row["password_hash"],
        google_id=row["google_id"],
        google_access_token=_decrypt_optional(row["id"], row["encrypted_google_access_token"]),
        google_refresh_token=_decrypt_optional(row["id"], row["encrypted_google_refresh_token"]),
        google_token_expiry=db.parse_datetime(row["google_token_expiry"]),
        picture=row["picture"],
        auth_provider=row["auth_provider"] or "local",
        role=row["role"] or "user",
        watch_history_id=row["watch_history_id"],
        watch_expiration=row["watch_expiration"],
        created_at=db.parse_datetime(row["created_at"]),
        updated_at=db.parse_datetime(row["updated_at"]),
    )
