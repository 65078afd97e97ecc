"""
Repository for opaque refresh tokens issued at login.
"""
import sqlite3
from typing import Optional

from email_backend.models import RefreshToken
from email_backend.storage import db
from email_backend.utils.helpers import new_id


def insert_token(token: RefreshToken) -> RefreshToken:
    if token.id is None:
        token.id = new_id()
    db.execute(
        "INSERT INTO refresh_tokens (id, token, account_id, expires_at) VALUES (?, ?, ?, ?)",
        (token.id, token.token, token.account_id, db.to_db_datetime(token.expires_at))
    )
    return token


def find_token(token: str) -> Optional[RefreshToken]:
    row = db.fetchone("SELECT * FROM refresh_tokens WHERE token = ?", (token,))
    if row:
        return _row_to_token(row)
    return None


def delete_token(token: str) -> bool:
    cursor = db.execute("DELETE FROM refresh_tokens WHERE token = ?", (token,))
    return cursor.rowcount > 0


def delete_for_account(account_id: str) -> int:
    """Delete every refresh token of an account. Returns how many were removed."""
    cursor = db.execute("DELETE FROM refresh_tokens WHERE account_id = ?", (account_id,))
    return cursor.rowcount


def _row_to_token(row: sqlite3.Row) -> RefreshToken:
    return RefreshToken(
        id=row["id"],
        token=row["token"],
        account_id=row["account_id"],
        expires_at=db.parse_datetime(row["expires_at"]),
    )
