"""
SQLite database connection and schema management.

This module provides a simple, synchronous interface for SQLite database
operations with connection management and schema initialization. It backs
the credential store, the local mailbox, attachment metadata, refresh tokens
and drafts.
"""
import sqlite3
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from email_backend import config


def get_connection() -> sqlite3.Connection:
    """
    Get a SQLite database connection.

    Returns:
        A sqlite3.Connection with row_factory set to sqlite3.Row.

    Note:
        The connection should be closed by the caller when done.
    """
    config.SQLITE_DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(config.SQLITE_DB_PATH, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    return conn


def init_db() -> None:
    """
    Initialize the database schema.

    Creates all required tables and indexes if they don't exist.
    """
    conn = get_connection()
    try:
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS accounts (
                id TEXT PRIMARY KEY,
                username TEXT NOT NULL UNIQUE,
                email TEXT NOT NULL UNIQUE,
                password_hash TEXT,
                google_id TEXT UNIQUE,
                encrypted_google_access_token TEXT,
                encrypted_google_refresh_token TEXT,
                google_token_expiry TIMESTAMP,
                picture TEXT,
                auth_provider TEXT NOT NULL DEFAULT 'local',
                role TEXT NOT NULL DEFAULT 'user',
                watch_history_id TEXT,
                watch_expiration TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # cc, bcc and attachments are JSON arrays
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS emails (
                id TEXT PRIMARY KEY,
                account_id TEXT NOT NULL,
                sender TEXT NOT NULL,
                recipient TEXT NOT NULL,
                cc TEXT,
                bcc TEXT,
                subject TEXT NOT NULL,
                body TEXT NOT NULL,
                html_body TEXT,
                preview TEXT NOT NULL,
                is_read INTEGER DEFAULT 0,
                read_at TIMESTAMP,
                is_starred INTEGER DEFAULT 0,
                folder TEXT NOT NULL,
                sent_at TIMESTAMP NOT NULL,
                in_reply_to TEXT,
                attachments TEXT,
                has_attachments INTEGER DEFAULT 0,
                FOREIGN KEY (account_id) REFERENCES accounts(id) ON DELETE CASCADE
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS attachments (
                id TEXT PRIMARY KEY,
                email_id TEXT,
                filename TEXT NOT NULL,
                original_name TEXT NOT NULL,
                mime_type TEXT NOT NULL,
                size INTEGER NOT NULL,
                s3_key TEXT NOT NULL,
                s3_bucket TEXT NOT NULL,
                storage_type TEXT NOT NULL,
                file_content TEXT,
                uploaded_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS refresh_tokens (
                id TEXT PRIMARY KEY,
                token TEXT NOT NULL UNIQUE,
                account_id TEXT NOT NULL,
                expires_at TIMESTAMP NOT NULL,
                FOREIGN KEY (account_id) REFERENCES accounts(id) ON DELETE CASCADE
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS drafts (
                id TEXT PRIMARY KEY,
                account_id TEXT NOT NULL,
                recipient TEXT NOT NULL,
                subject TEXT NOT NULL,
                body TEXT NOT NULL,
                cc TEXT,
                bcc TEXT,
                reply_to TEXT,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL,
                FOREIGN KEY (account_id) REFERENCES accounts(id) ON DELETE CASCADE
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_emails_account_folder
            ON emails(account_id, folder, sent_at)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_emails_account_read
            ON emails(account_id, is_read)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_emails_account_starred
            ON emails(account_id, is_starred)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_attachments_email
            ON attachments(email_id)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_refresh_tokens_account
            ON refresh_tokens(account_id)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_drafts_account_updated
            ON drafts(account_id, updated_at)
        """)

        conn.commit()
    finally:
        conn.close()


def execute(query: str, params: Tuple[Any, ...] = ()) -> sqlite3.Cursor:
    """
    Execute a SQL query and return the cursor.

    Args:
        query: SQL query string.
        params: Query parameters.

    Returns:
        The cursor object (useful for rowcount).
    """
    conn = get_connection()
    try:
        cursor = conn.cursor()
        cursor.execute(query, params)
        conn.commit()
        return cursor
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchall(query: str, params: Tuple[Any, ...] = ()) -> List[sqlite3.Row]:
    """
    Execute a SELECT query and return all rows.

    Example:
        >>> rows = fetchall("SELECT * FROM emails WHERE account_id = ?", (account_id,))
        >>> for row in rows:
        ...     print(row["subject"])
    """
    conn = get_connection()
    try:
        cursor = conn.cursor()
        cursor.execute(query, params)
        return cursor.fetchall()
    finally:
        conn.close()


def fetchone(query: str, params: Tuple[Any, ...] = ()) -> Optional[sqlite3.Row]:
    """
    Execute a SELECT query and return the first row.

    Returns:
        A Row object (sqlite3.Row) or None if no rows found.
    """
    conn = get_connection()
    try:
        cursor = conn.cursor()
        cursor.execute(query, params)
        return cursor.fetchone()
    finally:
        conn.close()


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_db_datetime(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime so that stored values sort chronologically as text."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_datetime(dt_str: Optional[str]) -> Optional[datetime]:
    """Parse a datetime string from the database."""
    if not dt_str:
        return None

    try:
        return datetime.fromisoformat(dt_str.replace('Z', '+00:00'))
    except (ValueError, AttributeError):
        try:
            # SQLite CURRENT_TIMESTAMP format
            return datetime.strptime(dt_str, '%Y-%m-%d %H:%M:%S').replace(tzinfo=timezone.utc)
        except (ValueError, AttributeError):
            return None
