"""
Repository for locally stored messages.

Converts between rows of the emails table and EmailMessage models. The
"starred" folder is not a stored value: querying it filters on the flag,
whatever folder the message is in.
"""
import json
import logging
import sqlite3
from dataclasses import asdict
from typing import Any, List, Optional, Tuple

from email_backend.models import FOLDER_STARRED, AttachmentRef, EmailMessage
from email_backend.storage import db
from email_backend.utils.helpers import new_id


logger = logging.getLogger(__name__)


_UPDATABLE_FIELDS = ("is_read", "read_at", "is_starred", "folder", "attachments")


def insert_message(message: EmailMessage) -> EmailMessage:
    """
    Insert a new message.

    Args:
        message: The message to insert. A new id is generated when unset.

    Returns:
        The message with its ID populated.
    """
    if message.id is None:
        message.id = new_id()
    if message.sent_at is None:
        message.sent_at = db.utcnow()

    db.execute(
        """
        INSERT INTO emails (
            id, account_id, sender, recipient, cc, bcc, subject, body,
            html_body, preview, is_read, read_at, is_starred, folder,
            sent_at, in_reply_to, attachments, has_attachments
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            message.id,
            message.account_id,
            message.sender,
            message.to,
            json.dumps(message.cc),
            json.dumps(message.bcc),
            message.subject,
            message.body,
            message.html_body,
            message.preview,
            1 if message.is_read else 0,
            db.to_db_datetime(message.read_at),
            1 if message.is_starred else 0,
            message.folder,
            db.to_db_datetime(message.sent_at),
            message.in_reply_to,
            _dump_attachments(message.attachments),
            1 if message.has_attachments else 0,
        )
    )
    return message


def get_message(message_id: str) -> Optional[EmailMessage]:
    """Get a message by ID, or None if it does not exist."""
    row = db.fetchone("SELECT * FROM emails WHERE id = ?", (message_id,))
    if row:
        return _row_to_message(row)
    return None


def list_messages(account_id: str, folder: str, limit: int = 50, offset: int = 0) -> List[EmailMessage]:
    """
    List an account's messages in a folder, newest first.

    Args:
        account_id: The owning account ID.
        folder: A stored folder name, or "starred" for the flag filter.
        limit: Maximum number of messages to return.
        offset: Number of messages to skip.

    Returns:
        A list of EmailMessage objects.
    """
    where, params = _folder_clause(account_id, folder)
    rows = db.fetchall(
        f"""
        SELECT * FROM emails
        WHERE {where}
        ORDER BY sent_at DESC
        LIMIT ? OFFSET ?
        """,
        params + (limit, offset)
    )
    return [_row_to_message(row) for row in rows]


def count_messages(account_id: str, folder: Optional[str] = None, unread_only: bool = False) -> int:
    """
    Count an account's messages.

    Args:
        account_id: The owning account ID.
        folder: Restrict to this folder ("starred" counts the flag).
        unread_only: Only count unread messages.

    Returns:
        Number of matching messages.
    """
    if folder:
        where, params = _folder_clause(account_id, folder)
    else:
        where, params = "account_id = ?", (account_id,)
    if unread_only:
        where += " AND is_read = 0"

    row = db.fetchone(f"SELECT COUNT(*) as count FROM emails WHERE {where}", params)
    return row["count"] if row else 0


def update_message(message_id: str, **fields: Any) -> bool:
    """
    Update selected fields of a message.

    Args:
        message_id: The message ID.
        **fields: Any of is_read, read_at, is_starred, folder, attachments.

    Returns:
        True if a message was updated.
    """
    assignments = []
    params: List[Any] = []
    for key, value in fields.items():
        if key not in _UPDATABLE_FIELDS:
            raise ValueError(f"Unsupported message field: {key}")
        if key in ("is_read", "is_starred"):
            value = 1 if value else 0
        elif key == "read_at":
            value = db.to_db_datetime(value)
        elif key == "attachments":
            assignments.append("has_attachments = ?")
            params.append(1 if value else 0)
            value = _dump_attachments(value)
        assignments.append(f"{key} = ?")
        params.append(value)

    if not assignments:
        return False

    params.append(message_id)
    cursor = db.execute(
        f"UPDATE emails SET {', '.join(assignments)} WHERE id = ?",
        tuple(params)
    )
    return cursor.rowcount > 0


def delete_message(message_id: str) -> bool:
    """Permanently delete a message. Returns True if a row was removed."""
    cursor = db.execute("DELETE FROM emails WHERE id = ?", (message_id,))
    return cursor.rowcount > 0


def count_referencing_attachment(attachment_id: str) -> int:
    """Count messages whose attachment list still references attachment_id."""
    row = db.fetchone(
        "SELECT COUNT(*) as count FROM emails WHERE attachments LIKE ?",
        (f'%"attachment_id": "{attachment_id}"%',)
    )
    return row["count"] if row else 0


# ============================================================================
# Helper functions for row conversion
# ============================================================================

def _folder_clause(account_id: str, folder: str) -> Tuple[str, Tuple[Any, ...]]:
    if folder == FOLDER_STARRED:
        return "account_id = ? AND is_starred = 1", (account_id,)
    return "account_id = ? AND folder = ?", (account_id, folder)


def _dump_attachments(attachments: List[AttachmentRef]) -> str:
    return json.dumps([asdict(ref) for ref in attachments or []])


def _load_json_list(value: Optional[str]) -> List[Any]:
    if not value:
        return []
    try:
        loaded = json.loads(value)
    except (json.JSONDecodeError, TypeError):
        logger.warning(f"Ignoring malformed JSON column value: {value!r}")
        return []
    return loaded if isinstance(loaded, list) else []


def _row_to_message(row: sqlite3.Row) -> EmailMessage:
    """Convert a database row to an EmailMessage model."""
    attachments = [
        AttachmentRef(**item)
        for item in _load_json_list(row["attachments"])
        if isinstance(item, dict)
    ]
    return EmailMessage(
        id=row["id"],
        account_id=row["account_id"],
        sender=row["sender"] or "",
        to=row["recipient"] or "",
        cc=_load_json_list(row["cc"]),
        bcc=_load_json_list(row["bcc"]),
        subject=row["subject"] or "",
        body=row["body"] or "",
        html_body=row["html_body"],
        preview=row["preview"] or "",
        is_read=bool(row["is_read"]),
        read_at=db.parse_datetime(row["read_at"]),
        is_starred=bool(row["is_starred"]),
        folder=row["folder"],
        sent_at=db.parse_datetime(row["sent_at"]),
        in_reply_to=row["in_reply_to"],
        attachments=attachments,
    )
