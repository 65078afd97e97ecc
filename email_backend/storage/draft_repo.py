"""
Repository for drafts saved by users.
"""
import sqlite3
from typing import Any, List, Optional

from email_backend.models import Draft
from email_backend.storage import db
from email_backend.utils.helpers import new_id


_UPDATABLE_FIELDS = {
    "to": "recipient",
    "subject": "subject",
    "body": "body",
    "cc": "cc",
    "bcc": "bcc",
    "reply_to": "reply_to",
}


def insert_draft(draft: Draft) -> Draft:
    now = db.utcnow()
    if draft.id is None:
        draft.id = new_id()
    draft.created_at = draft.created_at or now
    draft.updated_at = now

    db.execute(
        """
        INSERT INTO drafts (
            id, account_id, recipient, subject, body, cc, bcc, reply_to,
            created_at, updated_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            draft.id,
            draft.account_id,
            draft.to,
            draft.subject,
            draft.body,
            draft.cc,
            draft.bcc,
            draft.reply_to,
            db.to_db_datetime(draft.created_at),
            db.to_db_datetime(draft.updated_at),
        )
    )
    return draft


def get_draft(draft_id: str, account_id: str) -> Optional[Draft]:
    """Get a draft by ID, scoped to its owner."""
    row = db.fetchone(
        "SELECT * FROM drafts WHERE id = ? AND account_id = ?",
        (draft_id, account_id)
    )
    if row:
        return _row_to_draft(row)
    return None


def list_drafts(account_id: str) -> List[Draft]:
    """List an account's drafts, most recently updated first."""
    rows = db.fetchall(
        "SELECT * FROM drafts WHERE account_id = ? ORDER BY updated_at DESC",
        (account_id,)
    )
    return [_row_to_draft(row) for row in rows]


def update_draft(draft_id: str, account_id: str, **fields: Any) -> bool:
    """
    Update selected fields of a draft and bump its updated_at.

    Returns:
        True if the draft exists and belongs to account_id.
    """
    assignments = []
    params: List[Any] = []
    for key, value in fields.items():
        column = _UPDATABLE_FIELDS.get(key)
        if column is None:
            raise ValueError(f"Unsupported draft field: {key}")
        assignments.append(f"{column} = ?")
        params.append(value)

    assignments.append("updated_at = ?")
    params.append(db.to_db_datetime(db.utcnow()))
    params.extend([draft_id, account_id])

    cursor = db.execute(
        f"UPDATE drafts SET {', '.join(assignments)} WHERE id = ? AND account_id = ?",
        tuple(params)
    )
    return cursor.rowcount > 0


def delete_draft(draft_id: str, account_id: str) -> bool:
    cursor = db.execute(
        "DELETE FROM drafts WHERE id = ? AND account_id = ?",
        (draft_id, account_id)
    )
    return cursor.rowcount > 0


def _row_to_draft(row: sqlite3.Row) -> Draft:
    """Convert a database row to a Draft model."""
    return Draft(
        id=row["id"],
        account_id=row["account_id"],
        to=row["recipient"],
        subject=row["subject"],
        body=row["body"],
        cc=row["cc"],
        bcc=row["bcc"],
        reply_to=row["reply_to"],
        created_at=db.parse_datetime(row["created_at"]),
        updated_at=db.parse_datetime(row["updated_at"]),
    )
