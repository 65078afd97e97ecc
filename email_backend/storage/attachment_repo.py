"""
Repository for attachment metadata.
"""
import sqlite3
from typing import List, Optional

from email_backend.models import Attachment
from email_backend.storage import db
from email_backend.utils.helpers import new_id


def insert_attachment(attachment: Attachment) -> Attachment:
    """
    Insert attachment metadata (and inline content, for database storage).

    Returns:
        The attachment with its ID populated.
    """
    if attachment.id is None:
        attachment.id = new_id()
    if attachment.uploaded_at is None:
        attachment.uploaded_at = db.utcnow()

    db.execute(
        """
        INSERT INTO attachments (
            id, email_id, filename, original_name, mime_type, size,
            s3_key, s3_bucket, storage_type, file_content, uploaded_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            attachment.id,
            attachment.email_id,
            attachment.filename,
            attachment.original_name,
            attachment.mime_type,
            attachment.size,
            attachment.s3_key,
            attachment.s3_bucket,
            attachment.storage_type,
            attachment.file_content,
            db.to_db_datetime(attachment.uploaded_at),
        )
    )
    return attachment


def get_attachment(attachment_id: str) -> Optional[Attachment]:
    row = db.fetchone("SELECT * FROM attachments WHERE id = ?", (attachment_id,))
    if row:
        return _row_to_attachment(row)
    return None


def list_for_email(email_id: str) -> List[Attachment]:
    """List the attachments currently linked to a message."""
    rows = db.fetchall(
        "SELECT * FROM attachments WHERE email_id = ? ORDER BY uploaded_at",
        (email_id,)
    )
    return [_row_to_attachment(row) for row in rows]


def set_email_id(attachment_id: str, email_id: Optional[str]) -> bool:
    """Point an attachment at its owning message. Returns True if it exists."""
    cursor = db.execute(
        "UPDATE attachments SET email_id = ? WHERE id = ?",
        (email_id, attachment_id)
    )
    return cursor.rowcount > 0


def delete_attachment(attachment_id: str) -> bool:
    cursor = db.execute("DELETE FROM attachments WHERE id = ?", (attachment_id,))
    return cursor.rowcount > 0


def _row_to_attachment(row: sqlite3.Row) -> Attachment:
    """Convert a database row to an Attachment model."""
    return Attachment(
        id=row["id"],
        email_id=row["email_id"],
        filename=row["filename"],
        original_name=row["original_name"],
        mime_type=row["mime_type"] or "application/octet-stream",
        size=row["size"] or 0,
        s3_key=row["s3_key"] or "",
        s3_bucket=row["s3_bucket"] or "",
        storage_type=row["storage_type"],
        file_content=row["file_content"],
        uploaded_at=db.parse_datetime(row["uploaded_at"]),
    )
