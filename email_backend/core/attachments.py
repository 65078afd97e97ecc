"""
Attachment subsystem.

Attachments are uploaded before the message that carries them exists, so
the metadata record starts without an owning message and is linked after
send. Content goes to object storage when the store reports itself
available, otherwise it is kept inline (base64) in the database, subject to
a size cap.
"""
import base64
import binascii
import logging
import sqlite3
from typing import Iterable, List, Optional, Sequence, Tuple

from email_backend import config
from email_backend.models import (
    STORAGE_DATABASE,
    STORAGE_S3,
    Attachment,
    AttachmentRef,
    EmailMessage,
    OutgoingAttachment,
)
from email_backend.storage import attachment_repo, message_repo
from email_backend.storage.object_store import S3ObjectStore
from email_backend.utils.errors import (
    BadRequestError,
    EmailBackendError,
    NotFoundError,
    UnavailableError,
)
from email_backend.utils.helpers import format_file_size, new_id, sanitize_filename


logger = logging.getLogger(__name__)


DATABASE_BUCKET = "database"
DEFAULT_MIME_TYPE = "application/octet-stream"


class AttachmentService:
    """Upload, fetch, link and delete attachments."""

    def __init__(self, object_store: Optional[S3ObjectStore] = None):
        """
        Args:
            object_store: Store for attachment content. Anything with the
                S3ObjectStore interface works; None means inline storage only.
        """
        self._store = object_store

    def _store_available(self) -> bool:
        return self._store is not None and self._store.is_available()

    def upload(
        self,
        content: Optional[bytes],
        filename: str,
        mime_type: Optional[str] = None,
        size: Optional[int] = None,
        email_id: Optional[str] = None,
    ) -> AttachmentRef:
        """
        Store an attachment and record its metadata.

        Args:
            content: Raw file bytes.
            filename: Original file name as given by the client.
            mime_type: Content type; defaults to application/octet-stream.
            size: Declared size. It must match the content length when given.
            email_id: Owning message, if it already exists.

        Returns:
            The stored attachment's reference.

        Raises:
            BadRequestError: If content or filename is missing, or the file
                exceeds the inline limit while object storage is unavailable,
                or the declared size does not match the content.
        """
        if content is None:
            raise BadRequestError("No file provided")
        if len(content) == 0:
            raise BadRequestError("Empty file provided")
        if not filename:
            raise BadRequestError("File must have a name")

        if size is not None and size != len(content):
            raise BadRequestError(f"Declared size {size} does not match the {len(content)} bytes received")
        size = len(content)
        mime_type = mime_type or DEFAULT_MIME_TYPE
        use_store = self._store_available()

        if not use_store and size > config.MAX_INLINE_ATTACHMENT_BYTES:
            raise BadRequestError(
                f"File too large. Maximum size is "
                f"{format_file_size(config.MAX_INLINE_ATTACHMENT_BYTES)} when object storage is not configured."
            )

        stored_name = f"{new_id()}-{sanitize_filename(filename)}"
        attachment = Attachment(
            email_id=email_id,
            filename=stored_name,
            original_name=filename,
            mime_type=mime_type,
            size=size,
        )

        if use_store:
            attachment.storage_type = STORAGE_S3
            attachment.s3_key = f"attachments/{stored_name}"
            attachment.s3_bucket = self._store.bucket
            self._store.put(attachment.s3_key, content, mime_type)
        else:
            attachment.storage_type = STORAGE_DATABASE
            attachment.s3_key = f"db-storage/{stored_name}"
            attachment.s3_bucket = DATABASE_BUCKET
            attachment.file_content = base64.b64encode(content).decode('ascii')

        attachment_repo.insert_attachment(attachment)
        logger.info(
            f"Uploaded attachment {attachment.id} ({filename}, {format_file_size(size)}) "
            f"to {attachment.storage_type} storage"
        )
        return self._to_ref(attachment)

    def upload_many(
        self,
        files: Sequence[Tuple[bytes, str, Optional[str]]],
        email_id: Optional[str] = None,
    ) -> List[AttachmentRef]:
        """
        Upload several files given as (content, filename, mime_type) tuples.

        Raises:
            BadRequestError: If no files are given or any file is invalid.
        """
        if not files:
            raise BadRequestError("No files provided")
        return [
            self.upload(content, filename, mime_type, email_id=email_id)
            for content, filename, mime_type in files
        ]

    def get_attachment(self, attachment_id: str) -> AttachmentRef:
        return self._to_ref(self._load(attachment_id))

    def list_for_message(self, email_id: str) -> List[AttachmentRef]:
        return [self._to_ref(a) for a in attachment_repo.list_for_email(email_id)]

    def get_content(self, attachment_id: str) -> bytes:
        """
        Read an attachment's bytes from wherever they were stored at upload.

        Raises:
            NotFoundError: If the attachment does not exist.
            UnavailableError: If it lives in object storage that is not configured.
        """
        return self._read(self._load(attachment_id))

    def get_outgoing(self, attachment_id: str) -> OutgoingAttachment:
        """Resolve an attachment id to the reference plus content a provider sends."""
        attachment = self._load(attachment_id)
        return OutgoingAttachment(
            attachment_id=attachment.id,
            filename=attachment.original_name,
            mime_type=attachment.mime_type,
            content=self._read(attachment),
            size=attachment.size,
            s3_key=attachment.s3_key,
            s3_bucket=attachment.s3_bucket,
            storage_type=attachment.storage_type,
        )

    def get_download_url(self, attachment_id: str, expires_in: int = 3600) -> str:
        return self._download_url(self._load(attachment_id), expires_in)

    def link_to_message(self, attachment_ids: Iterable[str], email_id: str) -> int:
        """
        Point each attachment at email_id.

        Each id is linked independently; an unknown id or a storage failure
        is logged and skipped.

        Returns:
            Number of attachments linked.
        """
        linked = 0
        for attachment_id in attachment_ids:
            try:
                if attachment_repo.set_email_id(attachment_id, email_id):
                    linked += 1
                else:
                    logger.warning(f"Cannot link unknown attachment {attachment_id} to email {email_id}")
            except sqlite3.Error as e:
                logger.error(f"Failed to link attachment {attachment_id} to email {email_id}: {e}")
        logger.info(f"Linked {linked} attachment(s) to email {email_id}")
        return linked

    def delete(self, attachment_id: str) -> None:
        """
        Delete an attachment's stored content and its metadata.

        Raises:
            NotFoundError: If the attachment does not exist.
        """
        attachment = self._load(attachment_id)
        if attachment.storage_type == STORAGE_S3:
            if self._store_available():
                self._store.delete(attachment.s3_key)
            else:
                logger.warning(
                    f"Object storage unavailable, leaving {attachment.s3_key} behind "
                    f"while deleting attachment {attachment_id}"
                )
        attachment_repo.delete_attachment(attachment_id)
        logger.info(f"Attachment deleted: {attachment_id}")

    def delete_for_message(self, message: EmailMessage) -> int:
        """
        Delete the attachments of a removed message that no remaining message references.

        Returns:
            Number of attachments deleted.
        """
        deleted = 0
        for ref in message.attachments:
            if message_repo.count_referencing_attachment(ref.attachment_id) > 0:
                continue
            try:
                self.delete(ref.attachment_id)
                deleted += 1
            except EmailBackendError as e:
                logger.warning(f"Could not delete attachment {ref.attachment_id} of email {message.id}: {e}")
        return deleted

    # ------------------------------------------------------------------

    def _load(self, attachment_id: str) -> Attachment:
        attachment = attachment_repo.get_attachment(attachment_id)
        if attachment is None:
            raise NotFoundError("Attachment not found")
        return attachment

    def _read(self, attachment: Attachment) -> bytes:
        if attachment.storage_type == STORAGE_DATABASE:
            if not attachment.file_content:
                raise NotFoundError(f"Content of attachment {attachment.id} is missing")
            try:
                return base64.b64decode(attachment.file_content)
            except (binascii.Error, ValueError) as e:
                raise NotFoundError(f"Content of attachment {attachment.id} is corrupted") from e

        if not self._store_available():
            raise UnavailableError("File content not available. Object storage is not configured.")
        return self._store.get(attachment.s3_key)

    def _download_url(self, attachment: Attachment, expires_in: int = 3600) -> str:
        if attachment.storage_type == STORAGE_DATABASE or not self._store_available():
            return f"/api/emails/attachments/{attachment.id}/download"
        return self._store.signed_url(attachment.s3_key, expires_in)

    def _to_ref(self, attachment: Attachment) -> AttachmentRef:
        return AttachmentRef(
            attachment_id=attachment.id,
            filename=attachment.filename,
            original_name=attachment.original_name,
            mime_type=attachment.mime_type,
            size=attachment.size,
            s3_key=attachment.s3_key,
            s3_bucket=attachment.s3_bucket,
            storage_type=attachment.storage_type,
            download_url=self._download_url(attachment),
        )
