"""
Local mailbox provider.

Serves accounts without a linked Gmail mailbox (and locally delivered mail
of linked ones) from the SQLite store. Sending writes a copy into the
sender's sent folder and an unread inbox copy for every addressee that is a
local account. The two writes are independent: if a delivery fails, the
sent copy stays.
"""
import logging
from dataclasses import replace
from typing import List, Optional, Sequence

from email_backend import config
from email_backend.core.attachments import AttachmentService
from email_backend.models import (
    ALL_FOLDERS,
    FOLDER_ARCHIVE,
    FOLDER_DRAFTS,
    FOLDER_INBOX,
    FOLDER_SENT,
    FOLDER_STARRED,
    FOLDER_TRASH,
    STORED_FOLDERS,
    AttachmentRef,
    EmailDetail,
    EmailListResponse,
    EmailMessage,
    EmailPreview,
    Mailbox,
    OutgoingAttachment,
    SendResult,
)
from email_backend.network.smtp_client import SmtpRelay
from email_backend.providers.base import (
    PROVIDER_LOCAL,
    MailboxProvider,
    build_mailboxes,
    total_pages,
)
from email_backend.storage import account_repo, db, message_repo
from email_backend.utils.errors import (
    BadRequestError,
    EmailBackendError,
    NotFoundError,
    UnauthorizedError,
)
from email_backend.utils.helpers import (
    generate_preview,
    is_local_id,
    parse_email_list,
    reply_subject,
    resolve_reply_recipients,
)


logger = logging.getLogger(__name__)


class LocalProvider(MailboxProvider):
    """Mailbox backed by the local SQLite store."""

    name = PROVIDER_LOCAL

    def __init__(
        self,
        attachments: Optional[AttachmentService] = None,
        relay: Optional[SmtpRelay] = None,
    ):
        """
        Args:
            attachments: Used to link sent attachments to the written copies.
            relay: Optional SMTP relay for addressees outside the local store.
        """
        self._attachments = attachments
        self._relay = relay

    def is_available(self, account_id: str) -> bool:
        return True

    def get_mailboxes(self, account_id: str) -> List[Mailbox]:
        counts = {
            FOLDER_INBOX: message_repo.count_messages(account_id, FOLDER_INBOX, unread_only=True),
            FOLDER_STARRED: message_repo.count_messages(account_id, FOLDER_STARRED),
            FOLDER_SENT: message_repo.count_messages(account_id, FOLDER_SENT),
            FOLDER_DRAFTS: message_repo.count_messages(account_id, FOLDER_DRAFTS),
            FOLDER_ARCHIVE: message_repo.count_messages(account_id, FOLDER_ARCHIVE),
            FOLDER_TRASH: message_repo.count_messages(account_id, FOLDER_TRASH),
        }
        return build_mailboxes(counts)

    def get_emails_by_folder(
        self,
        account_id: str,
        folder: str,
        page: int = 1,
        limit: int = 50,
        page_token: Optional[str] = None,
    ) -> EmailListResponse:
        folder = (folder or FOLDER_INBOX).lower()
        if folder not in ALL_FOLDERS:
            raise BadRequestError(f"Unknown folder: {folder}")

        page = max(page, 1)
        limit = max(limit, 1)
        messages = message_repo.list_messages(account_id, folder, limit=limit, offset=(page - 1) * limit)
        total = message_repo.count_messages(account_id, folder)

        return EmailListResponse(
            emails=[_to_preview(message) for message in messages],
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages(total, limit),
            has_more=page * limit < total,
        )

    def get_email_by_id(self, account_id: str, email_id: str) -> EmailDetail:
        message = self._load_owned(account_id, email_id, for_write=False)

        if not message.is_read:
            message.is_read = True
            message.read_at = db.utcnow()
            message_repo.update_message(message.id, is_read=True, read_at=message.read_at)

        return _to_detail(message)

    def send_email(
        self,
        account_id: str,
        from_address: str,
        to: str,
        subject: str,
        body: str,
        attachments: Optional[List[OutgoingAttachment]] = None,
        cc: Optional[List[str]] = None,
        bcc: Optional[List[str]] = None,
        html_body: Optional[str] = None,
    ) -> SendResult:
        recipients = parse_email_list(to)
        if not recipients:
            raise BadRequestError("No valid recipients")

        return self._deliver(
            account_id, from_address, recipients, list(cc or []), list(bcc or []),
            subject, body, html_body, attachments or [],
        )

    def reply_to_email(
        self,
        account_id: str,
        from_address: str,
        original_id: str,
        body: str,
        reply_all: bool = False,
        attachments: Optional[List[OutgoingAttachment]] = None,
    ) -> SendResult:
        original = self._load_owned(account_id, original_id, for_write=True)

        recipients = resolve_reply_recipients(
            original.sender,
            parse_email_list(original.to),
            original.cc,
            from_address,
            reply_all,
        )
        if not recipients:
            raise BadRequestError("No valid recipients")

        return self._deliver(
            account_id, from_address, recipients[:1], recipients[1:], [],
            reply_subject(original.subject), body, None, attachments or [],
            in_reply_to=original.id,
        )

    def mark_as_read(self, account_id: str, email_id: str, is_read: bool) -> bool:
        message = self._load_owned(account_id, email_id, for_write=True)
        read_at = (message.read_at or db.utcnow()) if is_read else None
        return message_repo.update_message(message.id, is_read=is_read, read_at=read_at)

    def is_starred(self, account_id: str, email_id: str) -> bool:
        return self._load_owned(account_id, email_id, for_write=True).is_starred

    def toggle_star(self, account_id: str, email_id: str) -> bool:
        message = self._load_owned(account_id, email_id, for_write=True)
        is_starred = not message.is_starred
        message_repo.update_message(message.id, is_starred=is_starred)
        return is_starred

    def delete_email(self, account_id: str, email_id: str) -> bool:
        message = self._load_owned(account_id, email_id, for_write=True)
        if message.folder == FOLDER_TRASH:
            logger.info(f"Permanently deleting email {email_id}")
            return message_repo.delete_message(message.id)
        return message_repo.update_message(message.id, folder=FOLDER_TRASH)

    def move_to_folder(self, account_id: str, email_id: str, folder: str) -> bool:
        folder = (folder or "").lower()
        if folder not in STORED_FOLDERS:
            raise BadRequestError(f"Cannot move an email to folder: {folder}")
        message = self._load_owned(account_id, email_id, for_write=True)
        return message_repo.update_message(message.id, folder=folder)

    # ------------------------------------------------------------------

    def _load_owned(self, account_id: str, email_id: str, for_write: bool) -> EmailMessage:
        """
        Load a message and check that account_id owns it.

        Ids that are not in the local format never reach the store: reads
        answer NotFound, writes answer BadRequest.
        """
        if not is_local_id(email_id):
            if for_write:
                raise BadRequestError(f"Invalid email id: {email_id}")
            raise NotFoundError("Email not found")

        message = message_repo.get_message(email_id)
        if message is None:
            raise NotFoundError("Email not found")
        if message.account_id != account_id:
            raise UnauthorizedError("You do not have access to this email")
        return message

    def _deliver(
        self,
        account_id: str,
        from_address: str,
        to: List[str],
        cc: List[str],
        bcc: List[str],
        subject: str,
        body: str,
        html_body: Optional[str],
        attachments: List[OutgoingAttachment],
        in_reply_to: Optional[str] = None,
    ) -> SendResult:
        refs = [attachment.to_ref() for attachment in attachments]
        sent_at = db.utcnow()
        preview = generate_preview(body or html_body or "", config.PREVIEW_LENGTH)

        def copy_for(owner_id: str, folder: str, is_read: bool, bcc_list: List[str]) -> EmailMessage:
            return EmailMessage(
                account_id=owner_id,
                sender=from_address,
                to=", ".join(to),
                cc=list(cc),
                bcc=bcc_list,
                subject=subject,
                body=body,
                html_body=html_body,
                preview=preview,
                is_read=is_read,
                read_at=sent_at if is_read else None,
                folder=folder,
                sent_at=sent_at,
                in_reply_to=in_reply_to,
                attachments=[replace(ref) for ref in refs],
            )

        sent_copy = message_repo.insert_message(copy_for(account_id, FOLDER_SENT, True, list(bcc)))
        logger.info(f"Stored sent copy {sent_copy.id} for account {account_id}")
        self._link(refs, sent_copy.id)

        external = []
        for address in _unique(to + cc + bcc):
            recipient = account_repo.find_account(email=address)
            if recipient is None:
                external.append(address)
                continue
            inbox_copy = message_repo.insert_message(copy_for(recipient.id, FOLDER_INBOX, False, []))
            logger.info(f"Delivered {sent_copy.id} locally to account {recipient.id} as {inbox_copy.id}")
            self._link(refs, inbox_copy.id)

        if external:
            self._relay_external(from_address, to, cc, bcc, subject, body, html_body, attachments)

        return SendResult(success=True, message_id=sent_copy.id)

    def _link(self, refs: List[AttachmentRef], message_id: str) -> None:
        if refs and self._attachments is not None:
            self._attachments.link_to_message([ref.attachment_id for ref in refs], message_id)

    def _relay_external(
        self,
        from_address: str,
        to: List[str],
        cc: List[str],
        bcc: List[str],
        subject: str,
        body: str,
        html_body: Optional[str],
        attachments: List[OutgoingAttachment],
    ) -> None:
        """Hand the message to the SMTP relay; failures leave the stored copies in place."""
        if self._relay is None or not self._relay.is_available():
            logger.debug("No SMTP relay configured, external recipients only get the stored copy")
            return
        try:
            self._relay.send(
                from_address, to, subject, body,
                html_body=html_body, cc=cc, bcc=bcc, attachments=attachments,
            )
        except EmailBackendError as e:
            logger.warning(f"SMTP relay failed for message from {from_address}: {e}")


def _unique(addresses: Sequence[str]) -> List[str]:
    seen = set()
    result = []
    for address in addresses:
        key = address.lower()
        if key not in seen:
            seen.add(key)
            result.append(address)
    return result


def _to_preview(message: EmailMessage) -> EmailPreview:
    return EmailPreview(
        id=message.id,
        sender=message.sender,
        to=message.to,
        subject=message.subject,
        preview=message.preview,
        is_read=message.is_read,
        is_starred=message.is_starred,
        sent_at=message.sent_at,
        folder=message.folder,
        has_attachments=message.has_attachments,
    )


def _to_detail(message: EmailMessage) -> EmailDetail:
    return EmailDetail(
        id=message.id,
        sender=message.sender,
        to=message.to,
        subject=message.subject,
        body=message.body,
        preview=message.preview,
        is_read=message.is_read,
        is_starred=message.is_starred,
        sent_at=message.sent_at,
        folder=message.folder,
        cc=", ".join(message.cc) or None,
        bcc=", ".join(message.bcc) or None,
        html_body=message.html_body,
        read_at=message.read_at,
        attachments=list(message.attachments),
    )
