"""
Mailbox provider interface.

Both backing stores, the Gmail API and the local database, implement this
interface so that the façades can treat them interchangeably. Every
operation is scoped to the calling account.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from email_backend.models import (
    FOLDER_ARCHIVE,
    FOLDER_DRAFTS,
    FOLDER_INBOX,
    FOLDER_SENT,
    FOLDER_STARRED,
    FOLDER_TRASH,
    EmailDetail,
    EmailListResponse,
    Mailbox,
    OutgoingAttachment,
    SendResult,
)


PROVIDER_GMAIL = "gmail"
PROVIDER_LOCAL = "local"

# (id, display name, icon) in display order
MAILBOX_LAYOUT = (
    (FOLDER_INBOX, "Inbox", "inbox"),
    (FOLDER_STARRED, "Starred", "star"),
    (FOLDER_SENT, "Sent", "send"),
    (FOLDER_DRAFTS, "Drafts", "file"),
    (FOLDER_ARCHIVE, "Archive", "archive"),
    (FOLDER_TRASH, "Trash", "trash"),
)


def build_mailboxes(counts: Dict[str, int]) -> List[Mailbox]:
    """Build the six fixed mailboxes from a folder -> count mapping."""
    return [
        Mailbox(id=folder, name=name, count=counts.get(folder, 0), icon=icon)
        for folder, name, icon in MAILBOX_LAYOUT
    ]


def total_pages(total: int, limit: int) -> int:
    if limit <= 0:
        return 0
    return (total + limit - 1) // limit


class MailboxProvider(ABC):
    """Operations every mailbox backend offers."""

    name: str = ""

    @abstractmethod
    def is_available(self, account_id: str) -> bool:
        """True if this provider can serve the account."""
        pass

    @abstractmethod
    def get_mailboxes(self, account_id: str) -> List[Mailbox]:
        """
        Return the six fixed mailboxes with live counts.

        Inbox counts unread messages, starred counts the flag, the other
        folders count all their messages.
        """
        pass

    @abstractmethod
    def get_emails_by_folder(
        self,
        account_id: str,
        folder: str,
        page: int = 1,
        limit: int = 50,
        page_token: Optional[str] = None,
    ) -> EmailListResponse:
        """List one page of a folder, newest first."""
        pass

    @abstractmethod
    def get_email_by_id(self, account_id: str, email_id: str) -> EmailDetail:
        """
        Return a message, marking it read on first read.

        Raises:
            NotFoundError: If the message does not exist.
            UnauthorizedError: If it belongs to another account.
        """
        pass

    @abstractmethod
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
        pass

    @abstractmethod
    def reply_to_email(
        self,
        account_id: str,
        from_address: str,
        original_id: str,
        body: str,
        reply_all: bool = False,
        attachments: Optional[List[OutgoingAttachment]] = None,
    ) -> SendResult:
        """
        Reply to a message.

        Raises:
            BadRequestError: If no recipient remains after removing the
                caller's own address.
        """
        pass

    @abstractmethod
    def mark_as_read(self, account_id: str, email_id: str, is_read: bool) -> bool:
        pass

    @abstractmethod
    def is_starred(self, account_id: str, email_id: str) -> bool:
        """Current starred flag, read without changing anything."""
        pass

    @abstractmethod
    def toggle_star(self, account_id: str, email_id: str) -> bool:
        """Flip the starred flag and return the new value."""
        pass

    @abstractmethod
    def delete_email(self, account_id: str, email_id: str) -> bool:
        """Move a message to trash, or remove it for good if it is already there."""
        pass

    @abstractmethod
    def move_to_folder(self, account_id: str, email_id: str, folder: str) -> bool:
        pass
