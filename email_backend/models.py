"""
Core domain models for the mail backend.

This module contains pure domain models (dataclasses) without any database
or transport dependencies: the stored entities (accounts, messages,
attachments, refresh tokens, drafts) and the provider-agnostic response
shapes returned by both mailbox providers.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


# Logical folders. "starred" is a flag-based pseudo-folder, never stored.
FOLDER_INBOX = "inbox"
FOLDER_SENT = "sent"
FOLDER_DRAFTS = "drafts"
FOLDER_TRASH = "trash"
FOLDER_ARCHIVE = "archive"
FOLDER_STARRED = "starred"

STORED_FOLDERS = (FOLDER_INBOX, FOLDER_SENT, FOLDER_DRAFTS, FOLDER_TRASH, FOLDER_ARCHIVE)
ALL_FOLDERS = STORED_FOLDERS + (FOLDER_STARRED,)

STORAGE_S3 = "s3"
STORAGE_DATABASE = "database"


@dataclass(slots=True)
class Account:
    """A registered user identity, local or Google-linked."""
    id: Optional[str] = None
    username: str = ""
    email: str = ""
    password_hash: Optional[str] = None
    google_id: Optional[str] = None
    google_access_token: Optional[str] = None
    google_refresh_token: Optional[str] = None
    google_token_expiry: Optional[datetime] = None
    picture: Optional[str] = None
    auth_provider: str = "local"  # 'local' or 'google'
    role: str = "user"
    watch_history_id: Optional[str] = None
    watch_expiration: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def has_google_credentials(self) -> bool:
        """True if a non-blank Google access or refresh token is on file."""
        return bool(
            (self.google_refresh_token and self.google_refresh_token.strip())
            or (self.google_access_token and self.google_access_token.strip())
        )


@dataclass(slots=True)
class AttachmentRef:
    """Attachment metadata as embedded in a message or returned to callers."""
    attachment_id: str = ""
    filename: str = ""
    original_name: str = ""
    mime_type: str = "application/octet-stream"
    size: int = 0
    s3_key: Optional[str] = None
    s3_bucket: Optional[str] = None
    storage_type: Optional[str] = None
    download_url: Optional[str] = None


@dataclass(slots=True)
class EmailMessage:
    """One email as stored in the local mailbox."""
    id: Optional[str] = None
    account_id: str = ""
    sender: str = ""
    to: str = ""
    cc: List[str] = field(default_factory=list)
    bcc: List[str] = field(default_factory=list)
    subject: str = ""
    body: str = ""
    html_body: Optional[str] = None
    preview: str = ""
    is_read: bool = False
    read_at: Optional[datetime] = None
    is_starred: bool = False
    folder: str = FOLDER_INBOX
    sent_at: Optional[datetime] = None
    in_reply_to: Optional[str] = None
    attachments: List[AttachmentRef] = field(default_factory=list)

    @property
    def has_attachments(self) -> bool:
        return len(self.attachments) > 0


@dataclass(slots=True)
class Attachment:
    """Stored attachment metadata plus its storage locator."""
    id: Optional[str] = None
    email_id: Optional[str] = None
    filename: str = ""
    original_name: str = ""
    mime_type: str = "application/octet-stream"
    size: int = 0
    s3_key: str = ""
    s3_bucket: str = ""
    storage_type: str = STORAGE_S3
    file_content: Optional[str] = None  # base64, only for database storage
    uploaded_at: Optional[datetime] = None


@dataclass(slots=True)
class RefreshToken:
    """Opaque refresh token issued at login."""
    id: Optional[str] = None
    token: str = ""
    account_id: str = ""
    expires_at: Optional[datetime] = None


@dataclass(slots=True)
class Draft:
    """An unsent message saved by the user."""
    id: Optional[str] = None
    account_id: str = ""
    to: str = ""
    subject: str = ""
    body: str = ""
    cc: Optional[str] = None
    bcc: Optional[str] = None
    reply_to: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(slots=True)
class OutgoingAttachment:
    """Attachment handed to a provider when sending: reference plus content."""
    attachment_id: str
    filename: str
    mime_type: str
    content: bytes
    size: int = 0
    s3_key: Optional[str] = None
    s3_bucket: Optional[str] = None
    storage_type: Optional[str] = None

    def to_ref(self) -> AttachmentRef:
        return AttachmentRef(
            attachment_id=self.attachment_id,
            filename=self.filename,
            original_name=self.filename,
            mime_type=self.mime_type,
            size=self.size or len(self.content),
            s3_key=self.s3_key,
            s3_bucket=self.s3_bucket,
            storage_type=self.storage_type,
        )


# ============================================================================
# Response shapes shared by both providers
# ============================================================================

@dataclass(slots=True)
class Mailbox:
    id: str
    name: str
    count: int
    icon: str


@dataclass(slots=True)
class EmailPreview:
    id: str
    sender: str
    to: str
    subject: str
    preview: str
    is_read: bool
    is_starred: bool
    sent_at: Optional[datetime]
    folder: str
    has_attachments: bool = False


@dataclass(slots=True)
class EmailDetail:
    id: str
    sender: str
    to: str
    subject: str
    body: str
    preview: str
    is_read: bool
    is_starred: bool
    sent_at: Optional[datetime]
    folder: str
    cc: Optional[str] = None
    bcc: Optional[str] = None
    html_body: Optional[str] = None
    read_at: Optional[datetime] = None
    attachments: List[AttachmentRef] = field(default_factory=list)

    @property
    def has_attachments(self) -> bool:
        return len(self.attachments) > 0


@dataclass(slots=True)
class EmailListResponse:
    emails: List[EmailPreview]
    total: int
    page: int
    limit: int
    total_pages: int
    next_page_token: Optional[str] = None
    has_more: bool = False


@dataclass(slots=True)
class SendResult:
    success: bool
    message_id: Optional[str] = None
