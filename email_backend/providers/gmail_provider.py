"""
Gmail mailbox provider.

Talks to the Gmail API through google-api-python-client with the account's
stored Google credentials. Nothing is cached: every read is a live call and
read/starred state lives in Gmail labels.

Errors from the API are translated at this boundary: a 404 becomes
NotFoundError, every other HTTP failure becomes UpstreamError carrying the
upstream status.
"""
import base64
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from email_backend import config
from email_backend.models import (
    FOLDER_ARCHIVE,
    FOLDER_DRAFTS,
    FOLDER_INBOX,
    FOLDER_SENT,
    FOLDER_STARRED,
    FOLDER_TRASH,
    STORED_FOLDERS,
    Account,
    AttachmentRef,
    EmailDetail,
    EmailListResponse,
    EmailPreview,
    Mailbox,
    OutgoingAttachment,
    SendResult,
)
from email_backend.network.mime import build_mime_message
from email_backend.providers.base import (
    PROVIDER_GMAIL,
    MailboxProvider,
    build_mailboxes,
    total_pages,
)
from email_backend.providers.folders import (
    LABEL_DRAFT,
    LABEL_INBOX,
    LABEL_SENT,
    LABEL_STARRED,
    LABEL_TRASH,
    LABEL_UNREAD,
    folder_from_labels,
    folder_to_label,
)
from email_backend.storage import account_repo
from email_backend.utils.errors import (
    BadRequestError,
    NotFoundError,
    TokenRefreshError,
    UnavailableError,
    UpstreamError,
)
from email_backend.utils.helpers import (
    extract_attachments_from_payload,
    extract_body_from_payload,
    extract_email_address,
    generate_preview,
    get_header,
    parse_email_list,
    reply_subject,
    resolve_reply_recipients,
)


logger = logging.getLogger(__name__)


USER_ID = "me"

# Labels counted for the mailbox list; inbox counts unread, the others total
_COUNTED_LABELS = (
    (FOLDER_INBOX, LABEL_INBOX, "messagesUnread"),
    (FOLDER_STARRED, LABEL_STARRED, "messagesTotal"),
    (FOLDER_SENT, LABEL_SENT, "messagesTotal"),
    (FOLDER_DRAFTS, LABEL_DRAFT, "messagesTotal"),
    (FOLDER_TRASH, LABEL_TRASH, "messagesTotal"),
)


def build_gmail_service(account: Account) -> Any:
    """
    Build an authorized Gmail API client for an account.

    Refreshes the access token first when it is missing or expired and a
    refresh token is on file, and stores the new token.

    Raises:
        TokenRefreshError: If Google rejects the refresh token.
    """
    expiry = account.google_token_expiry
    if expiry is not None and expiry.tzinfo is not None:
        # google-auth compares against naive UTC
        expiry = expiry.astimezone(timezone.utc).replace(tzinfo=None)

    credentials = Credentials(
        token=account.google_access_token,
        refresh_token=account.google_refresh_token,
        token_uri=config.GOOGLE_TOKEN_URI,
        client_id=config.GOOGLE_CLIENT_ID,
        client_secret=config.GOOGLE_CLIENT_SECRET,
        scopes=config.GMAIL_SCOPES,
        expiry=expiry,
    )

    if not credentials.valid and credentials.refresh_token:
        logger.info(f"Refreshing Google access token for account {account.id}")
        try:
            credentials.refresh(Request())
        except RefreshError as e:
            raise TokenRefreshError(f"Google token refresh failed: {e}") from e
        account_repo.update_one(account.id, {
            "google_access_token": credentials.token,
            "google_token_expiry": credentials.expiry,
        })

    return build("gmail", "v1", credentials=credentials, cache_discovery=False)


class GmailProvider(MailboxProvider):
    """Mailbox backed by the Gmail API."""

    name = PROVIDER_GMAIL

    def __init__(self, service_factory: Optional[Callable[[Account], Any]] = None):
        """
        Args:
            service_factory: Builds a Gmail API client for an account.
                Defaults to build_gmail_service.
        """
        self._service_factory = service_factory or build_gmail_service

    def is_available(self, account_id: str) -> bool:
        """True iff the account has a non-blank Google access or refresh token."""
        account = account_repo.get_account(account_id)
        return account is not None and account.has_google_credentials()

    def get_mailboxes(self, account_id: str) -> List[Mailbox]:
        _, service = self._service(account_id)
        counts = {FOLDER_ARCHIVE: 0}
        for folder, label, counter in _COUNTED_LABELS:
            data = self._execute(
                service.users().labels().get(userId=USER_ID, id=label),
                f"fetching label {label}",
            )
            counts[folder] = data.get(counter, 0)
        return build_mailboxes(counts)

    def get_emails_by_folder(
        self,
        account_id: str,
        folder: str,
        page: int = 1,
        limit: int = 50,
        page_token: Optional[str] = None,
    ) -> EmailListResponse:
        """
        List one page of a folder.

        Gmail paginates with opaque tokens, so page N is reached by walking
        N-1 token hops unless the caller passes the page_token it got back
        from the previous page. Ordering is Gmail's own.
        """
        _, service = self._service(account_id)
        page = max(page, 1)
        limit = max(limit, 1)
        label = folder_to_label(folder)

        params: Dict[str, Any] = {"userId": USER_ID, "maxResults": limit}
        if label:
            params["labelIds"] = [label]

        token = page_token
        if token is None:
            for _ in range(page - 1):
                skipped = self._execute(
                    service.users().messages().list(pageToken=token, **params),
                    "listing messages",
                )
                token = skipped.get("nextPageToken")
                if not token:
                    total = skipped.get("resultSizeEstimate", 0)
                    return EmailListResponse(
                        emails=[], total=total, page=page, limit=limit,
                        total_pages=total_pages(total, limit),
                    )

        result = self._execute(
            service.users().messages().list(pageToken=token, **params),
            "listing messages",
        )

        emails = []
        for item in result.get("messages", []):
            data = self._execute(
                service.users().messages().get(userId=USER_ID, id=item["id"], format="full"),
                f"fetching message {item['id']}",
            )
            emails.append(_to_preview(data))

        total = result.get("resultSizeEstimate", 0)
        next_token = result.get("nextPageToken")
        return EmailListResponse(
            emails=emails,
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages(total, limit),
            next_page_token=next_token,
            has_more=bool(next_token),
        )

    def get_email_by_id(self, account_id: str, email_id: str) -> EmailDetail:
        _, service = self._service(account_id)
        data = self._execute(
            service.users().messages().get(userId=USER_ID, id=email_id, format="full"),
            f"fetching message {email_id}",
        )

        labels = data.get("labelIds", [])
        read_at = None
        if LABEL_UNREAD in labels:
            self._modify(service, email_id, remove=[LABEL_UNREAD])
            read_at = datetime.now(timezone.utc)

        headers = (data.get("payload") or {}).get("headers", [])
        body = extract_body_from_payload(data.get("payload")) or data.get("snippet", "")
        attachments = [
            AttachmentRef(
                attachment_id=item["attachment_id"],
                filename=item["filename"],
                original_name=item["filename"],
                mime_type=item["mime_type"],
                size=item["size"],
            )
            for item in extract_attachments_from_payload(data.get("payload"))
        ]

        return EmailDetail(
            id=data["id"],
            sender=extract_email_address(get_header(headers, "From") or ""),
            to=", ".join(parse_email_list(get_header(headers, "To"))),
            subject=get_header(headers, "Subject") or "(No Subject)",
            body=body,
            preview=data.get("snippet") or generate_preview(body, config.PREVIEW_LENGTH),
            is_read=True,
            is_starred=LABEL_STARRED in labels,
            sent_at=_sent_at(data, headers),
            folder=folder_from_labels(labels),
            cc=get_header(headers, "Cc"),
            bcc=get_header(headers, "Bcc"),
            read_at=read_at,
            attachments=attachments,
        )

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

        _, service = self._service(account_id)
        mime_msg = build_mime_message(
            from_address, recipients, subject, body,
            html_body=html_body, cc=cc, bcc=bcc, attachments=attachments,
        )
        sent = self._execute(
            service.users().messages().send(userId=USER_ID, body={"raw": _encode_raw(mime_msg)}),
            "sending message",
        )
        logger.info(f"Sent Gmail message {sent.get('id')} for account {account_id}")
        return SendResult(success=True, message_id=sent.get("id"))

    def reply_to_email(
        self,
        account_id: str,
        from_address: str,
        original_id: str,
        body: str,
        reply_all: bool = False,
        attachments: Optional[List[OutgoingAttachment]] = None,
    ) -> SendResult:
        _, service = self._service(account_id)
        original = self._execute(
            service.users().messages().get(
                userId=USER_ID,
                id=original_id,
                format="metadata",
                metadataHeaders=["From", "To", "Cc", "Subject", "Message-ID", "References"],
            ),
            f"fetching message {original_id}",
        )
        headers = (original.get("payload") or {}).get("headers", [])

        recipients = resolve_reply_recipients(
            get_header(headers, "From") or "",
            parse_email_list(get_header(headers, "To")),
            parse_email_list(get_header(headers, "Cc")),
            from_address,
            reply_all,
        )
        if not recipients:
            raise BadRequestError("No valid recipients")

        message_id_header = get_header(headers, "Message-ID")
        references = " ".join(
            part for part in (get_header(headers, "References"), message_id_header) if part
        )
        mime_msg = build_mime_message(
            from_address,
            recipients[:1],
            reply_subject(get_header(headers, "Subject") or ""),
            body,
            cc=recipients[1:],
            attachments=attachments,
            in_reply_to=message_id_header,
            references=references or None,
        )

        request_body = {"raw": _encode_raw(mime_msg)}
        if original.get("threadId"):
            request_body["threadId"] = original["threadId"]
        sent = self._execute(
            service.users().messages().send(userId=USER_ID, body=request_body),
            "sending reply",
        )
        logger.info(f"Sent Gmail reply {sent.get('id')} to {original_id}")
        return SendResult(success=True, message_id=sent.get("id"))

    def mark_as_read(self, account_id: str, email_id: str, is_read: bool) -> bool:
        _, service = self._service(account_id)
        if is_read:
            self._modify(service, email_id, remove=[LABEL_UNREAD])
        else:
            self._modify(service, email_id, add=[LABEL_UNREAD])
        return True

    def is_starred(self, account_id: str, email_id: str) -> bool:
        _, service = self._service(account_id)
        return LABEL_STARRED in self._labels(service, email_id)

    def toggle_star(self, account_id: str, email_id: str) -> bool:
        _, service = self._service(account_id)
        labels = self._labels(service, email_id)
        if LABEL_STARRED in labels:
            self._modify(service, email_id, remove=[LABEL_STARRED])
            return False
        self._modify(service, email_id, add=[LABEL_STARRED])
        return True

    def delete_email(self, account_id: str, email_id: str) -> bool:
        _, service = self._service(account_id)
        messages = service.users().messages()
        if LABEL_TRASH in self._labels(service, email_id):
            logger.info(f"Permanently deleting Gmail message {email_id}")
            self._execute(messages.delete(userId=USER_ID, id=email_id), f"deleting message {email_id}")
        else:
            self._execute(messages.trash(userId=USER_ID, id=email_id), f"trashing message {email_id}")
        return True

    def move_to_folder(self, account_id: str, email_id: str, folder: str) -> bool:
        folder = (folder or "").lower()
        if folder not in STORED_FOLDERS:
            raise BadRequestError(f"Cannot move an email to folder: {folder}")

        _, service = self._service(account_id)
        if folder == FOLDER_TRASH:
            self._execute(
                service.users().messages().trash(userId=USER_ID, id=email_id),
                f"trashing message {email_id}",
            )
        elif folder == FOLDER_ARCHIVE:
            self._modify(service, email_id, remove=[LABEL_INBOX])
        elif folder == FOLDER_INBOX:
            self._modify(service, email_id, add=[LABEL_INBOX])
        else:
            self._modify(service, email_id, add=[folder_to_label(folder)], remove=[LABEL_INBOX])
        return True

    # ------------------------------------------------------------------

    def _service(self, account_id: str) -> Tuple[Account, Any]:
        account = account_repo.get_account(account_id)
        if account is None:
            raise NotFoundError("Account not found")
        if not account.has_google_credentials():
            raise UnavailableError("Gmail is not connected for this account")
        return account, self._service_factory(account)

    def _labels(self, service: Any, email_id: str) -> List[str]:
        data = self._execute(
            service.users().messages().get(userId=USER_ID, id=email_id, format="minimal"),
            f"fetching message {email_id}",
        )
        return data.get("labelIds", [])

    def _modify(
        self,
        service: Any,
        email_id: str,
        add: Optional[List[str]] = None,
        remove: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, List[str]] = {}
        if add:
            body["addLabelIds"] = add
        if remove:
            body["removeLabelIds"] = remove
        return self._execute(
            service.users().messages().modify(userId=USER_ID, id=email_id, body=body),
            f"modifying message {email_id}",
        )

    def _execute(self, request: Any, action: str) -> Dict[str, Any]:
        return execute_request(request, action)


def execute_request(request: Any, action: str, not_found: str = "Email not found") -> Dict[str, Any]:
    """Execute a Gmail API request, translating failures into backend errors."""
    try:
        return request.execute() or {}
    except HttpError as e:
        status = getattr(e.resp, "status", None)
        try:
            status = int(status) if status is not None else None
        except (TypeError, ValueError):
            status = None
        logger.error(f"Gmail API error while {action}: {e}")
        if status == 404:
            raise NotFoundError(not_found) from e
        raise UpstreamError(f"Gmail API error while {action}: {e}", status) from e
    except RefreshError as e:
        raise TokenRefreshError(f"Google token refresh failed while {action}: {e}") from e


def _encode_raw(mime_msg: Any) -> str:
    return base64.urlsafe_b64encode(mime_msg.as_bytes()).decode("ascii")


def _sent_at(data: Dict[str, Any], headers: List[Dict[str, str]]) -> Optional[datetime]:
    internal = data.get("internalDate")
    if internal:
        try:
            return datetime.fromtimestamp(int(internal) / 1000, tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            pass
    date_header = get_header(headers, "Date")
    if date_header:
        try:
            return parsedate_to_datetime(date_header)
        except (TypeError, ValueError):
            return None
    return None


def _to_preview(data: Dict[str, Any]) -> EmailPreview:
    payload = data.get("payload") or {}
    headers = payload.get("headers", [])
    labels = data.get("labelIds", [])
    return EmailPreview(
        id=data["id"],
        sender=extract_email_address(get_header(headers, "From") or ""),
        to=", ".join(parse_email_list(get_header(headers, "To"))),
        subject=get_header(headers, "Subject") or "(No Subject)",
        preview=data.get("snippet", ""),
        is_read=LABEL_UNREAD not in labels,
        is_starred=LABEL_STARRED in labels,
        sent_at=_sent_at(data, headers),
        folder=folder_from_labels(labels),
        has_attachments=bool(extract_attachments_from_payload(payload)),
    )
