"""
Helper utility functions for addresses, previews, ids and Gmail payloads
"""
import base64
import html
import re
import uuid
from email.utils import getaddresses, parseaddr
from typing import Any, Dict, Iterable, List, Optional


_LOCAL_ID_PATTERN = re.compile(r'^[0-9a-f]{32}$')
_EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
_TAG_PATTERN = re.compile(r'<[^>]*>')


def new_id() -> str:
    """Generate an opaque local identifier"""
    return uuid.uuid4().hex


def is_local_id(value: Optional[str]) -> bool:
    """True if value has the shape of a locally generated identifier"""
    return bool(value) and bool(_LOCAL_ID_PATTERN.match(value))


def validate_email(email: str) -> bool:
    """Validate email address format"""
    return bool(email) and bool(_EMAIL_PATTERN.match(email))


def extract_email_address(email_string: str) -> str:
    """Extract the bare address from a string like 'John Doe <john@example.com>'"""
    if not email_string:
        return ""
    _, address = parseaddr(email_string)
    return (address or email_string).strip()


def parse_email_list(emails: Optional[str]) -> List[str]:
    """Parse a comma-separated header value into valid bare addresses"""
    if not emails:
        return []
    return [
        address.strip()
        for _, address in getaddresses([emails])
        if validate_email(address.strip())
    ]


def resolve_reply_recipients(
    original_from: str,
    original_to: Iterable[str],
    original_cc: Iterable[str],
    own_address: str,
    reply_all: bool,
) -> List[str]:
    """
    Work out who receives a reply.

    Without reply_all only the original sender is addressed; with reply_all
    the original sender, To and Cc lists are merged. The caller's own address
    is removed and duplicates are dropped case-insensitively, keeping the
    first spelling seen.

    Returns:
        Ordered list of bare addresses (possibly empty).
    """
    candidates = [extract_email_address(original_from)]
    if reply_all:
        candidates.extend(extract_email_address(a) for a in original_to)
        candidates.extend(extract_email_address(a) for a in original_cc)

    own = extract_email_address(own_address or "").lower()
    seen = set()
    recipients = []
    for address in candidates:
        key = address.lower()
        if not address or key == own or key in seen:
            continue
        seen.add(key)
        recipients.append(address)
    return recipients


def reply_subject(subject: str) -> str:
    """Prefix a subject with 'Re: ' unless it already carries one"""
    subject = subject or ""
    if subject.lower().startswith("re:"):
        return subject
    return f"Re: {subject}"


def generate_preview(body: str, max_length: int = 150) -> str:
    """Strip markup from a body and truncate it for list views"""
    if not body:
        return ""
    text = html.unescape(_TAG_PATTERN.sub('', body)).replace('\xa0', ' ').strip()
    return truncate_text(text, max_length)


def truncate_text(text: str, max_length: int = 50) -> str:
    """Truncate text to max length with ellipsis"""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def sanitize_filename(filename: str) -> str:
    """Sanitize filename for safe storage"""
    invalid_chars = '<>:"/\\|?*'
    for char in invalid_chars:
        filename = filename.replace(char, '_')
    return filename.strip() or "attachment"


def format_file_size(size_bytes: float) -> str:
    """Format file size in human-readable format"""
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.1f} TB"


# ============================================================================
# Gmail payload helpers
# ============================================================================

def decode_base64url(data: str) -> bytes:
    """Decode unpadded base64url data as returned by the Gmail API"""
    padding = '=' * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def get_header(headers: List[Dict[str, str]], name: str) -> Optional[str]:
    """Case-insensitive lookup of a header value in a Gmail payload"""
    wanted = name.lower()
    for header in headers or []:
        if header.get("name", "").lower() == wanted:
            return header.get("value")
    return None


def extract_body_from_payload(payload: Optional[Dict[str, Any]]) -> str:
    """
    Extract the message body from a Gmail payload.

    Prefers text/html, then text/plain, then descends into nested
    multipart parts.
    """
    if not payload:
        return ""

    data = (payload.get("body") or {}).get("data")
    if data:
        return decode_base64url(data).decode("utf-8", errors="replace")

    parts = payload.get("parts") or []
    for mime_type in ("text/html", "text/plain"):
        for part in parts:
            if part.get("mimeType") == mime_type:
                return extract_body_from_payload(part)

    for part in parts:
        if (part.get("mimeType") or "").startswith("multipart/"):
            body = extract_body_from_payload(part)
            if body:
                return body

    return ""


def extract_attachments_from_payload(payload: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """List the attachment parts (filename + attachmentId) of a Gmail payload"""
    attachments: List[Dict[str, Any]] = []

    def walk(part: Dict[str, Any]) -> None:
        body = part.get("body") or {}
        if part.get("filename") and body.get("attachmentId"):
            attachments.append({
                "filename": part["filename"],
                "mime_type": part.get("mimeType") or "application/octet-stream",
                "size": body.get("size", 0),
                "attachment_id": body["attachmentId"],
            })
        for child in part.get("parts") or []:
            walk(child)

    if payload:
        walk(payload)
    return attachments
