"""
MIME composition shared by the Gmail provider and the SMTP relay.
"""
import logging
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from typing import List, Optional, Sequence

from email_backend.models import OutgoingAttachment


logger = logging.getLogger(__name__)


def build_mime_message(
    from_address: str,
    to: Sequence[str],
    subject: str,
    body: str,
    html_body: Optional[str] = None,
    cc: Optional[Sequence[str]] = None,
    bcc: Optional[Sequence[str]] = None,
    attachments: Optional[List[OutgoingAttachment]] = None,
    in_reply_to: Optional[str] = None,
    references: Optional[str] = None,
) -> MIMEMultipart:
    """
    Build a MIME message ready to be transmitted.

    The text and HTML bodies go in a multipart/alternative part; attachments,
    when present, wrap it in multipart/mixed.

    Args:
        from_address: Sender address for the From header.
        to: Primary recipients.
        subject: Subject line.
        body: Plain text body.
        html_body: Optional HTML alternative.
        cc: Optional Cc recipients.
        bcc: Optional Bcc recipients (kept as a header so the Gmail API
            can route them; SMTP callers pass them as envelope recipients).
        attachments: Attachments with their content already resolved.
        in_reply_to: Message-ID of the message being replied to.
        references: References header value for threading.

    Returns:
        The composed message.
    """
    alternative = MIMEMultipart('alternative')
    alternative.attach(MIMEText(body or '', 'plain', 'utf-8'))
    if html_body:
        alternative.attach(MIMEText(html_body, 'html', 'utf-8'))

    if attachments:
        msg = MIMEMultipart('mixed')
        msg.attach(alternative)
        for attachment in attachments:
            msg.attach(_attachment_part(attachment))
            logger.debug(f"Added attachment: {attachment.filename}")
    else:
        msg = alternative

    msg['From'] = from_address
    msg['To'] = ', '.join(to)
    if cc:
        msg['Cc'] = ', '.join(cc)
    if bcc:
        msg['Bcc'] = ', '.join(bcc)
    msg['Subject'] = subject or ''
    msg['Date'] = formatdate(localtime=False)
    msg['Message-ID'] = make_msgid()
    if in_reply_to:
        msg['In-Reply-To'] = in_reply_to
        msg['References'] = references or in_reply_to

    return msg


def _attachment_part(attachment: OutgoingAttachment) -> MIMEBase:
    mime_type = attachment.mime_type or 'application/octet-stream'
    main_type, sub_type = mime_type.split('/', 1) if '/' in mime_type else ('application', 'octet-stream')

    part = MIMEBase(main_type, sub_type)
    part.set_payload(attachment.content)
    encoders.encode_base64(part)
    part.add_header('Content-Disposition', 'attachment', filename=attachment.filename)
    return part
