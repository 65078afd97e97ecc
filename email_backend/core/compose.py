"""
Compose façade: sending and replying.

Write paths never fall back: a provider failure reaches the caller.
"""
import logging
from typing import List, Optional, Sequence

from email_backend.core.attachments import AttachmentService
from email_backend.models import OutgoingAttachment, SendResult
from email_backend.providers.selector import ProviderSelector


logger = logging.getLogger(__name__)


class ComposeService:

    def __init__(self, selector: ProviderSelector, attachments: AttachmentService):
        self._selector = selector
        self._attachments = attachments

    def send_email(
        self,
        account_id: str,
        from_address: str,
        to: str,
        subject: str,
        body: str,
        attachment_ids: Optional[Sequence[str]] = None,
        cc: Optional[List[str]] = None,
        bcc: Optional[List[str]] = None,
        html_body: Optional[str] = None,
    ) -> SendResult:
        """
        Send a new message from the account's mailbox.

        Args:
            account_id: Sending account.
            from_address: Address for the From header.
            to: Recipient address(es), comma separated.
            subject: Subject line.
            body: Plain text body.
            attachment_ids: Previously uploaded attachments to include.
            cc: Optional Cc addresses.
            bcc: Optional Bcc addresses.
            html_body: Optional HTML alternative.

        Returns:
            The provider's send result.

        Raises:
            NotFoundError: If an attachment id is unknown.
            BadRequestError: If there are no valid recipients.
        """
        outgoing = self._resolve_attachments(attachment_ids)
        provider = self._selector.get_provider(account_id)
        result = provider.send_email(
            account_id, from_address, to, subject, body,
            attachments=outgoing, cc=cc, bcc=bcc, html_body=html_body,
        )
        logger.info(f"Email sent by account {account_id} via {provider.name}: {result.message_id}")
        return result

    def reply_to_email(
        self,
        account_id: str,
        from_address: str,
        email_id: str,
        body: str,
        reply_all: bool = False,
        attachment_ids: Optional[Sequence[str]] = None,
    ) -> SendResult:
        """
        Reply to a message in the account's mailbox.

        Raises:
            BadRequestError: If no recipient remains ("No valid recipients").
            NotFoundError: If the original message does not exist.
        """
        outgoing = self._resolve_attachments(attachment_ids)
        provider = self._selector.get_provider_for_message(account_id, email_id)
        result = provider.reply_to_email(
            account_id, from_address, email_id, body,
            reply_all=reply_all, attachments=outgoing,
        )
        logger.info(f"Reply to {email_id} sent by account {account_id} via {provider.name}")
        return result

    def _resolve_attachments(self, attachment_ids: Optional[Sequence[str]]) -> List[OutgoingAttachment]:
        return [self._attachments.get_outgoing(attachment_id) for attachment_id in attachment_ids or []]
