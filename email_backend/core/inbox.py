"""
Inbox façade: listing and reading messages.

Listing falls back to the local store when Gmail cannot be reached. Reading
a single message goes to the provider that owns its id format, so locally
delivered mail stays readable for Gmail-linked accounts.
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional

from email_backend import config
from email_backend.core.mailbox import REMOTE_READ_FAILURES
from email_backend.models import EmailDetail, EmailListResponse, EmailPreview
from email_backend.providers.base import total_pages
from email_backend.providers.selector import ProviderSelector


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EmailFilters:
    """Optional filters applied to the fetched page."""
    search: Optional[str] = None
    from_address: Optional[str] = None
    unread: Optional[bool] = None
    starred: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (self.search, self.from_address, self.unread,
                          self.starred, self.start_date, self.end_date)
        )

    def matches(self, email: EmailPreview) -> bool:
        if self.search:
            needle = self.search.lower()
            haystacks = (email.subject, email.sender, email.preview)
            if not any(needle in (text or "").lower() for text in haystacks):
                return False
        if self.from_address and self.from_address.lower() not in (email.sender or "").lower():
            return False
        if self.unread is not None and email.is_read == self.unread:
            return False
        if self.starred is not None and email.is_starred != self.starred:
            return False
        if self.start_date or self.end_date:
            if email.sent_at is None:
                return False
            sent_at = _as_utc(email.sent_at)
            if self.start_date and sent_at < _as_utc(self.start_date):
                return False
            if self.end_date and sent_at > _as_utc(self.end_date):
                return False
        return True


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class InboxService:

    def __init__(self, selector: ProviderSelector):
        self._selector = selector

    def get_emails_by_folder(
        self,
        account_id: str,
        folder: str,
        page: int = 1,
        limit: Optional[int] = None,
        filters: Optional[EmailFilters] = None,
        page_token: Optional[str] = None,
    ) -> EmailListResponse:
        """
        List a folder page, optionally filtered.

        Filters apply to the fetched page only; total and total_pages then
        describe the filtered page.
        """
        limit = limit or config.DEFAULT_PAGE_SIZE
        provider = self._selector.get_provider(account_id)
        try:
            result = provider.get_emails_by_folder(account_id, folder, page, limit, page_token=page_token)
        except REMOTE_READ_FAILURES as e:
            if provider is self._selector.local:
                raise
            logger.warning(f"Falling back to local messages for account {account_id} folder {folder}: {e}")
            result = self._selector.local.get_emails_by_folder(account_id, folder, page, limit)

        if filters is None or filters.is_empty():
            return result

        emails = [email for email in result.emails if filters.matches(email)]
        return replace(
            result,
            emails=emails,
            total=len(emails),
            total_pages=total_pages(len(emails), result.limit),
        )

    def get_email_by_id(self, account_id: str, email_id: str) -> EmailDetail:
        """
        Read one message, marking it read.

        Raises:
            NotFoundError: If the message does not exist for this account.
            UnauthorizedError: If another account owns it.
        """
        provider = self._selector.get_provider_for_message(account_id, email_id)
        return provider.get_email_by_id(account_id, email_id)
