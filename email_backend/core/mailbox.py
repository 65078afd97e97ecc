"""
Mailbox façade: the folder list with counts.
"""
import logging
from typing import List

from email_backend.models import Mailbox
from email_backend.providers.selector import ProviderSelector
from email_backend.utils.errors import OAuthError, UnavailableError, UpstreamError


logger = logging.getLogger(__name__)


# Remote failures that read paths answer from the local store instead
REMOTE_READ_FAILURES = (UpstreamError, OAuthError, UnavailableError)


class MailboxService:

    def __init__(self, selector: ProviderSelector):
        self._selector = selector

    def get_mailboxes(self, account_id: str) -> List[Mailbox]:
        """Return the six mailboxes, with local counts if Gmail cannot be reached."""
        provider = self._selector.get_provider(account_id)
        try:
            return provider.get_mailboxes(account_id)
        except REMOTE_READ_FAILURES as e:
            if provider is self._selector.local:
                raise
            logger.warning(f"Falling back to local mailbox counts for account {account_id}: {e}")
            return self._selector.local.get_mailboxes(account_id)
