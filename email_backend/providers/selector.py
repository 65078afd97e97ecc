"""
Provider selection.

Decides per call which mailbox provider serves an account. Nothing is
cached: every call asks the Gmail provider whether a credential is on file,
and the local provider is the unconditional fallback.
"""
import logging

from email_backend.providers.base import MailboxProvider
from email_backend.providers.gmail_provider import GmailProvider
from email_backend.providers.local_provider import LocalProvider
from email_backend.utils.errors import EmailBackendError
from email_backend.utils.helpers import is_local_id


logger = logging.getLogger(__name__)


class ProviderSelector:
    """Chooses between the Gmail and local providers."""

    def __init__(self, gmail: GmailProvider, local: LocalProvider):
        self.gmail = gmail
        self.local = local

    def get_provider(self, account_id: str) -> MailboxProvider:
        """
        Return the provider backing an account's mailbox. Never raises.
        """
        try:
            if self.gmail.is_available(account_id):
                return self.gmail
        except EmailBackendError as e:
            logger.warning(f"Gmail availability check failed for account {account_id}, using local: {e}")
        return self.local

    def get_provider_for_message(self, account_id: str, message_id: str) -> MailboxProvider:
        """
        Like get_provider, but a locally generated id is always served by
        the local provider (mail delivered locally to a Gmail-linked account).
        """
        if is_local_id(message_id):
            return self.local
        return self.get_provider(account_id)
