"""
Service wiring.

build_services() assembles the providers, the selector and the façades the
outer API layer calls. Collaborators can be swapped out (tests pass an
in-memory object store and a mocked Gmail client factory).
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from email_backend import config
from email_backend.auth.accounts import AuthService
from email_backend.auth.oauth import GoogleOAuthProvider
from email_backend.core.actions import EmailActionsService
from email_backend.core.attachments import AttachmentService
from email_backend.core.compose import ComposeService
from email_backend.core.drafts import DraftsService
from email_backend.core.inbox import InboxService
from email_backend.core.mailbox import MailboxService
from email_backend.core.notifications import GmailPushService
from email_backend.models import Account
from email_backend.network.smtp_client import SmtpRelay
from email_backend.providers.gmail_provider import GmailProvider
from email_backend.providers.local_provider import LocalProvider
from email_backend.providers.selector import ProviderSelector
from email_backend.storage.object_store import S3ObjectStore


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Services:
    selector: ProviderSelector
    attachments: AttachmentService
    mailbox: MailboxService
    inbox: InboxService
    compose: ComposeService
    actions: EmailActionsService
    drafts: DraftsService
    auth: AuthService
    push: GmailPushService
    oauth: Optional[GoogleOAuthProvider] = None


def build_services(
    object_store: Optional[Any] = None,
    gmail_service_factory: Optional[Callable[[Account], Any]] = None,
    relay: Optional[SmtpRelay] = None,
) -> Services:
    """
    Build every service with its collaborators.

    Args:
        object_store: Attachment store; defaults to an S3ObjectStore from config.
        gmail_service_factory: Builds a Gmail API client for an account.
        relay: SMTP relay for external addressees; defaults to one from config.

    Returns:
        The wired Services.
    """
    attachments = AttachmentService(object_store if object_store is not None else S3ObjectStore())
    gmail = GmailProvider(service_factory=gmail_service_factory)
    local = LocalProvider(attachments=attachments, relay=relay if relay is not None else SmtpRelay())
    selector = ProviderSelector(gmail=gmail, local=local)

    oauth = None
    if config.GOOGLE_CLIENT_ID and config.GOOGLE_CLIENT_SECRET:
        oauth = GoogleOAuthProvider()
    else:
        logger.info("Google OAuth is not configured; Google sign-in disabled")

    return Services(
        selector=selector,
        attachments=attachments,
        mailbox=MailboxService(selector),
        inbox=InboxService(selector),
        compose=ComposeService(selector, attachments),
        actions=EmailActionsService(selector, attachments),
        drafts=DraftsService(),
        auth=AuthService(),
        push=GmailPushService(service_factory=gmail_service_factory),
        oauth=oauth,
    )
