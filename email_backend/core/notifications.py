"""
Gmail push notifications.

Registers a Gmail watch on the account's inbox that publishes changes to a
Pub/Sub topic, and keeps the history cursor Gmail reports on the account.
Renewal is driven by an external scheduler calling renew_watch_if_expiring.
"""
import base64
import binascii
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from email_backend import config
from email_backend.models import Account
from email_backend.providers.folders import LABEL_INBOX
from email_backend.providers.gmail_provider import USER_ID, build_gmail_service, execute_request
from email_backend.storage import account_repo
from email_backend.utils.errors import (
    BadRequestError,
    NotFoundError,
    UnavailableError,
)


logger = logging.getLogger(__name__)


# Renew a watch when it expires within this window
RENEWAL_WINDOW = timedelta(hours=24)


@dataclass(slots=True)
class WatchState:
    history_id: str
    expiration: str  # ISO 8601


class GmailPushService:
    """Sets up, stops and tracks Gmail watches."""

    def __init__(self, service_factory: Optional[Callable[[Account], Any]] = None):
        self._service_factory = service_factory or build_gmail_service

    def setup_watch(self, account_id: str) -> WatchState:
        """
        Start (or restart) a watch on the account's inbox.

        Raises:
            BadRequestError: If the account has no Google refresh token.
            UnavailableError: If no Pub/Sub topic is configured.
            UpstreamError: If Gmail rejects the watch.
        """
        account = self._linked_account(account_id)
        if not config.GMAIL_PUBSUB_TOPIC:
            raise UnavailableError("Push notifications are not configured")

        service = self._service_factory(account)
        response = execute_request(
            service.users().watch(
                userId=USER_ID,
                body={"labelIds": [LABEL_INBOX], "topicName": config.GMAIL_PUBSUB_TOPIC},
            ),
            "setting up watch",
            not_found="Gmail mailbox not found",
        )

        expiration_ms = int(response.get("expiration", 0))
        state = WatchState(
            history_id=str(response.get("historyId", "")),
            expiration=datetime.fromtimestamp(expiration_ms / 1000, tz=timezone.utc).isoformat(),
        )
        account_repo.update_one(account_id, {
            "watch_history_id": state.history_id,
            "watch_expiration": state.expiration,
        })
        logger.info(f"Gmail watch set up for account {account_id}: {state.history_id}")
        return state

    def stop_watch(self, account_id: str) -> None:
        """Stop the account's watch and clear the stored state."""
        account = self._linked_account(account_id)
        service = self._service_factory(account)
        execute_request(
            service.users().stop(userId=USER_ID), "stopping watch", not_found="Gmail mailbox not found",
        )
        account_repo.update_one(account_id, {"watch_history_id": None, "watch_expiration": None})
        logger.info(f"Gmail watch stopped for account {account_id}")

    def handle_notification(self, email_address: str, history_id: str) -> bool:
        """
        Record the history cursor announced for a mailbox.

        Returns:
            True if the address belongs to a known account.
        """
        account = account_repo.find_account(email=email_address)
        if account is None:
            logger.warning(f"Notification for unknown mailbox: {email_address}")
            return False
        account_repo.update_one(account.id, {"watch_history_id": str(history_id)})
        logger.info(f"Processed notification for account {account.id}, historyId: {history_id}")
        return True

    def process_pubsub_message(self, envelope: Dict[str, Any]) -> bool:
        """
        Handle a Pub/Sub push envelope ({"message": {"data": <base64 JSON>}}).

        Raises:
            BadRequestError: If the envelope cannot be decoded.
        """
        try:
            data = json.loads(base64.b64decode(envelope["message"]["data"]))
            return self.handle_notification(data["emailAddress"], data["historyId"])
        except (KeyError, TypeError, binascii.Error, json.JSONDecodeError) as e:
            raise BadRequestError(f"Malformed push notification: {e}") from e

    def renew_watch_if_expiring(self, account_id: str, now: Optional[datetime] = None) -> bool:
        """
        Set the watch up again if it expires within RENEWAL_WINDOW.

        Returns:
            True if the watch was renewed.
        """
        account = account_repo.get_account(account_id)
        if account is None or not account.watch_expiration:
            return False

        try:
            expiration = datetime.fromisoformat(account.watch_expiration)
        except ValueError:
            logger.warning(f"Unparseable watch expiration for account {account_id}: {account.watch_expiration}")
            expiration = None

        now = now or datetime.now(timezone.utc)
        if expiration is not None and expiration - now > RENEWAL_WINDOW:
            return False

        self.setup_watch(account_id)
        logger.info(f"Renewed Gmail watch for account {account_id}")
        return True

    def _linked_account(self, account_id: str) -> Account:
        account = account_repo.get_account(account_id)
        if account is None:
            raise NotFoundError("Account not found")
        if not (account.google_refresh_token and account.google_refresh_token.strip()):
            raise BadRequestError("Google refresh token is required for push notifications")
        return account
