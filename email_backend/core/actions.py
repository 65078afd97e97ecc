"""
Email actions façade: read, star, delete and move, singly or in bulk.

Single actions surface every failure. Bulk actions run sequentially and
count failures per id instead of aborting the batch.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from email_backend.core.attachments import AttachmentService
from email_backend.models import FOLDER_TRASH
from email_backend.providers.selector import ProviderSelector
from email_backend.storage import message_repo
from email_backend.utils.errors import EmailBackendError


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BulkResult:
    succeeded: int = 0
    failed: int = 0


class EmailActionsService:

    def __init__(self, selector: ProviderSelector, attachments: AttachmentService):
        self._selector = selector
        self._attachments = attachments

    def toggle_star(self, account_id: str, email_id: str) -> bool:
        """Flip the starred flag. Returns the new value."""
        provider = self._selector.get_provider_for_message(account_id, email_id)
        return provider.toggle_star(account_id, email_id)

    def mark_as_read(self, account_id: str, email_id: str, is_read: bool) -> bool:
        provider = self._selector.get_provider_for_message(account_id, email_id)
        return provider.mark_as_read(account_id, email_id, is_read)

    def delete_email(self, account_id: str, email_id: str) -> bool:
        """
        Move a message to trash, or delete it permanently if already there.

        When a local message is permanently deleted, its attachments that no
        other message references are deleted too.
        """
        provider = self._selector.get_provider_for_message(account_id, email_id)
        if provider is not self._selector.local:
            return provider.delete_email(account_id, email_id)

        existing = message_repo.get_message(email_id)
        deleted = provider.delete_email(account_id, email_id)
        if deleted and existing is not None and existing.folder == FOLDER_TRASH and existing.attachments:
            removed = self._attachments.delete_for_message(existing)
            logger.info(f"Removed {removed} unreferenced attachment(s) of email {email_id}")
        return deleted

    def move_to_folder(self, account_id: str, email_id: str, folder: str) -> bool:
        provider = self._selector.get_provider_for_message(account_id, email_id)
        return provider.move_to_folder(account_id, email_id, folder)

    def set_starred(self, account_id: str, email_id: str, is_starred: bool) -> bool:
        """Bring the starred flag to is_starred, toggling only when it differs."""
        provider = self._selector.get_provider_for_message(account_id, email_id)
        if provider.is_starred(account_id, email_id) == is_starred:
            return is_starred
        return provider.toggle_star(account_id, email_id)

    def modify_email(
        self,
        account_id: str,
        email_id: str,
        is_read: Optional[bool] = None,
        is_starred: Optional[bool] = None,
    ) -> bool:
        """Apply the given read and starred states; None leaves a state alone."""
        if is_read is not None:
            self.mark_as_read(account_id, email_id, is_read)
        if is_starred is not None:
            self.set_starred(account_id, email_id, is_starred)
        return True

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def bulk_delete(self, account_id: str, email_ids: Iterable[str]) -> BulkResult:
        return self._run_bulk("delete", email_ids, lambda email_id: self.delete_email(account_id, email_id))

    def bulk_star(self, account_id: str, email_ids: Iterable[str], is_starred: bool) -> BulkResult:
        return self._run_bulk(
            "star", email_ids, lambda email_id: self.set_starred(account_id, email_id, is_starred) == is_starred
        )

    def bulk_mark_as_read(self, account_id: str, email_ids: Iterable[str], is_read: bool) -> BulkResult:
        return self._run_bulk(
            "mark read", email_ids, lambda email_id: self.mark_as_read(account_id, email_id, is_read)
        )

    def _run_bulk(self, action: str, email_ids: Iterable[str], apply: Callable[[str], bool]) -> BulkResult:
        result = BulkResult()
        for email_id in email_ids:
            try:
                ok = apply(email_id)
            except EmailBackendError as e:
                logger.warning(f"Bulk {action} failed for email {email_id}: {e}")
                ok = False
            if ok:
                result.succeeded += 1
            else:
                result.failed += 1
        logger.info(f"Bulk {action}: {result.succeeded} succeeded, {result.failed} failed")
        return result
