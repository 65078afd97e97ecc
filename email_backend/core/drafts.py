"""
Drafts: unsent messages saved per account.
"""
import logging
from typing import List, Optional

from email_backend.models import Draft
from email_backend.storage import draft_repo
from email_backend.utils.errors import NotFoundError


logger = logging.getLogger(__name__)


class DraftsService:

    def create_draft(
        self,
        account_id: str,
        to: str,
        subject: str,
        body: str,
        cc: Optional[str] = None,
        bcc: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> Draft:
        draft = draft_repo.insert_draft(Draft(
            account_id=account_id,
            to=to or "",
            subject=subject or "",
            body=body or "",
            cc=cc,
            bcc=bcc,
            reply_to=reply_to,
        ))
        logger.info(f"Created draft {draft.id} for account {account_id}")
        return draft

    def update_draft(self, account_id: str, draft_id: str, **fields) -> Draft:
        """
        Update some fields of a draft.

        Args:
            account_id: Owner of the draft.
            draft_id: The draft ID.
            **fields: Any of to, subject, body, cc, bcc, reply_to. Fields
                passed as None are left unchanged.

        Raises:
            NotFoundError: If the draft does not exist or belongs to another account.
        """
        changes = {key: value for key, value in fields.items() if value is not None}
        if not draft_repo.update_draft(draft_id, account_id, **changes):
            raise NotFoundError("Draft not found")
        return self.get_draft(account_id, draft_id)

    def list_drafts(self, account_id: str) -> List[Draft]:
        """Drafts of an account, most recently updated first."""
        return draft_repo.list_drafts(account_id)

    def get_draft(self, account_id: str, draft_id: str) -> Draft:
        draft = draft_repo.get_draft(draft_id, account_id)
        if draft is None:
            raise NotFoundError("Draft not found")
        return draft

    def delete_draft(self, account_id: str, draft_id: str) -> None:
        if not draft_repo.delete_draft(draft_id, account_id):
            raise NotFoundError("Draft not found")
        logger.info(f"Deleted draft {draft_id} for account {account_id}")
