"""
Mapping between logical folder names and Gmail system labels.
"""
from typing import Iterable, Optional

from email_backend.models import (
    FOLDER_ARCHIVE,
    FOLDER_DRAFTS,
    FOLDER_INBOX,
    FOLDER_SENT,
    FOLDER_STARRED,
    FOLDER_TRASH,
)


LABEL_INBOX = "INBOX"
LABEL_SENT = "SENT"
LABEL_DRAFT = "DRAFT"
LABEL_TRASH = "TRASH"
LABEL_STARRED = "STARRED"
LABEL_UNREAD = "UNREAD"

# archive has no label: archived mail is simply mail without INBOX
_FOLDER_TO_LABEL = {
    FOLDER_INBOX: LABEL_INBOX,
    FOLDER_SENT: LABEL_SENT,
    FOLDER_DRAFTS: LABEL_DRAFT,
    FOLDER_TRASH: LABEL_TRASH,
    FOLDER_STARRED: LABEL_STARRED,
    FOLDER_ARCHIVE: None,
}

_LABEL_TO_FOLDER = {
    label: folder for folder, label in _FOLDER_TO_LABEL.items() if label
}


def folder_to_label(folder: str) -> Optional[str]:
    """
    Map a logical folder to its Gmail label.

    Returns:
        The label id, None for archive, INBOX for unknown folders.
    """
    key = (folder or "").lower()
    if key in _FOLDER_TO_LABEL:
        return _FOLDER_TO_LABEL[key]
    return LABEL_INBOX


def label_to_folder(label: str) -> str:
    """Map a Gmail label back to a logical folder; unknown labels map to inbox."""
    return _LABEL_TO_FOLDER.get((label or "").upper(), FOLDER_INBOX)


def folder_from_labels(label_ids: Optional[Iterable[str]]) -> str:
    """
    Derive the single folder a Gmail message lives in from its labels.

    TRASH wins over everything, then SENT, DRAFT and INBOX. A message with
    none of those labels is archived. STARRED is a flag, never a folder.
    """
    labels = set(label_ids or [])
    for label in (LABEL_TRASH, LABEL_SENT, LABEL_DRAFT, LABEL_INBOX):
        if label in labels:
            return _LABEL_TO_FOLDER[label]
    return FOLDER_ARCHIVE
