"""Tests for the folder/label mapping."""

import pytest

from email_backend.providers.base import MAILBOX_LAYOUT, build_mailboxes, total_pages
from email_backend.providers.folders import folder_from_labels, folder_to_label, label_to_folder


@pytest.mark.parametrize("folder,label", [
    ("inbox", "INBOX"),
    ("sent", "SENT"),
    ("drafts", "DRAFT"),
    ("trash", "TRASH"),
    ("starred", "STARRED"),
])
def test_folder_label_roundtrip(folder, label):
    assert folder_to_label(folder) == label
    assert label_to_folder(label) == folder


def test_archive_has_no_label():
    assert folder_to_label("archive") is None


def test_unknown_folder_maps_to_inbox():
    assert folder_to_label("spam") == "INBOX"
    assert folder_to_label("") == "INBOX"


def test_unknown_label_maps_to_inbox():
    assert label_to_folder("CATEGORY_PROMOTIONS") == "inbox"
    assert label_to_folder("Label_42") == "inbox"


class TestFolderFromLabels:
    def test_trash_wins(self):
        assert folder_from_labels(["INBOX", "TRASH", "STARRED"]) == "trash"

    def test_sent(self):
        assert folder_from_labels(["SENT", "INBOX"]) == "sent"

    def test_inbox(self):
        assert folder_from_labels(["INBOX", "UNREAD", "STARRED"]) == "inbox"

    def test_no_folder_label_is_archive(self):
        assert folder_from_labels(["STARRED", "IMPORTANT"]) == "archive"
        assert folder_from_labels(None) == "archive"


def test_build_mailboxes_keeps_fixed_layout():
    mailboxes = build_mailboxes({"inbox": 3, "trash": 1})
    assert [m.id for m in mailboxes] == ["inbox", "starred", "sent", "drafts", "archive", "trash"]
    assert [m.icon for m in mailboxes] == [icon for _, _, icon in MAILBOX_LAYOUT]
    assert mailboxes[0].count == 3
    assert mailboxes[1].count == 0
    assert mailboxes[-1].count == 1


def test_total_pages():
    assert total_pages(0, 50) == 0
    assert total_pages(50, 50) == 1
    assert total_pages(51, 50) == 2
