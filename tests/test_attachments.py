"""Tests for the attachment subsystem."""

import base64

import pytest

from email_backend import config
from email_backend.core.attachments import AttachmentService
from email_backend.models import EmailMessage
from email_backend.storage import attachment_repo, db, message_repo
from email_backend.utils.errors import BadRequestError, NotFoundError, UnavailableError
from tests.conftest import FakeObjectStore


@pytest.fixture
def service(object_store):
    return AttachmentService(object_store)


@pytest.fixture
def inline_service():
    return AttachmentService(FakeObjectStore(available=False))


class TestUpload:
    def test_upload_to_object_store(self, service, object_store):
        ref = service.upload(b"%PDF-1.4", "report.pdf", "application/pdf")

        assert ref.storage_type == "s3"
        assert ref.s3_bucket == "test-bucket"
        assert ref.s3_key.startswith("attachments/")
        assert ref.s3_key.endswith("-report.pdf")
        assert ref.original_name == "report.pdf"
        assert ref.size == 8
        assert object_store.objects[ref.s3_key] == b"%PDF-1.4"
        assert object_store.content_types[ref.s3_key] == "application/pdf"
        assert ref.download_url.startswith("https://test-bucket.example.com/")

    def test_upload_inline_when_store_unavailable(self, inline_service):
        ref = inline_service.upload(b"hello", "note.txt", "text/plain")

        stored = attachment_repo.get_attachment(ref.attachment_id)
        assert stored.storage_type == "database"
        assert stored.s3_bucket == "database"
        assert stored.s3_key.startswith("db-storage/")
        assert base64.b64decode(stored.file_content) == b"hello"
        assert ref.download_url == f"/api/emails/attachments/{ref.attachment_id}/download"

    def test_upload_inline_without_store(self):
        ref = AttachmentService().upload(b"hello", "note.txt")
        assert ref.storage_type == "database"
        assert ref.mime_type == "application/octet-stream"

    def test_generated_names_are_unique(self, service):
        first = service.upload(b"a", "same.txt")
        second = service.upload(b"b", "same.txt")
        assert first.filename != second.filename

    def test_filename_is_sanitized(self, service):
        ref = service.upload(b"a", "../etc/passwd")
        assert "/" not in ref.filename

    @pytest.mark.parametrize("content,filename,message", [
        (None, "a.txt", "No file provided"),
        (b"", "a.txt", "Empty file provided"),
        (b"data", "", "File must have a name"),
    ])
    def test_invalid_uploads(self, service, content, filename, message):
        with pytest.raises(BadRequestError, match=message):
            service.upload(content, filename)

    def test_inline_size_cap(self, inline_service, monkeypatch):
        monkeypatch.setattr(config, "MAX_INLINE_ATTACHMENT_BYTES", 4)
        with pytest.raises(BadRequestError, match="File too large"):
            inline_service.upload(b"12345", "big.bin")

    def test_inline_size_cap_uses_received_bytes(self, inline_service, monkeypatch):
        monkeypatch.setattr(config, "MAX_INLINE_ATTACHMENT_BYTES", 4)
        with pytest.raises(BadRequestError):
            inline_service.upload(b"0123456789", "big.bin", size=1)
        assert db.fetchone("SELECT COUNT(*) AS count FROM attachments")["count"] == 0

    def test_declared_size_must_match_content(self, service, object_store):
        with pytest.raises(BadRequestError, match="does not match"):
            service.upload(b"0123456789", "big.bin", size=1)
        assert object_store.objects == {}

    def test_matching_declared_size_is_accepted(self, service):
        assert service.upload(b"12345", "ok.bin", size=5).size == 5

    def test_size_cap_does_not_apply_to_object_store(self, service, monkeypatch):
        monkeypatch.setattr(config, "MAX_INLINE_ATTACHMENT_BYTES", 4)
        assert service.upload(b"12345", "big.bin").storage_type == "s3"

    def test_upload_many(self, service):
        refs = service.upload_many([(b"a", "a.txt", "text/plain"), (b"b", "b.txt", None)])
        assert [r.original_name for r in refs] == ["a.txt", "b.txt"]

    def test_upload_many_requires_files(self, service):
        with pytest.raises(BadRequestError):
            service.upload_many([])


class TestContent:
    def test_content_from_object_store(self, service):
        ref = service.upload(b"remote", "r.txt")
        assert service.get_content(ref.attachment_id) == b"remote"

    def test_content_from_database(self, inline_service):
        ref = inline_service.upload(b"inline", "i.txt")
        assert inline_service.get_content(ref.attachment_id) == b"inline"

    def test_content_follows_recorded_storage(self, object_store):
        ref = AttachmentService(object_store).upload(b"remote", "r.txt")
        object_store.available = False
        with pytest.raises(UnavailableError):
            AttachmentService(object_store).get_content(ref.attachment_id)

    def test_unknown_attachment(self, service):
        with pytest.raises(NotFoundError):
            service.get_content("0" * 32)

    def test_outgoing_carries_content_and_locator(self, service):
        ref = service.upload(b"data", "d.bin", "application/octet-stream")
        outgoing = service.get_outgoing(ref.attachment_id)
        assert outgoing.content == b"data"
        assert outgoing.filename == "d.bin"
        assert outgoing.to_ref().s3_key == ref.s3_key
        assert outgoing.to_ref().storage_type == "s3"


class TestLinking:
    def test_link_to_message(self, service):
        first = service.upload(b"a", "a.txt")
        second = service.upload(b"b", "b.txt")
        email_id = "f" * 32

        linked = service.link_to_message([first.attachment_id, second.attachment_id], email_id)

        assert linked == 2
        assert {r.attachment_id for r in service.list_for_message(email_id)} == {
            first.attachment_id, second.attachment_id,
        }

    def test_unknown_ids_are_skipped(self, service):
        ref = service.upload(b"a", "a.txt")
        linked = service.link_to_message(["0" * 32, ref.attachment_id], "f" * 32)
        assert linked == 1


class TestDelete:
    def test_delete_removes_object_and_record(self, service, object_store):
        ref = service.upload(b"a", "a.txt")

        service.delete(ref.attachment_id)

        assert ref.s3_key not in object_store.objects
        assert attachment_repo.get_attachment(ref.attachment_id) is None

    def test_delete_for_message_keeps_shared_attachments(self, service, alice, bob):
        shared = service.upload(b"shared", "shared.txt")
        only = service.upload(b"only", "only.txt")
        removed = EmailMessage(
            id="a" * 32, account_id=alice.id, attachments=[
                service.get_outgoing(shared.attachment_id).to_ref(),
                service.get_outgoing(only.attachment_id).to_ref(),
            ],
        )
        message_repo.insert_message(EmailMessage(
            account_id=bob.id, subject="copy", attachments=[service.get_outgoing(shared.attachment_id).to_ref()],
        ))

        assert service.delete_for_message(removed) == 1
        assert attachment_repo.get_attachment(shared.attachment_id) is not None
        assert attachment_repo.get_attachment(only.attachment_id) is None
