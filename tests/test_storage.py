"""Tests for the SQLite repositories and token encryption."""

from datetime import datetime, timedelta, timezone

import pytest

from email_backend.models import Account, AttachmentRef, EmailMessage, RefreshToken
from email_backend.storage import account_repo, db, message_repo, token_repo
from email_backend.storage.encryption import decrypt_text, encrypt_text
from email_backend.utils.errors import BadRequestError, DecryptionError


class TestEncryption:
    def test_round_trip(self):
        stored = encrypt_text("ya29.secret")
        assert stored != "ya29.secret"
        assert decrypt_text(stored) == "ya29.secret"

    def test_key_is_reused(self, isolated_config):
        stored = encrypt_text("token")
        key = (isolated_config / "secret.key").read_bytes()
        assert decrypt_text(stored) == "token"
        assert (isolated_config / "secret.key").read_bytes() == key

    @pytest.mark.parametrize("garbage", ["", "not base64!!", "Zm9vYmFy"])
    def test_garbage_fails(self, garbage):
        with pytest.raises(DecryptionError):
            decrypt_text(garbage)

    def test_empty_text_is_rejected(self):
        with pytest.raises(ValueError):
            encrypt_text("")


class TestAccounts:
    def test_tokens_are_encrypted_at_rest(self, carol):
        row = db.fetchone("SELECT * FROM accounts WHERE id = ?", (carol.id,))

        assert row["encrypted_google_refresh_token"] not in (None, "refresh-token")
        assert decrypt_text(row["encrypted_google_refresh_token"]) == "refresh-token"
        assert account_repo.get_account(carol.id).google_refresh_token == "refresh-token"

    def test_find_by_filters(self, alice, carol):
        assert account_repo.find_account(email="ALICE@example.com").id == alice.id
        assert account_repo.find_account(google_id="google-carol").id == carol.id
        assert account_repo.find_account(username="alice", email="carol@gmail.com") is None

    def test_unsupported_filter(self):
        with pytest.raises(ValueError):
            account_repo.find_account(password_hash="x")

    def test_duplicate_email(self, alice):
        with pytest.raises(BadRequestError):
            account_repo.save(Account(username="alice2", email="alice@example.com"))

    def test_save_updates_existing(self, alice):
        alice.picture = "https://pic"
        account_repo.save(alice)

        stored = account_repo.get_account(alice.id)
        assert stored.picture == "https://pic"
        assert stored.created_at == alice.created_at

    def test_update_one(self, carol):
        expiry = datetime(2030, 1, 1, tzinfo=timezone.utc)

        assert account_repo.update_one(carol.id, {
            "google_access_token": "new-access",
            "google_token_expiry": expiry,
        })

        stored = account_repo.get_account(carol.id)
        assert stored.google_access_token == "new-access"
        assert stored.google_token_expiry == expiry
        assert stored.google_refresh_token == "refresh-token"

    def test_update_one_clears_token(self, carol):
        account_repo.update_one(carol.id, {"google_refresh_token": None, "google_access_token": ""})

        stored = account_repo.get_account(carol.id)
        assert not stored.has_google_credentials()

    def test_undecryptable_token_reads_as_missing(self, carol):
        db.execute(
            "UPDATE accounts SET encrypted_google_refresh_token = ?, encrypted_google_access_token = ? WHERE id = ?",
            ("garbage", "garbage", carol.id)
        )

        stored = account_repo.get_account(carol.id)
        assert stored.google_refresh_token is None
        assert not stored.has_google_credentials()

    def test_update_one_rejects_unknown_field(self, alice):
        with pytest.raises(ValueError):
            account_repo.update_one(alice.id, {"id": "other"})


class TestMessages:
    def test_starred_is_a_flag_filter(self, alice):
        starred = message_repo.insert_message(EmailMessage(
            account_id=alice.id, sender="bob@example.com", to=alice.email,
            subject="One", folder="archive", is_starred=True,
        ))
        message_repo.insert_message(EmailMessage(
            account_id=alice.id, sender="bob@example.com", to=alice.email, subject="Two", folder="inbox",
        ))

        assert [m.id for m in message_repo.list_messages(alice.id, "starred")] == [starred.id]
        assert message_repo.count_messages(alice.id, "starred") == 1
        assert message_repo.count_messages(alice.id, "inbox", unread_only=True) == 1
        assert message_repo.count_messages(alice.id) == 2

    def test_attachment_references(self, alice):
        ref = AttachmentRef(attachment_id="a" * 32, filename="f.txt", original_name="f.txt", size=3)
        message = message_repo.insert_message(EmailMessage(
            account_id=alice.id, sender=alice.email, to="bob@example.com", folder="sent",
        ))

        message_repo.update_message(message.id, attachments=[ref])

        stored = message_repo.get_message(message.id)
        assert stored.has_attachments
        assert stored.attachments[0].filename == "f.txt"
        assert message_repo.count_referencing_attachment("a" * 32) == 1
        assert message_repo.count_referencing_attachment("b" * 32) == 0

    def test_unknown_field(self, alice):
        with pytest.raises(ValueError):
            message_repo.update_message("x", subject="nope")


class TestRefreshTokens:
    def test_insert_find_delete(self, alice):
        expires = datetime.now(timezone.utc) + timedelta(days=7)
        token_repo.insert_token(RefreshToken(token="abc", account_id=alice.id, expires_at=expires))

        found = token_repo.find_token("abc")
        assert found.account_id == alice.id
        assert found.expires_at == expires

        assert token_repo.delete_token("abc")
        assert not token_repo.delete_token("abc")

    def test_delete_for_account(self, alice, bob):
        for token, owner in (("a1", alice), ("a2", alice), ("b1", bob)):
            token_repo.insert_token(RefreshToken(
                token=token, account_id=owner.id, expires_at=datetime.now(timezone.utc),
            ))

        assert token_repo.delete_for_account(alice.id) == 2
        assert token_repo.find_token("b1") is not None
