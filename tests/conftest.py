"""Shared test fixtures."""

from types import SimpleNamespace
from typing import Dict, Optional
from unittest.mock import MagicMock

import pytest
from googleapiclient.errors import HttpError

from email_backend import config
from email_backend.app import build_services
from email_backend.models import Account
from email_backend.storage import account_repo
from email_backend.storage.db import init_db


class FakeObjectStore:
    """In-memory stand-in for S3ObjectStore."""

    def __init__(self, available: bool = True, bucket: str = "test-bucket"):
        self.available = available
        self.bucket = bucket
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}

    def is_available(self) -> bool:
        return self.available

    def put(self, key: str, content: bytes, content_type: str) -> None:
        self.objects[key] = content
        self.content_types[key] = content_type

    def get(self, key: str) -> bytes:
        return self.objects[key]

    def delete(self, key: str) -> None:
        self.objects.pop(key, None)

    def signed_url(self, key: str, expires_in: int = 3600) -> str:
        return f"https://{self.bucket}.example.com/{key}?expires={expires_in}"


def make_request(result: Optional[dict] = None, error: Optional[Exception] = None) -> MagicMock:
    """A Gmail API request whose execute() returns result or raises error."""
    request = MagicMock()
    if error is not None:
        request.execute.side_effect = error
    else:
        request.execute.return_value = result if result is not None else {}
    return request


def http_error(status: int) -> HttpError:
    return HttpError(SimpleNamespace(status=status, reason="error"), b"")


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point storage at a fresh temporary directory and clear remote settings."""
    monkeypatch.setattr(config, "SQLITE_DB_PATH", tmp_path / "test.db")
    monkeypatch.setattr(config, "SECRET_KEY_FILE", tmp_path / "secret.key")
    monkeypatch.setattr(config, "LOG_DIR", tmp_path / "logs")
    monkeypatch.setattr(config, "JWT_SECRET", "test-secret-key-for-signing-tokens-0123")
    monkeypatch.setattr(config, "PASSWORD_HASH_ITERATIONS", 1000)
    monkeypatch.setattr(config, "GOOGLE_CLIENT_ID", None)
    monkeypatch.setattr(config, "GOOGLE_CLIENT_SECRET", None)
    monkeypatch.setattr(config, "GMAIL_PUBSUB_TOPIC", None)
    monkeypatch.setattr(config, "AWS_ACCESS_KEY_ID", None)
    monkeypatch.setattr(config, "AWS_SECRET_ACCESS_KEY", None)
    monkeypatch.setattr(config, "SMTP_HOST", None)
    init_db()
    return tmp_path


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def gmail_service():
    """A mocked Gmail API client."""
    return MagicMock()


@pytest.fixture
def services(object_store, gmail_service):
    return build_services(
        object_store=object_store,
        gmail_service_factory=lambda account: gmail_service,
    )


def _create_account(username: str, email: str, **extra) -> Account:
    return account_repo.save(Account(username=username, email=email, **extra))


@pytest.fixture
def alice():
    """Local-only account."""
    return _create_account("alice", "alice@example.com")


@pytest.fixture
def bob():
    """Local-only account."""
    return _create_account("bob", "bob@example.com")


@pytest.fixture
def carol():
    """Gmail-linked account."""
    return _create_account(
        "carol",
        "carol@gmail.com",
        google_id="google-carol",
        google_access_token="access-token",
        google_refresh_token="refresh-token",
        auth_provider="google",
    )
