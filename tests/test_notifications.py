"""Tests for Gmail push notifications."""

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest

from email_backend import config
from email_backend.storage import account_repo
from email_backend.utils.errors import (
    BadRequestError,
    NotFoundError,
    UnavailableError,
    UpstreamError,
)
from tests.conftest import http_error, make_request


TOPIC = "projects/mail-app/topics/gmail"
NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def push(services):
    return services.push


@pytest.fixture
def topic(monkeypatch):
    monkeypatch.setattr(config, "GMAIL_PUBSUB_TOPIC", TOPIC)
    return TOPIC


@pytest.fixture
def users(gmail_service):
    users = gmail_service.users.return_value
    users.watch.return_value = make_request({"historyId": 4321, "expiration": "1714564800000"})
    users.stop.return_value = make_request()
    return users


def envelope(payload):
    data = base64.b64encode(json.dumps(payload).encode()).decode()
    return {"message": {"data": data, "messageId": "1"}, "subscription": "projects/mail-app/subscriptions/push"}


class TestWatch:
    def test_setup_watch(self, push, users, topic, carol):
        state = push.setup_watch(carol.id)

        users.watch.assert_called_once_with(
            userId="me", body={"labelIds": ["INBOX"], "topicName": TOPIC},
        )
        assert state.history_id == "4321"
        assert state.expiration == "2024-05-01T12:00:00+00:00"
        stored = account_repo.get_account(carol.id)
        assert stored.watch_history_id == "4321"
        assert stored.watch_expiration == state.expiration

    def test_requires_refresh_token(self, push, users, topic, alice):
        with pytest.raises(BadRequestError):
            push.setup_watch(alice.id)
        users.watch.assert_not_called()

    def test_unknown_account(self, push, topic):
        with pytest.raises(NotFoundError):
            push.setup_watch("0" * 32)

    def test_requires_topic(self, push, users, carol):
        with pytest.raises(UnavailableError):
            push.setup_watch(carol.id)

    def test_gmail_rejects_watch(self, push, users, topic, carol):
        users.watch.return_value = make_request(error=http_error(403))
        with pytest.raises(UpstreamError) as excinfo:
            push.setup_watch(carol.id)
        assert excinfo.value.status == 403
        assert account_repo.get_account(carol.id).watch_history_id is None

    def test_missing_mailbox(self, push, users, topic, carol):
        users.watch.return_value = make_request(error=http_error(404))
        with pytest.raises(NotFoundError, match="Gmail mailbox not found"):
            push.setup_watch(carol.id)

    def test_stop_failure_keeps_state(self, push, users, topic, carol):
        push.setup_watch(carol.id)
        users.stop.return_value = make_request(error=http_error(500))

        with pytest.raises(UpstreamError):
            push.stop_watch(carol.id)
        assert account_repo.get_account(carol.id).watch_history_id == "4321"

    def test_stop_watch_clears_state(self, push, users, topic, carol):
        push.setup_watch(carol.id)

        push.stop_watch(carol.id)

        users.stop.assert_called_once_with(userId="me")
        stored = account_repo.get_account(carol.id)
        assert stored.watch_history_id is None
        assert stored.watch_expiration is None


class TestNotifications:
    def test_known_mailbox(self, push, carol):
        assert push.handle_notification("Carol@Gmail.com", 999) is True
        assert account_repo.get_account(carol.id).watch_history_id == "999"

    def test_unknown_mailbox(self, push):
        assert push.handle_notification("nobody@gmail.com", 1) is False

    def test_pubsub_envelope(self, push, carol):
        result = push.process_pubsub_message(envelope({"emailAddress": carol.email, "historyId": 5000}))

        assert result is True
        assert account_repo.get_account(carol.id).watch_history_id == "5000"

    @pytest.mark.parametrize("bad", [
        {},
        {"message": {}},
        {"message": {"data": "%%% not base64 %%%"}},
        {"message": {"data": base64.b64encode(b"not json").decode()}},
        {"message": {"data": base64.b64encode(b'{"historyId": 1}').decode()}},
    ])
    def test_malformed_envelope(self, push, bad):
        with pytest.raises(BadRequestError):
            push.process_pubsub_message(bad)


class TestRenewal:
    def set_expiration(self, account, value):
        account_repo.update_one(account.id, {"watch_expiration": value})

    def test_renews_when_expiring_soon(self, push, users, topic, carol):
        self.set_expiration(carol, (NOW + timedelta(hours=2)).isoformat())

        assert push.renew_watch_if_expiring(carol.id, now=NOW) is True
        users.watch.assert_called_once()

    def test_keeps_watch_with_time_left(self, push, users, topic, carol):
        self.set_expiration(carol, (NOW + timedelta(days=3)).isoformat())

        assert push.renew_watch_if_expiring(carol.id, now=NOW) is False
        users.watch.assert_not_called()

    def test_no_watch_to_renew(self, push, users, topic, carol):
        assert push.renew_watch_if_expiring(carol.id, now=NOW) is False
        assert push.renew_watch_if_expiring("0" * 32, now=NOW) is False

    def test_unparseable_expiration_is_renewed(self, push, users, topic, carol):
        self.set_expiration(carol, "sometime")

        assert push.renew_watch_if_expiring(carol.id, now=NOW) is True
