"""Tests for error status mapping and user-facing messages."""

import pytest

from email_backend.utils.errors import (
    BadRequestError,
    DecryptionError,
    EmailBackendError,
    NotFoundError,
    OAuthError,
    TokenRefreshError,
    UnauthorizedError,
    UnavailableError,
    UpstreamError,
    http_status_for,
    human_friendly_message,
)


@pytest.mark.parametrize("exc,status", [
    (NotFoundError("Email not found"), 404),
    (UnauthorizedError("nope"), 401),
    (BadRequestError("bad"), 400),
    (UnavailableError("down"), 503),
    (OAuthError("denied"), 401),
    (TokenRefreshError("revoked"), 401),
    (DecryptionError("garbled"), 500),
    (UpstreamError("rate limited", 429), 429),
    (UpstreamError("no status"), 502),
    (UpstreamError("odd status", 302), 502),
    (RuntimeError("boom"), 500),
])
def test_http_status_for(exc, status):
    assert http_status_for(exc) == status


def test_messages_keep_specific_text():
    assert human_friendly_message(NotFoundError("Email not found")) == "Email not found"
    assert human_friendly_message(BadRequestError("No valid recipients")) == "Invalid request: No valid recipients"


def test_refresh_failure_asks_to_sign_in_again():
    assert "sign in with Google again" in human_friendly_message(TokenRefreshError("invalid_grant"))


def test_upstream_details_are_hidden():
    message = human_friendly_message(UpstreamError("HttpError 500 <internal>", 500))
    assert "<internal>" not in message


def test_fallback_messages():
    assert human_friendly_message(NotFoundError()) == "The requested item could not be found."
    assert human_friendly_message(EmailBackendError()) == "An unexpected error occurred."
    assert human_friendly_message(ValueError("x")) == "Invalid input: x"
    assert human_friendly_message(KeyError()) == "An error occurred: Unknown error"
