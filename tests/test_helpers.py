"""Tests for helper functions."""

import base64

from email_backend.utils.helpers import (
    extract_attachments_from_payload,
    extract_body_from_payload,
    extract_email_address,
    generate_preview,
    get_header,
    is_local_id,
    new_id,
    parse_email_list,
    reply_subject,
    resolve_reply_recipients,
    sanitize_filename,
)


def _b64url(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode()).decode().rstrip("=")


class TestIds:
    def test_new_id_is_local(self):
        assert is_local_id(new_id())

    def test_gmail_ids_are_not_local(self):
        assert not is_local_id("18c2f0a1b2c3d4e5")
        assert not is_local_id("")
        assert not is_local_id(None)
        assert not is_local_id("A" * 32)


class TestAddresses:
    def test_extract_email_address(self):
        assert extract_email_address("John Doe <john@example.com>") == "john@example.com"
        assert extract_email_address("jane@example.com") == "jane@example.com"
        assert extract_email_address("") == ""

    def test_parse_email_list_drops_invalid(self):
        result = parse_email_list("a@example.com, Bob <b@example.com>, not-an-address")
        assert result == ["a@example.com", "b@example.com"]

    def test_parse_email_list_empty(self):
        assert parse_email_list(None) == []
        assert parse_email_list("   ") == []


class TestReplyRecipients:
    def test_reply_only_addresses_sender(self):
        result = resolve_reply_recipients(
            "Bob <bob@example.com>", ["alice@example.com", "dave@example.com"], [], "alice@example.com", False
        )
        assert result == ["bob@example.com"]

    def test_reply_all_merges_and_removes_self(self):
        result = resolve_reply_recipients(
            "bob@example.com",
            ["Alice@Example.com", "dave@example.com"],
            ["erin@example.com", "BOB@example.com"],
            "alice@example.com",
            True,
        )
        assert result == ["bob@example.com", "dave@example.com", "erin@example.com"]

    def test_reply_to_own_message_is_empty(self):
        assert resolve_reply_recipients("alice@example.com", [], [], "alice@example.com", False) == []

    def test_own_address_with_display_name_is_removed(self):
        assert resolve_reply_recipients("alice@example.com", [], [], "Alice <alice@example.com>", False) == []

    def test_reply_all_removes_own_address_in_any_case(self):
        result = resolve_reply_recipients(
            "bob@example.com", ["ALICE@example.com"], ["alice@EXAMPLE.com"], "Alice <Alice@Example.com>", True
        )
        assert result == ["bob@example.com"]


class TestSubjectsAndPreviews:
    def test_reply_subject_prefixes_once(self):
        assert reply_subject("Hello") == "Re: Hello"
        assert reply_subject("Re: Hello") == "Re: Hello"
        assert reply_subject("RE: Hello") == "RE: Hello"
        assert reply_subject("") == "Re: "

    def test_generate_preview_strips_markup(self):
        assert generate_preview("<p>Hi&nbsp;there</p>") == "Hi there"

    def test_generate_preview_truncates(self):
        assert generate_preview("x" * 200, 100) == "x" * 100 + "..."

    def test_sanitize_filename(self):
        assert sanitize_filename('re:port/"q1".pdf') == "re_port__q1_.pdf"
        assert sanitize_filename("  ") == "attachment"


class TestGmailPayload:
    def test_get_header_is_case_insensitive(self):
        headers = [{"name": "Subject", "value": "Hi"}]
        assert get_header(headers, "subject") == "Hi"
        assert get_header(headers, "From") is None

    def test_body_prefers_html(self):
        payload = {
            "mimeType": "multipart/alternative",
            "parts": [
                {"mimeType": "text/plain", "body": {"data": _b64url("plain")}},
                {"mimeType": "text/html", "body": {"data": _b64url("<b>html</b>")}},
            ],
        }
        assert extract_body_from_payload(payload) == "<b>html</b>"

    def test_body_descends_into_nested_multipart(self):
        payload = {
            "mimeType": "multipart/mixed",
            "parts": [
                {
                    "mimeType": "multipart/alternative",
                    "parts": [{"mimeType": "text/plain", "body": {"data": _b64url("nested")}}],
                },
            ],
        }
        assert extract_body_from_payload(payload) == "nested"

    def test_attachments_are_collected(self):
        payload = {
            "mimeType": "multipart/mixed",
            "parts": [
                {"mimeType": "text/plain", "body": {"data": _b64url("body")}},
                {
                    "mimeType": "application/pdf",
                    "filename": "report.pdf",
                    "body": {"attachmentId": "att-1", "size": 42},
                },
            ],
        }
        assert extract_attachments_from_payload(payload) == [{
            "filename": "report.pdf",
            "mime_type": "application/pdf",
            "size": 42,
            "attachment_id": "att-1",
        }]
