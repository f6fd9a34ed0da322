"""Tests for inbound_mail.adapters.postmark."""

from __future__ import annotations

import json

import pytest

from tests.conftest import make_postmark_payload

from inbound_mail.adapters.postmark import PostmarkAdapter
from inbound_mail.errors import ConfigurationError, MalformedPayloadError


@pytest.fixture
def adapter() -> PostmarkAdapter:
    return PostmarkAdapter()


class TestPostmarkTransform:
    def test_envelope_headers(self, adapter: PostmarkAdapter, postmark_payload: dict):
        msg = adapter.transform(postmark_payload)[0]
        assert msg.header("From") == "a@x.com"
        assert msg.header("To") == "b@x.com"
        assert msg.header("Subject") == "Test Subject"
        assert msg.header("Cc") is None

    def test_header_list_keeps_duplicates(self, adapter: PostmarkAdapter, postmark_payload: dict):
        msg = adapter.transform(postmark_payload)[0]
        assert msg.header_values("Received") == ["by mx1", "by mx2"]

    def test_bodies(self, adapter: PostmarkAdapter, postmark_payload: dict):
        msg = adapter.transform(postmark_payload)[0]
        assert msg.text == "hi"
        assert msg.html_part.body == "<p>hi</p>"

    def test_attachment_decoded(self, adapter: PostmarkAdapter, postmark_payload: dict):
        msg = adapter.transform(postmark_payload)[0]
        assert len(msg.attachments) == 1
        att = msg.attachments[0]
        assert att.filename == "notes.txt"
        assert att.content == b"some notes"
        assert att.size == 10
        assert att.content_id is None

    def test_json_encoded_lists_accepted(self, adapter: PostmarkAdapter, postmark_payload: dict):
        payload = dict(postmark_payload)
        payload["Headers"] = json.dumps(payload["Headers"])
        payload["Attachments"] = json.dumps(payload["Attachments"])
        assert adapter.transform(payload) == adapter.transform(postmark_payload)

    def test_extensions(self, adapter: PostmarkAdapter, postmark_payload: dict):
        msg = adapter.transform(postmark_payload)[0]
        assert msg.extension("mailbox_hash") == "ahoy"
        assert msg.extension("stripped_text_reply") == "hi"
        assert msg.extension("message_id") == "22c74902-a0c1-4511-804f2-341342852c90"
        assert "postmark.tag" not in msg.extensions

    def test_bad_attachment_content(self, adapter: PostmarkAdapter):
        payload = make_postmark_payload(Attachments=[{"Name": "x", "Content": "@@@", "ContentType": "text/plain"}])
        with pytest.raises(MalformedPayloadError):
            adapter.transform(payload)

    def test_malformed_header_entry(self, adapter: PostmarkAdapter):
        with pytest.raises(MalformedPayloadError):
            adapter.transform(make_postmark_payload(Headers=[{"Value": "orphan"}]))

    def test_attachment_entry_not_an_object(self, adapter: PostmarkAdapter):
        with pytest.raises(MalformedPayloadError):
            adapter.transform(make_postmark_payload(Attachments=["notes.txt"]))

    @pytest.mark.parametrize("field", ["Headers", "Attachments"])
    def test_list_field_not_an_array(self, adapter: PostmarkAdapter, field: str):
        with pytest.raises(MalformedPayloadError, match=field):
            adapter.transform(make_postmark_payload(**{field: 42}))


class TestPostmarkIsValid:
    def test_no_signature_scheme(self, adapter: PostmarkAdapter, postmark_payload: dict):
        assert adapter.verifies_signatures is False
        assert adapter.is_valid(postmark_payload) is True

    def test_require_signature_refused(self):
        with pytest.raises(ConfigurationError):
            PostmarkAdapter({"require_signature": True})


class TestPostmarkSpam:
    def test_spam_status_yes(self, adapter: PostmarkAdapter):
        payload = make_postmark_payload(Headers=[{"Name": "X-Spam-Status", "Value": "Yes, score=8.1"}])
        assert adapter.is_spam(adapter.transform(payload)[0]) is True

    def test_spam_status_no(self, adapter: PostmarkAdapter, postmark_payload: dict):
        assert adapter.is_spam(adapter.transform(postmark_payload)[0]) is False

    def test_no_spam_header(self, adapter: PostmarkAdapter):
        msg = adapter.transform(make_postmark_payload(Headers=[]))[0]
        assert adapter.is_spam(msg) is False
