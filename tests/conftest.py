"""Shared test fixtures for the inbound_mail test suite."""

from __future__ import annotations

import base64
import json
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import pytest

MAILGUN_KEY = "key-3ax6xnjp29jd6fds4gc373sgvjxteol0"
MANDRILL_KEY = "mandrill-webhook-key"
MANDRILL_URL = "https://example.com/webhooks/mandrill"


# ------------------------------------------------------------------
# Sample EML builders
# ------------------------------------------------------------------


def _build_plain_email(
    *,
    subject: str = "Test Subject",
    from_addr: str = "a@x.com",
    to_addr: str = "b@x.com",
    body: str = "hi",
) -> str:
    """Build a simple plain-text email as a raw string."""
    msg = MIMEText(body)
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = to_addr
    return msg.as_string()


def _build_multipart_email(
    *,
    subject: str = "Report",
    from_addr: str = "a@x.com",
    to_addr: str = "b@x.com",
    body_text: str = "Plain text",
    body_html: str | None = "<p>HTML</p>",
    attachments: list[tuple[str, str, bytes]] | None = None,
) -> bytes:
    """Build a multipart/mixed email with alternative bodies and attachments."""
    msg = MIMEMultipart("mixed")
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = to_addr
    msg["Received"] = "from mx1.example.com"
    msg["Received"] = "from mx2.example.com"

    alternative = MIMEMultipart("alternative")
    alternative.attach(MIMEText(body_text, "plain", "utf-8"))
    if body_html is not None:
        alternative.attach(MIMEText(body_html, "html", "utf-8"))
    msg.attach(alternative)

    for filename, content_type, payload in attachments or []:
        maintype, subtype = content_type.split("/", 1)
        part = MIMEBase(maintype, subtype)
        part.set_payload(payload)
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", "attachment", filename=filename)
        msg.attach(part)

    return msg.as_bytes()


# ------------------------------------------------------------------
# Provider payload builders
# ------------------------------------------------------------------


def upload(filename: str, content: bytes, content_type: str = "text/plain") -> dict:
    """An uploaded file as the HTTP layer hands it over."""
    return {"filename": filename, "content_type": content_type, "content": content}


def make_mailgun_params(**overrides) -> dict:
    params = {
        "message-headers": json.dumps(
            [
                ["Received", "by mxa.mailgun.org"],
                ["Received", "from mail.x.com"],
                ["From", "a@x.com"],
                ["To", "b@x.com"],
                ["Subject", "Test Subject"],
                ["X-Mailgun-Sflag", "No"],
            ]
        ),
        "body-plain": "hi",
        "body-html": "<p>hi</p>",
        "stripped-text": "hi",
        "stripped-signature": "",
        "stripped-html": "<p>hi</p>",
        "content-id-map": "{}",
        "attachment-count": "0",
        "timestamp": "1363207540",
        "token": "2tkwh4vf2ei1pxbg4kbjbdgkv9zabnmpvtgh8i0nnehwhl7z59",
    }
    params.update(overrides)
    return params


def make_mandrill_msg(**overrides) -> dict:
    msg = {
        "headers": {
            "Received": ["from mail.x.com", "by mandrill"],
            "From": "a@x.com",
            "To": "b@x.com",
            "Subject": "Test Subject",
        },
        "text": "hi",
        "html": "<p>hi</p>",
        "from_email": "a@x.com",
        "email": "b@x.com",
        "sender": None,
        "tags": [],
        "spam_report": {"score": 1.2, "matched_rules": [{"name": "HTML_MESSAGE", "score": 0.0}]},
        "spf": {"result": "pass", "detail": "sender SPF authorized"},
        "dkim": {"signed": True, "valid": True},
        "attachments": {},
        "images": {},
    }
    msg.update(overrides)
    return msg


def make_mandrill_params(*msgs: dict, extra_events: list[dict] | None = None) -> dict:
    events = [{"event": "inbound", "ts": 1363207540, "msg": m} for m in msgs]
    events.extend(extra_events or [])
    return {"mandrill_events": json.dumps(events)}


def make_postmark_payload(**overrides) -> dict:
    payload = {
        "From": "a@x.com",
        "To": "b@x.com",
        "Cc": "",
        "Subject": "Test Subject",
        "Date": "Thu, 5 Apr 2012 16:59:01 +0200",
        "MessageID": "22c74902-a0c1-4511-804f2-341342852c90",
        "MailboxHash": "ahoy",
        "Tag": "",
        "TextBody": "hi",
        "HtmlBody": "<p>hi</p>",
        "StrippedTextReply": "hi",
        "Headers": [
            {"Name": "X-Spam-Status", "Value": "No"},
            {"Name": "X-Spam-Score", "Value": "-0.1"},
            {"Name": "Received", "Value": "by mx1"},
            {"Name": "Received", "Value": "by mx2"},
        ],
        "Attachments": [
            {
                "Name": "notes.txt",
                "Content": base64.b64encode(b"some notes").decode("ascii"),
                "ContentType": "text/plain",
                "ContentLength": 10,
            }
        ],
    }
    payload.update(overrides)
    return payload


SENDGRID_HEADERS = (
    "Received: by mx0047p1mdw1.sendgrid.net\n"
    "Received: from mail.x.com\n"
    "From: a@x.com\n"
    "To: b@x.com\n"
    "Subject: Test Subject\n"
)


def make_sendgrid_params(**overrides) -> dict:
    params = {
        "headers": SENDGRID_HEADERS,
        "text": "hi",
        "html": "<p>hi</p>",
        "from": "a@x.com",
        "to": "b@x.com",
        "subject": "Test Subject",
        "charsets": json.dumps({"to": "UTF-8", "html": "UTF-8", "subject": "UTF-8", "from": "UTF-8", "text": "iso-8859-1"}),
        "envelope": json.dumps({"to": ["b@x.com"], "from": "a@x.com"}),
        "dkim": "{@x.com : pass}",
        "SPF": "pass",
        "spam_score": "0.3",
        "spam_report": "Spam detection software ...",
        "attachments": "0",
    }
    params.update(overrides)
    return params


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------


@pytest.fixture
def plain_eml() -> str:
    return _build_plain_email()


@pytest.fixture
def multipart_eml_bytes() -> bytes:
    return _build_multipart_email(
        attachments=[
            ("report.pdf", "application/pdf", b"%PDF-1.4 fake pdf content"),
            ("data.csv", "text/csv", b"col1,col2\nval1,val2\n"),
        ],
    )


@pytest.fixture
def mailgun_params() -> dict:
    return make_mailgun_params()


@pytest.fixture
def postmark_payload() -> dict:
    return make_postmark_payload()


@pytest.fixture
def sendgrid_params() -> dict:
    return make_sendgrid_params()


@pytest.fixture(autouse=True)
def _restore_adapter_registry():
    """Restore ``ADAPTERS`` with its original key order after each test.

    ``monkeypatch.delitem`` re-inserts a removed key at the end of the dict,
    which would leak a changed provider order into later tests.
    """
    from inbound_mail.adapters import registry

    snapshot = dict(registry.ADAPTERS)
    yield
    registry.ADAPTERS.clear()
    registry.ADAPTERS.update(snapshot)
