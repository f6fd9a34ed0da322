"""Postmark inbound adapter.

Postmark POSTs a JSON document with PascalCase keys.  It has no request
signing; protect the route with HTTP basic auth or an unguessable URL.

See https://postmarkapp.com/developer/webhooks/inbound-webhook
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Mapping
from typing import Any

from ..errors import MalformedPayloadError
from ..models import Attachment, Message, Provider
from .base import BaseAdapter, build_attachment, ensure_list, load_json, multimap

SPAM_STATUS_HEADER = "X-Spam-Status"

# Top-level fields that carry headers Postmark leaves out of ``Headers``
_ENVELOPE_HEADERS = (
    ("From", "From"),
    ("To", "To"),
    ("Cc", "Cc"),
    ("Bcc", "Bcc"),
    ("ReplyTo", "Reply-To"),
    ("Subject", "Subject"),
    ("Date", "Date"),
)


class PostmarkAdapter(BaseAdapter):
    """Postmark's incoming email adapter."""

    provider = Provider.POSTMARK

    def transform(self, params: Mapping[str, Any]) -> list[Message]:
        pairs: list[tuple[str, Any]] = [
            (header, params[field]) for field, header in _ENVELOPE_HEADERS if params.get(field)
        ]
        for entry in ensure_list(load_json(params, "Headers"), "Headers"):
            if not isinstance(entry, Mapping) or "Name" not in entry:
                raise MalformedPayloadError(f"Postmark header entry is malformed: {entry!r}")
            pairs.append((entry["Name"], entry.get("Value", "")))

        message = self.build_message(
            headers=multimap(pairs),
            text=params.get("TextBody"),
            html=params.get("HtmlBody"),
            attachments=self._attachments(params),
            extensions={
                "message_id": params.get("MessageID"),
                "mailbox_hash": params.get("MailboxHash"),
                "tag": params.get("Tag"),
                "stripped_text_reply": params.get("StrippedTextReply"),
                "original_recipient": params.get("OriginalRecipient"),
            },
        )
        return [message]

    def _attachments(self, params: Mapping[str, Any]) -> list[Attachment]:
        attachments = []
        for item in ensure_list(load_json(params, "Attachments"), "Attachments"):
            if not isinstance(item, Mapping):
                raise MalformedPayloadError(f"Postmark attachment entry is malformed: {item!r}")
            name = item.get("Name")
            try:
                content = base64.b64decode(item.get("Content") or "", validate=True)
            except (binascii.Error, ValueError) as exc:
                raise MalformedPayloadError(f"attachment {name!r} is not valid base64") from exc
            attachments.append(
                build_attachment(
                    name,
                    item.get("ContentType"),
                    content,
                    size=item.get("ContentLength"),
                    content_id=item.get("ContentID") or None,
                )
            )
        return attachments

    def is_spam(self, message: Message) -> bool:
        """SpamAssassin's ``X-Spam-Status`` reads ``Yes, score=...`` for spam."""
        status = message.header(SPAM_STATUS_HEADER)
        return status is not None and status.strip().lower().startswith("yes")
