"""SendGrid Inbound Parse adapter.

With "POST the raw, full MIME message" unchecked SendGrid sends parsed
fields (``parsed``); with it checked the document arrives in ``email``
(``raw``).  Spam and authentication results are POSTed in both modes.
Inbound Parse does not sign its requests.

See https://www.twilio.com/docs/sendgrid/for-developers/parsing-email/setting-up-the-inbound-parse-webhook
"""

from __future__ import annotations

import email.parser
import email.policy
from collections.abc import Mapping
from typing import Any

from ..errors import MissingFieldError
from ..models import Attachment, Message, Provider
from .base import (
    PARSED,
    RAW,
    BaseAdapter,
    build_attachment,
    ensure_mapping,
    fill_missing_headers,
    load_json,
    multimap,
    parse_count,
    parse_float,
    read_upload,
    require,
)

SPAM_THRESHOLD = 5.0


class SendGridAdapter(BaseAdapter):
    """SendGrid's incoming email adapter."""

    provider = Provider.SENDGRID
    recognizes = frozenset({"http_post_format"})

    def _configure(self, options: Mapping[str, Any]) -> None:
        self._http_post_format = self._select_format(options.get("http_post_format"), (PARSED, RAW))

    def transform(self, params: Mapping[str, Any]) -> list[Message]:
        extensions = {
            "spam_score": parse_float(params.get("spam_score")),
            "spam_report": params.get("spam_report"),
            "dkim": params.get("dkim"),
            "spf": params.get("SPF"),
            "envelope": load_json(params, "envelope"),
        }

        if self._http_post_format == RAW:
            (raw,) = require(params, "email")
            return [self.message_from_mime(raw, extensions)]

        charsets = ensure_mapping(load_json(params, "charsets"), "charsets")
        headers = _parse_header_block(params.get("headers") or "")
        fill_missing_headers(
            headers,
            {
                "From": params.get("from"),
                "To": params.get("to"),
                "Subject": params.get("subject"),
            },
        )
        message = self.build_message(
            headers=headers,
            text=params.get("text"),
            html=params.get("html"),
            text_charset=charsets.get("text"),
            html_charset=charsets.get("html"),
            attachments=self._attachments(params),
            extensions=extensions,
        )
        return [message]

    def _attachments(self, params: Mapping[str, Any]) -> list[Attachment]:
        info = ensure_mapping(load_json(params, "attachment-info"), "attachment-info")
        attachments = []
        for n in range(1, parse_count(params, "attachments") + 1):
            key = f"attachment{n}"
            if params.get(key) is None:
                raise MissingFieldError(key)
            filename, content_type, content = read_upload(params[key])
            meta = ensure_mapping(info.get(key), f"attachment-info[{key!r}]")
            attachments.append(
                build_attachment(
                    meta.get("filename") or meta.get("name") or filename,
                    meta.get("type") or content_type,
                    content,
                    content_id=meta.get("content-id"),
                )
            )
        return attachments

    def is_spam(self, message: Message) -> bool:
        score = parse_float(message.extension("spam_score"))
        return score is not None and score > SPAM_THRESHOLD


def _parse_header_block(block: str) -> dict[str, list[str]]:
    """Parse SendGrid's raw ``headers`` text, keeping repeated names."""
    parsed = email.parser.HeaderParser(policy=email.policy.default).parsestr(block)
    return multimap((name, str(value)) for name, value in parsed.items())
