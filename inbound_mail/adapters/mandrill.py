"""Mandrill inbound adapter.

Mandrill batches events: one POST carries a JSON array in
``mandrill_events``, and every ``inbound`` event in it becomes a message.

Mandrill signs the request in the ``X-Mandrill-Signature`` header; the
hosting layer must copy that header into the parameter mapping under the
same name.

See https://mailchimp.com/developer/transactional/guides/track-respond-activity-webhooks/
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
from collections.abc import Mapping
from typing import Any

import structlog

from ..errors import ConfigurationError, MalformedPayloadError
from ..models import Attachment, Message, Provider
from .base import (
    BaseAdapter,
    build_attachment,
    ensure_mapping,
    load_json,
    multimap,
    parse_float,
    require,
)

logger = structlog.get_logger()

SIGNATURE_PARAM = "X-Mandrill-Signature"
EVENTS_PARAM = "mandrill_events"
SPAM_THRESHOLD = 5.0


def mandrill_signature(webhook_key: str, webhook_url: str, params: Mapping[str, Any]) -> str:
    """Base64 HMAC-SHA1 of the URL followed by each POST key and value, sorted by key."""
    signed_data = webhook_url + "".join(
        f"{key}{params[key]}" for key in sorted(params) if key != SIGNATURE_PARAM
    )
    digest = hmac.new(
        key=webhook_key.encode("utf-8"),
        msg=signed_data.encode("utf-8"),
        digestmod=hashlib.sha1,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


class MandrillAdapter(BaseAdapter):
    """Mandrill's incoming email adapter."""

    provider = Provider.MANDRILL
    recognizes = frozenset({"mandrill_webhook_key", "mandrill_webhook_url", "webhook_url"})

    def _configure(self, options: Mapping[str, Any]) -> None:
        self._webhook_key: str | None = self._option("mandrill_webhook_key", "api_key")
        self._webhook_url: str | None = self._option("mandrill_webhook_url", "webhook_url")
        if self._webhook_key is not None and self._webhook_url is None:
            raise ConfigurationError("mandrill_webhook_url is required to verify Mandrill signatures")

    @property
    def verifies_signatures(self) -> bool:
        return self._webhook_key is not None

    def is_valid(self, params: Mapping[str, Any]) -> bool:
        """Check ``X-Mandrill-Signature`` over the webhook URL and POST body."""
        # _configure guarantees a URL whenever a key is set
        if self._webhook_key is None or self._webhook_url is None:
            return super().is_valid(params)

        _, signature = require(params, EVENTS_PARAM, SIGNATURE_PARAM)
        expected = mandrill_signature(self._webhook_key, self._webhook_url, params)
        if hmac.compare_digest(str(signature).encode("utf-8"), expected.encode("ascii")):
            return True
        logger.warning("webhook_signature_mismatch", provider=self.provider.value)
        return False

    def transform(self, params: Mapping[str, Any]) -> list[Message]:
        (_,) = require(params, EVENTS_PARAM)
        events = load_json(params, EVENTS_PARAM, default=[])
        if not isinstance(events, list):
            raise MalformedPayloadError(f"{EVENTS_PARAM} must be a JSON array")

        messages = []
        for event in events:
            if not isinstance(event, Mapping) or event.get("event") != "inbound":
                logger.debug(
                    "mandrill_event_skipped",
                    event_type=event.get("event") if isinstance(event, Mapping) else None,
                )
                continue
            msg = event.get("msg")
            if not isinstance(msg, Mapping):
                raise MalformedPayloadError("inbound event has no msg object")
            messages.append(self._build(msg, event.get("ts")))
        return messages

    def _build(self, msg: Mapping[str, Any], ts: Any) -> Message:
        spam_report = ensure_mapping(msg.get("spam_report"), "msg.spam_report")
        spf = ensure_mapping(msg.get("spf"), "msg.spf")
        dkim = ensure_mapping(msg.get("dkim"), "msg.dkim")

        return self.build_message(
            headers=multimap(msg.get("headers") or {}),
            text=msg.get("text"),
            html=msg.get("html"),
            attachments=self._attachments(msg),
            extensions={
                "email": msg.get("email"),
                "sender": msg.get("sender"),
                "tags": msg.get("tags"),
                "spam_report_score": parse_float(spam_report.get("score")),
                "spam_report_matched_rules": spam_report.get("matched_rules"),
                "spf": spf.get("result"),
                "dkim": dkim.get("valid"),
                "ts": ts,
            },
        )

    def _attachments(self, msg: Mapping[str, Any]) -> list[Attachment]:
        attachments = []
        for key, item in ensure_mapping(msg.get("attachments"), "msg.attachments").items():
            item = ensure_mapping(item, f"msg.attachments[{key!r}]")
            content = _content(item, base64_encoded=bool(item.get("base64")))
            attachments.append(
                build_attachment(item.get("name") or key, item.get("type"), content)
            )
        # Inline images are always base64; their name is the content-id
        for key, item in ensure_mapping(msg.get("images"), "msg.images").items():
            item = ensure_mapping(item, f"msg.images[{key!r}]")
            name = item.get("name") or key
            content = _content(item, base64_encoded=True)
            attachments.append(
                build_attachment(name, item.get("type"), content, content_id=name)
            )
        return attachments

    def is_spam(self, message: Message) -> bool:
        score = parse_float(message.extension("spam_report_score"))
        return score is not None and score > SPAM_THRESHOLD


def _content(item: Mapping[str, Any], *, base64_encoded: bool) -> bytes:
    content = item.get("content") or ""
    if not base64_encoded:
        return content.encode("utf-8")
    try:
        return base64.b64decode(content, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedPayloadError(f"attachment {item.get('name')!r} is not valid base64") from exc
