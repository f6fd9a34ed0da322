"""Mailgun inbound adapter.

Mailgun POSTs either fully parsed fields (``parsed``, routes ending in
``/messages``) or the raw MIME document in ``body-mime`` (``raw``, routes
ending in ``/mime``).

See https://documentation.mailgun.com/docs/mailgun/user-manual/receive-forward-store/
"""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Mapping
from typing import Any

import structlog

from ..errors import MissingFieldError
from ..models import Message, Provider
from .base import (
    PARSED,
    RAW,
    BaseAdapter,
    build_attachment,
    fill_missing_headers,
    load_json,
    multimap,
    parse_count,
    read_upload,
    require,
)

logger = structlog.get_logger()

SPAM_FLAG_HEADER = "X-Mailgun-Sflag"


def mailgun_signature(api_key: str, timestamp: str, token: str) -> str:
    """Hex HMAC-SHA256 of ``timestamp + token`` keyed with the API key."""
    return hmac.new(
        key=api_key.encode("utf-8"),
        msg=f"{timestamp}{token}".encode("utf-8"),
        digestmod=hashlib.sha256,
    ).hexdigest()


class MailgunAdapter(BaseAdapter):
    """Mailgun's incoming email adapter."""

    provider = Provider.MAILGUN
    recognizes = frozenset({"mailgun_api_key", "http_post_format"})

    def _configure(self, options: Mapping[str, Any]) -> None:
        self._api_key: str | None = self._option("mailgun_api_key", "api_key")
        self._http_post_format = self._select_format(options.get("http_post_format"), (PARSED, RAW))

    @property
    def verifies_signatures(self) -> bool:
        return self._api_key is not None

    def is_valid(self, params: Mapping[str, Any]) -> bool:
        """Check Mailgun's ``signature`` against ``timestamp`` and ``token``.

        Raises :class:`MissingFieldError` if any of the three is absent.
        """
        if self._api_key is None:
            return super().is_valid(params)

        timestamp, token, signature = require(params, "timestamp", "token", "signature")
        expected = mailgun_signature(self._api_key, str(timestamp), str(token))
        if hmac.compare_digest(str(signature).encode("utf-8"), expected.encode("ascii")):
            return True
        logger.warning("webhook_signature_mismatch", provider=self.provider.value)
        return False

    def transform(self, params: Mapping[str, Any]) -> list[Message]:
        if self._http_post_format == RAW:
            (body_mime,) = require(params, "body-mime")
            return [self.message_from_mime(body_mime)]
        return [self._transform_parsed(params)]

    def _transform_parsed(self, params: Mapping[str, Any]) -> Message:
        # message-headers carries every header with its original repeats;
        # the individual fields only fill gaps.
        headers = multimap(load_json(params, "message-headers", default=[]))
        fill_missing_headers(
            headers,
            {
                "From": params.get("from"),
                "To": params.get("recipient"),
                "Subject": params.get("subject"),
            },
        )

        attachments = []
        for n in range(1, parse_count(params, "attachment-count") + 1):
            key = f"attachment-{n}"
            if params.get(key) is None:
                raise MissingFieldError(key)
            filename, content_type, content = read_upload(params[key])
            attachments.append(build_attachment(filename, content_type, content))

        return self.build_message(
            headers=headers,
            text=params.get("body-plain"),
            html=params.get("body-html"),
            attachments=attachments,
            extensions={
                "stripped_text": params.get("stripped-text"),
                "stripped_signature": params.get("stripped-signature"),
                "stripped_html": params.get("stripped-html"),
                "content_id_map": load_json(params, "content-id-map"),
            },
        )

    def is_spam(self, message: Message) -> bool:
        """Mailgun sets ``X-Mailgun-Sflag: Yes`` when spam filtering is on for the domain."""
        return message.header(SPAM_FLAG_HEADER) == "Yes"
