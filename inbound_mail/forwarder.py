"""Forward a raw email to a receiver URL, signed the way Mailgun signs.

Used by the ``inbound-mail-post`` CLI to exercise a receiver locally
without a real provider in the loop.
"""

from __future__ import annotations

import secrets
import time

import httpx
import structlog

from .adapters.mailgun import mailgun_signature
from .config import ForwarderConfig
from .errors import ForwardError

logger = structlog.get_logger()


def build_form(raw_message: str, secret: str | None = None) -> dict[str, str]:
    """Form fields for a Mailgun ``raw`` POST of *raw_message*."""
    form = {"body-mime": raw_message}
    if secret:
        timestamp = str(int(time.time()))
        token = secrets.token_hex(25)
        form.update(
            timestamp=timestamp,
            token=token,
            signature=mailgun_signature(secret, timestamp, token),
        )
    return form


class Forwarder:
    """POSTs raw messages to a receiver as form-encoded data."""

    def __init__(self, config: ForwarderConfig, transport: httpx.BaseTransport | None = None) -> None:
        self._config = config
        self._transport = transport

    def forward(self, raw_message: str) -> httpx.Response:
        """POST *raw_message*; raise :class:`ForwardError` unless the receiver answers 200."""
        secret = self._config.secret.get_secret_value() if self._config.secret else None
        form = build_form(raw_message, secret)

        with httpx.Client(
            timeout=httpx.Timeout(self._config.timeout_seconds),
            transport=self._transport,
        ) as client:
            response = client.post(self._config.url, data=form)

        if response.status_code != 200:
            raise ForwardError(response)
        logger.info(
            "message_forwarded",
            url=self._config.url,
            signed=secret is not None,
            status_code=response.status_code,
        )
        return response
