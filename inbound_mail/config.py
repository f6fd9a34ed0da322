"""Receiver and forwarder configuration loaded from environment variables.

Uses pydantic-settings so every field can be overridden via env vars.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings


class ReceiverConfig(BaseSettings):
    """Settings for one inbound webhook receiver (one provider, one route).

    .. warning::

       With ``require_signature`` left at ``False``, an adapter configured
       without ``api_key`` accepts *every* request as authentic.  That
       default exists for providers that have no signing scheme and for
       local development.  Production deployments should set
       ``INBOUND_MAIL_REQUIRE_SIGNATURE=true`` so a missing secret fails
       at start-up instead of silently disabling verification.
    """

    model_config = {"env_prefix": "INBOUND_MAIL_"}

    provider: str = Field(description="Provider name (mailgun, mandrill, postmark, sendgrid)")
    api_key: SecretStr | None = Field(
        default=None,
        description="Webhook signing key used to verify request authenticity",
    )
    webhook_url: str | None = Field(
        default=None,
        description="Public webhook URL, part of Mandrill's signed data",
    )
    http_post_format: str | None = Field(
        default=None,
        description="Payload shape the provider POSTs: 'parsed' or 'raw'",
    )
    require_signature: bool = Field(
        default=False,
        description="Refuse to build an adapter that cannot verify signatures",
    )
    log_level: str = Field(default="INFO", description="Root log level")
    log_json: bool = Field(default=True, description="Render logs as JSON lines")

    def adapter_options(self) -> dict[str, Any]:
        """Options mapping for :func:`inbound_mail.adapters.create`."""
        options: dict[str, Any] = {
            "api_key": self.api_key.get_secret_value() if self.api_key else None,
            "webhook_url": self.webhook_url,
            "http_post_format": self.http_post_format,
            "require_signature": self.require_signature,
        }
        return {key: value for key, value in options.items() if value is not None}


class ForwarderConfig(BaseSettings):
    """Settings for the ``inbound-mail-post`` forwarding CLI."""

    model_config = {"env_prefix": "INBOUND_MAIL_FORWARD_"}

    url: str = Field(description="Receiver URL to POST the message to")
    secret: SecretStr | None = Field(
        default=None,
        description="Signing key; when set the request carries a Mailgun-style signature",
    )
    timeout_seconds: float = Field(default=30.0, description="HTTP request timeout")
