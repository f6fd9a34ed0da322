"""Exception hierarchy for the inbound mail adapters.

Signature mismatches are *not* exceptions: ``is_valid`` returns ``False``
for forged or replayed requests.  Exceptions are reserved for configuration
mistakes and for payloads that are structurally broken.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx


class InboundMailError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(InboundMailError):
    """An adapter was asked for, or configured, in a way it cannot support."""


class UnknownProviderError(ConfigurationError):
    """No adapter is registered under the requested provider name."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"{provider} is not a recognized provider")


class UnsupportedFormatError(ConfigurationError):
    """The provider's HTTP POST format selector has an unknown value."""

    def __init__(self, provider: str, format: str) -> None:
        self.provider = provider
        self.format = format
        super().__init__(f"Can't handle {provider} {format!r} HTTP POST format")


class MalformedPayloadError(InboundMailError):
    """The webhook payload is truncated or internally inconsistent."""


class MissingFieldError(MalformedPayloadError):
    """A field required by signature verification or parsing is absent."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Missing required field: {field}")


class ForwardError(InboundMailError):
    """The receiver answered a forwarded message with a non-200 status."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        lines = [
            f"{response.http_version} {response.status_code} {response.reason_phrase}",
            *(f"{name}: {value}" for name, value in response.headers.items()),
        ]
        super().__init__("\n".join(lines))
