"""Canonical message model shared by every provider adapter.

Whatever a provider POSTs, adapters normalize it into a :class:`Message`
so downstream code never needs to know which provider delivered it.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

TEXT_PLAIN = "text/plain"
TEXT_HTML = "text/html"
DEFAULT_ATTACHMENT_TYPE = "application/octet-stream"


class Provider(str, Enum):
    """Email providers with a registered inbound adapter."""

    MAILGUN = "mailgun"
    MANDRILL = "mandrill"
    POSTMARK = "postmark"
    SENDGRID = "sendgrid"


class BodyPart(BaseModel):
    """A single text or HTML body of a message."""

    content_type: str = Field(default=TEXT_PLAIN, description="MIME type of the part")
    charset: str | None = Field(default=None, description="Declared character set")
    body: str | bytes = Field(default="", description="Decoded body content")


class Attachment(BaseModel):
    """A file attached to the message."""

    filename: str = Field(description="Original filename")
    content_type: str = Field(
        default=DEFAULT_ATTACHMENT_TYPE,
        description="MIME type (e.g. application/pdf)",
    )
    size: int | None = Field(default=None, description="Size of the content in bytes")
    content: bytes = Field(default=b"", description="Raw attachment bytes")
    content_id: str | None = Field(
        default=None,
        description="Content-ID for inline parts referenced from the HTML body",
    )

    @model_validator(mode="after")
    def _default_size(self) -> Attachment:
        if self.size is None:
            self.size = len(self.content)
        return self


class Message(BaseModel):
    """Normalized, provider-agnostic inbound email.

    ``headers`` is a multimap: each name maps to every value the provider
    sent for it, in order.  Use :meth:`header` and :meth:`header_values`
    for case-insensitive lookups.

    ``extensions`` holds fields with no canonical slot, keyed as
    ``"<provider>.<name>"``.  Empty values are never stored, so a key's
    presence means the provider actually sent something.
    """

    provider: Provider = Field(description="Adapter that produced the message")
    headers: dict[str, list[str]] = Field(default_factory=dict)
    body_parts: list[BodyPart] = Field(min_length=1)
    attachments: list[Attachment] = Field(default_factory=list)
    extensions: dict[str, Any] = Field(default_factory=dict)

    @field_validator("body_parts")
    @classmethod
    def _text_part_first(cls, parts: list[BodyPart]) -> list[BodyPart]:
        if parts[0].content_type != TEXT_PLAIN:
            raise ValueError("the first body part must be text/plain")
        return parts

    # ------------------------------------------------------------------
    # Headers
    # ------------------------------------------------------------------

    def header_values(self, name: str) -> list[str]:
        """Every value of header *name*, matched case-insensitively."""
        wanted = name.lower()
        for key, values in self.headers.items():
            if key.lower() == wanted:
                return list(values)
        return []

    def header(self, name: str) -> str | None:
        """The first value of header *name*, or ``None``."""
        values = self.header_values(name)
        return values[0] if values else None

    # ------------------------------------------------------------------
    # Bodies
    # ------------------------------------------------------------------

    def _first_part(self, content_type: str) -> BodyPart | None:
        for part in self.body_parts:
            if part.content_type == content_type:
                return part
        return None

    @property
    def text_part(self) -> BodyPart | None:
        return self._first_part(TEXT_PLAIN)

    @property
    def html_part(self) -> BodyPart | None:
        return self._first_part(TEXT_HTML)

    @property
    def text(self) -> str:
        part = self.text_part
        if part is None:
            return ""
        if isinstance(part.body, bytes):
            return part.body.decode(part.charset or "utf-8", errors="replace")
        return part.body

    # ------------------------------------------------------------------
    # Extensions
    # ------------------------------------------------------------------

    def extension(self, name: str, default: Any = None) -> Any:
        """Look up an extension in this message's own provider namespace."""
        return self.extensions.get(f"{self.provider.value}.{name}", default)
