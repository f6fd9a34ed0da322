"""Raw MIME parser for providers that POST the whole message as one field.

Walks the MIME tree once and condenses it into the same shape the
flattened-field adapters produce: one text part, an optional HTML part,
and a flat attachment list.
"""

from __future__ import annotations

import email
import email.message
import email.policy
from collections.abc import Iterator
from dataclasses import dataclass, field

from ..models import TEXT_HTML, TEXT_PLAIN, Attachment, BodyPart


@dataclass
class ParsedMime:
    """Headers, condensed body parts and attachments of a MIME document."""

    headers: list[tuple[str, str]]
    body_parts: list[BodyPart]
    attachments: list[Attachment] = field(default_factory=list)


def parse_mime(raw: str | bytes) -> ParsedMime:
    """Parse a raw RFC 822 document (stateless)."""
    if isinstance(raw, str):
        msg = email.message_from_string(raw, policy=email.policy.default)
    else:
        msg = email.message_from_bytes(raw, policy=email.policy.default)

    headers = [(name, str(value)) for name, value in msg.items()]
    body_parts: list[BodyPart] = []
    attachments: list[Attachment] = []

    for part in _leaves(msg):
        if _is_attachment(part):
            attachments.append(_attachment(part))
            continue

        content_type = part.get_content_type()
        if content_type not in (TEXT_PLAIN, TEXT_HTML):
            # Inline non-text leaf without a filename, e.g. an embedded image
            attachments.append(_attachment(part))
            continue

        _add_body_part(body_parts, part, content_type)

    return ParsedMime(
        headers=headers,
        body_parts=_condense(body_parts),
        attachments=attachments,
    )


def _leaves(part: email.message.Message) -> Iterator[email.message.Message]:
    """Yield the parts that carry content, depth first.

    Unlike ``walk()`` this does not descend into attached messages or
    attachment-disposition containers; those are yielded whole.
    """
    is_container = part.get_content_maintype() == "multipart"
    if is_container and part.get_content_disposition() != "attachment":
        for subpart in part.get_payload():
            yield from _leaves(subpart)
    else:
        yield part


def _is_attachment(part: email.message.Message) -> bool:
    if part.get_content_disposition() == "attachment":
        return True
    if part.get_content_maintype() in ("message", "multipart"):
        return True
    # A named non-text part is an attachment even when marked inline
    return bool(part.get_filename()) and part.get_content_maintype() != "text"


def _decode_text(part: email.message.Message) -> str:
    try:
        content = part.get_content()
    except (LookupError, UnicodeDecodeError):
        # Unknown or lying charset
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")
    return content if isinstance(content, str) else content.decode("utf-8", errors="replace")


def _add_body_part(
    body_parts: list[BodyPart],
    part: email.message.Message,
    content_type: str,
) -> None:
    body = _decode_text(part)
    if not body:
        return
    if any(p.content_type == content_type and p.body == body for p in body_parts):
        return
    body_parts.append(
        BodyPart(
            content_type=content_type,
            charset=part.get_content_charset(),
            body=body,
        )
    )


def _condense(body_parts: list[BodyPart]) -> list[BodyPart]:
    """Order parts as text, HTML, then extras; guarantee a text part."""
    texts = [p for p in body_parts if p.content_type == TEXT_PLAIN]
    htmls = [p for p in body_parts if p.content_type == TEXT_HTML]
    if not texts:
        texts = [BodyPart(content_type=TEXT_PLAIN, charset=None, body="")]
    return [texts[0], *htmls[:1], *texts[1:], *htmls[1:]]


def _payload_bytes(part: email.message.Message) -> bytes:
    maintype = part.get_content_maintype()
    if maintype == "multipart":
        return part.as_bytes()
    if maintype == "message":
        # message/rfc822 holds the attached message as a parsed sub-object
        payload = part.get_payload()
        if isinstance(payload, list):
            return b"".join(inner.as_bytes() for inner in payload)
    return part.get_payload(decode=True) or b""


def _attachment(part: email.message.Message) -> Attachment:
    payload = _payload_bytes(part)
    content_id = part.get("Content-ID")
    return Attachment(
        filename=part.get_filename() or "unnamed",
        content_type=part.get_content_type(),
        content=payload,
        content_id=str(content_id).strip("<>") if content_id else None,
    )
