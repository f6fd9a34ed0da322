"""Abstract base class for provider adapters, plus helpers they share."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from types import MappingProxyType
from typing import Any, ClassVar

import structlog

from ..errors import (
    ConfigurationError,
    MalformedPayloadError,
    MissingFieldError,
    UnsupportedFormatError,
)
from ..models import (
    DEFAULT_ATTACHMENT_TYPE,
    TEXT_HTML,
    TEXT_PLAIN,
    Attachment,
    BodyPart,
    Message,
    Provider,
)
from .mime import parse_mime

logger = structlog.get_logger()

PARSED = "parsed"
RAW = "raw"

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})


# ----------------------------------------------------------------------
# Shared helpers
# ----------------------------------------------------------------------


def multimap(headers: Mapping[str, Any] | Iterable[Sequence[Any]] | None) -> dict[str, list[str]]:
    """Merge a header collection into an order-preserving multimap.

    Accepts a mapping whose values are a string or a list of strings, or
    an iterable of ``(name, value)`` pairs in which a name may repeat
    (e.g. ``Received``).  Names are merged case-insensitively; the first
    spelling seen is kept.
    """
    result: dict[str, list[str]] = {}
    if not headers:
        return result

    spelling: dict[str, str] = {}
    items = headers.items() if isinstance(headers, Mapping) else headers
    for item in items:
        try:
            name, value = item
        except (TypeError, ValueError):
            raise MalformedPayloadError(f"Header entry is not a name/value pair: {item!r}") from None
        name = str(name)
        key = spelling.setdefault(name.lower(), name)
        values = value if isinstance(value, (list, tuple)) else [value]
        result.setdefault(key, []).extend(str(v) for v in values if v is not None)
    return result


def fill_missing_headers(headers: dict[str, list[str]], fields: Mapping[str, Any]) -> None:
    """Add each header in *fields* that *headers* lacks, in place.

    Providers POST ``From``/``To``/``Subject`` as separate fields as well;
    those values only stand in when the header collection has none.
    """
    present = {name.lower() for name, values in headers.items() if values}
    for name, value in fields.items():
        if value and name.lower() not in present:
            headers[name] = [str(value)]


def build_attachment(
    filename: str | None,
    content_type: str | None,
    content: bytes,
    size: int | None = None,
    content_id: str | None = None,
) -> Attachment:
    """Assemble an attachment descriptor, filling in sensible defaults."""
    return Attachment(
        filename=filename or "attachment",
        content_type=content_type or DEFAULT_ATTACHMENT_TYPE,
        size=size,
        content=content,
        content_id=content_id,
    )


def _read_bytes(source: Any) -> bytes:
    if isinstance(source, bytes):
        return source
    if isinstance(source, str):
        return source.encode("utf-8")
    read = getattr(source, "read", None)
    if read is None:
        raise MalformedPayloadError(f"Unreadable attachment of type {type(source).__name__}")
    seekable = getattr(source, "seekable", None)
    if seekable is not None and seekable():
        source.seek(0)
    data = read()
    return data.encode("utf-8") if isinstance(data, str) else data


def read_upload(value: Any) -> tuple[str | None, str | None, bytes]:
    """Return ``(filename, content_type, content)`` for an uploaded file.

    Handles raw bytes/str, plain mappings (``filename``, ``content_type`` or
    ``type``, and ``content``/``file``/``tempfile``), and upload objects such
    as Starlette's ``UploadFile`` or Werkzeug's ``FileStorage``.
    """
    if isinstance(value, (bytes, str)):
        return None, None, _read_bytes(value)

    if isinstance(value, Mapping):
        filename = value.get("filename") or value.get("name")
        content_type = value.get("content_type") or value.get("type")
        source: Any = b""
        for key in ("content", "file", "tempfile"):
            if value.get(key) is not None:
                source = value[key]
                break
        return filename, content_type, _read_bytes(source)

    filename = getattr(value, "filename", None)
    content_type = getattr(value, "content_type", None)
    source = getattr(value, "file", None)
    if source is None:
        source = getattr(value, "stream", None)
    if source is None:
        source = value
    return filename, content_type, _read_bytes(source)


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, bytes, list, tuple, dict)) and not value)


def compact(namespace: str, fields: Mapping[str, Any]) -> dict[str, Any]:
    """Namespace *fields* and drop the ones the provider left empty."""
    return {f"{namespace}.{key}": value for key, value in fields.items() if not _is_empty(value)}


def require(params: Mapping[str, Any], *keys: str) -> tuple[Any, ...]:
    """Fetch *keys* from *params*, raising :class:`MissingFieldError` on the first absent one."""
    values = []
    for key in keys:
        value = params.get(key)
        if value is None:
            raise MissingFieldError(key)
        values.append(value)
    return tuple(values)


def load_json(params: Mapping[str, Any], key: str, default: Any = None) -> Any:
    """Decode a JSON-encoded field; values that are already decoded pass through."""
    value = params.get(key)
    if value is None or value == "":
        return default
    if not isinstance(value, (str, bytes)):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        raise MalformedPayloadError(f"Field {key!r} is not valid JSON: {exc}") from exc


def ensure_mapping(value: Any, what: str) -> Mapping[str, Any]:
    """Return *value* if it is a JSON object; ``None`` counts as empty."""
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise MalformedPayloadError(f"{what} must be an object, got {type(value).__name__}")
    return value


def ensure_list(value: Any, what: str) -> list[Any]:
    """Return *value* if it is a JSON array; ``None`` counts as empty."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedPayloadError(f"{what} must be an array, got {type(value).__name__}")
    return value


def parse_count(params: Mapping[str, Any], key: str) -> int:
    """Parse a declared attachment count; absent means zero."""
    value = params.get(key)
    if value is None or value == "":
        return 0
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise MalformedPayloadError(f"Field {key!r} is not an integer: {value!r}") from None
    if count < 0:
        raise MalformedPayloadError(f"Field {key!r} is negative: {count}")
    return count


def parse_float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


# ----------------------------------------------------------------------
# Base adapter
# ----------------------------------------------------------------------


class BaseAdapter(ABC):
    """Verify and transform one provider's inbound webhooks.

    Subclasses set ``provider`` and ``recognizes``, read their options in
    :meth:`_configure`, and implement :meth:`transform` and :meth:`is_spam`.
    Adapters that can check signatures override :meth:`is_valid` and
    :attr:`verifies_signatures`.

    Instances hold only their (read-only) options, so one instance can
    serve concurrent requests.
    """

    provider: ClassVar[Provider]
    recognizes: ClassVar[frozenset[str]] = frozenset()
    BASE_OPTIONS: ClassVar[frozenset[str]] = frozenset({"api_key", "require_signature"})

    def __init__(self, options: Mapping[str, Any] | None = None) -> None:
        self._options: Mapping[str, Any] = MappingProxyType(dict(options or {}))
        self.require_signature = as_bool(self._options.get("require_signature", False))

        unrecognized = sorted(set(self._options) - self.recognized_options())
        if unrecognized:
            logger.debug(
                "unrecognized_options",
                provider=self.provider.value,
                options=unrecognized,
            )

        self._configure(self._options)

        if self.require_signature and not self.verifies_signatures:
            raise ConfigurationError(
                f"{self.provider.value} adapter cannot verify signatures "
                "but require_signature is set"
            )

    @classmethod
    def recognized_options(cls) -> frozenset[str]:
        """Option keys this adapter understands (base keys included)."""
        return cls.BASE_OPTIONS | cls.recognizes

    def _configure(self, options: Mapping[str, Any]) -> None:
        """Read provider-specific options.  Called once from ``__init__``."""

    def _option(self, *names: str) -> Any:
        """First non-empty value among *names*."""
        for name in names:
            value = self._options.get(name)
            if value not in (None, ""):
                return value
        return None

    def _select_format(self, value: Any, supported: tuple[str, ...]) -> str:
        selected = PARSED if value in (None, "") else str(value)
        if selected not in supported:
            raise UnsupportedFormatError(self.provider.value, selected)
        return selected

    @property
    def verifies_signatures(self) -> bool:
        """Whether :meth:`is_valid` actually checks a signature."""
        return False

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    def is_valid(self, params: Mapping[str, Any]) -> bool:
        """Return whether the webhook request is authentic.

        The default accepts every request: it applies to providers with
        no signing scheme and to adapters built without a secret.  Set
        ``require_signature`` to make the latter a configuration error.
        """
        logger.debug("webhook_unauthenticated", provider=self.provider.value)
        return True

    @abstractmethod
    def transform(self, params: Mapping[str, Any]) -> list[Message]:
        """Convert a webhook payload into zero or more messages.

        Synchronous: pure data transformation, no I/O.
        """

    @abstractmethod
    def is_spam(self, message: Message) -> bool:
        """Whether the provider flagged *message* as spam."""

    # ------------------------------------------------------------------
    # Message assembly
    # ------------------------------------------------------------------

    def build_message(
        self,
        *,
        headers: dict[str, list[str]],
        text: str | bytes | None,
        html: str | bytes | None = None,
        text_charset: str | None = "utf-8",
        html_charset: str | None = "utf-8",
        attachments: Iterable[Attachment] = (),
        extensions: Mapping[str, Any] | None = None,
    ) -> Message:
        """Assemble a message from flattened provider fields."""
        body_parts = [BodyPart(content_type=TEXT_PLAIN, charset=text_charset, body=text or "")]
        if html:
            body_parts.append(BodyPart(content_type=TEXT_HTML, charset=html_charset, body=html))

        return Message(
            provider=self.provider,
            headers=headers,
            body_parts=body_parts,
            attachments=list(attachments),
            extensions=compact(self.provider.value, extensions or {}),
        )

    def message_from_mime(
        self,
        raw: str | bytes,
        extensions: Mapping[str, Any] | None = None,
    ) -> Message:
        """Assemble a message from a complete raw MIME document."""
        parsed = parse_mime(raw)
        return Message(
            provider=self.provider,
            headers=multimap(parsed.headers),
            body_parts=parsed.body_parts,
            attachments=parsed.attachments,
            extensions=compact(self.provider.value, extensions or {}),
        )
