"""Adapter registry: maps provider names to adapter classes."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from ..config import ReceiverConfig
from ..errors import UnknownProviderError
from ..models import Provider
from .base import BaseAdapter
from .mailgun import MailgunAdapter
from .mandrill import MandrillAdapter
from .postmark import PostmarkAdapter
from .sendgrid import SendGridAdapter

logger = structlog.get_logger()

ADAPTERS: dict[Provider, type[BaseAdapter]] = {
    Provider.MAILGUN: MailgunAdapter,
    Provider.MANDRILL: MandrillAdapter,
    Provider.POSTMARK: PostmarkAdapter,
    Provider.SENDGRID: SendGridAdapter,
}


def check_registry() -> None:
    """Fail loudly if a :class:`Provider` member has no adapter class."""
    missing = [p.value for p in Provider if p not in ADAPTERS]
    if missing:
        raise RuntimeError(f"No adapter registered for: {', '.join(missing)}")


check_registry()


def supported_providers() -> list[str]:
    """Provider names accepted by :func:`create`."""
    return [p.value for p in ADAPTERS]


def create(provider: str | Provider, options: Mapping[str, Any] | None = None) -> BaseAdapter:
    """Build an adapter for *provider* configured with *options*.

    *provider* is matched case-insensitively.  A ``provider`` key inside
    *options* is ignored; the caller's mapping is never modified.

    Raises :class:`UnknownProviderError` for unregistered providers.
    """
    name = provider.value if isinstance(provider, Provider) else str(provider).strip().lower()
    try:
        adapter_cls = ADAPTERS[Provider(name)]
    except ValueError:
        raise UnknownProviderError(name) from None

    attributes = dict(options or {})
    attributes.pop("provider", None)
    adapter = adapter_cls(attributes)
    logger.info(
        "adapter_created",
        provider=name,
        verifies_signatures=adapter.verifies_signatures,
    )
    return adapter


def create_from_config(config: ReceiverConfig) -> BaseAdapter:
    """Build the adapter described by a :class:`ReceiverConfig`."""
    return create(config.provider, config.adapter_options())
