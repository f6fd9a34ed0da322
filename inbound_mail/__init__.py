"""Inbound Mail: verify and normalize inbound email webhooks.

Public API re-exported here for convenience::

    from inbound_mail import create

    adapter = create("mailgun", {"mailgun_api_key": "key-..."})
    if adapter.is_valid(params):
        for message in adapter.transform(params):
            ...
"""

from .adapters import BaseAdapter, create, create_from_config, supported_providers
from .config import ForwarderConfig, ReceiverConfig
from .errors import (
    ConfigurationError,
    ForwardError,
    InboundMailError,
    MalformedPayloadError,
    MissingFieldError,
    UnknownProviderError,
    UnsupportedFormatError,
)
from .logging import setup_logging
from .models import Attachment, BodyPart, Message, Provider

__all__ = [
    "Attachment",
    "BaseAdapter",
    "BodyPart",
    "ConfigurationError",
    "ForwardError",
    "ForwarderConfig",
    "InboundMailError",
    "MalformedPayloadError",
    "Message",
    "MissingFieldError",
    "Provider",
    "ReceiverConfig",
    "UnknownProviderError",
    "UnsupportedFormatError",
    "create",
    "create_from_config",
    "setup_logging",
    "supported_providers",
]
