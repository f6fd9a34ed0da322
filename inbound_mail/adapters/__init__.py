"""Provider adapters: verify and normalize inbound email webhooks."""

from .base import BaseAdapter, build_attachment, multimap
from .mailgun import MailgunAdapter, mailgun_signature
from .mandrill import MandrillAdapter, mandrill_signature
from .postmark import PostmarkAdapter
from .registry import ADAPTERS, create, create_from_config, supported_providers
from .sendgrid import SendGridAdapter

__all__ = [
    "ADAPTERS",
    "BaseAdapter",
    "MailgunAdapter",
    "MandrillAdapter",
    "PostmarkAdapter",
    "SendGridAdapter",
    "build_attachment",
    "create",
    "create_from_config",
    "mailgun_signature",
    "mandrill_signature",
    "multimap",
    "supported_providers",
]
