"""Structured logging setup using structlog."""

from __future__ import annotations

import logging
import sys

import structlog

SECRET_KEYS = frozenset({"api_key", "secret", "signature", "token"})


def redact_secrets(
    _logger: object, _method: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Mask webhook secrets and signature inputs before rendering."""
    for key in SECRET_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def setup_logging(*, json: bool = True, level: str = "INFO") -> None:
    """Route adapter and forwarder events to stderr with secrets masked.

    Adapters log through ``structlog.get_logger()`` and never configure
    logging themselves; the receiver service (or ``inbound-mail-post``)
    calls this once at start-up.  Every event passes through
    :func:`redact_secrets`, so a ``signature`` or ``token`` bound by a
    caller never reaches the output.

    Parameters
    ----------
    json:
        Render JSON lines (the default) rather than the console renderer
        ``inbound-mail-post --verbose`` uses.
    level:
        Root log level name; ``ReceiverConfig.log_level`` feeds it.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    # stderr: stdout may carry the forwarding CLI's own output
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())
