"""Entry point for the forwarding CLI.

Usage::

    inbound-mail-post --url http://localhost:8000/mailgun/mime --secret key-xxx < message.eml

Reads a raw email from stdin and POSTs it as a Mailgun ``raw`` webhook.
"""

from __future__ import annotations

import argparse
import sys

import httpx
from pydantic import ValidationError

from .config import ForwarderConfig
from .errors import ForwardError
from .forwarder import Forwarder
from .logging import setup_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="inbound-mail-post",
        description="POST a raw email read from stdin to an inbound mail receiver.",
    )
    parser.add_argument("--url", help="receiver URL (or INBOUND_MAIL_FORWARD_URL)")
    parser.add_argument("--secret", help="signing key (or INBOUND_MAIL_FORWARD_SECRET)")
    parser.add_argument("--timeout", type=float, help="request timeout in seconds")
    parser.add_argument("--verbose", action="store_true", help="human-readable debug logs")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(json=not args.verbose, level="DEBUG" if args.verbose else "WARNING")

    overrides = {
        key: value
        for key, value in (
            ("url", args.url),
            ("secret", args.secret),
            ("timeout_seconds", args.timeout),
        )
        if value is not None
    }
    try:
        config = ForwarderConfig(**overrides)
    except ValidationError as exc:
        fields = ", ".join(".".join(map(str, err["loc"])) for err in exc.errors())
        sys.exit(f"inbound-mail-post: invalid or missing settings: {fields} (see --help)")

    try:
        Forwarder(config).forward(sys.stdin.read())
    except ForwardError as exc:
        sys.exit(str(exc))
    except httpx.HTTPError as exc:
        sys.exit(f"inbound-mail-post: request to {config.url} failed: {exc}")


if __name__ == "__main__":
    main()
