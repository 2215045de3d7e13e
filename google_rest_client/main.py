"""Command-line entry point.

Sub-commands cover the OAuth bootstrap and a quick authenticated call:

    auth-url   print the consent-screen URL
    tokens     exchange an authorization code for tokens
    user-info  fetch the profile behind the configured tokens
    request    send an authenticated request and print the JSON body

Credentials come from the environment (see google_rest_client.config).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from google_rest_client.client import RestApi
from google_rest_client.config import ClientSettings
from google_rest_client.observability.logger import StructuredJsonFormatter
from google_rest_client.utils.errors import RestApiError

logger = logging.getLogger(__name__)


def _setup_logging(level: int = logging.INFO) -> None:
    """Configure root logger with structured JSON output on stderr."""
    root = logging.getLogger()
    root.setLevel(level)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredJsonFormatter())
    root.addHandler(handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="google-rest-client",
        description="Authenticated Google REST API client",
    )
    parser.add_argument(
        "--verbose", action="store_true", help="log at DEBUG level"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    auth_url = commands.add_parser("auth-url", help="print the authorization URL")
    auth_url.add_argument("--redirect-uri", required=True)
    auth_url.add_argument("--scope", required=True)
    auth_url.add_argument("--approval-prompt", default="auto")
    auth_url.add_argument("--access-type", default="offline")
    auth_url.add_argument("--state", default="")

    tokens = commands.add_parser("tokens", help="exchange an authorization code")
    tokens.add_argument("--redirect-uri", required=True)
    tokens.add_argument("--code", required=True)

    commands.add_parser("user-info", help="fetch the authenticated user's profile")

    request = commands.add_parser("request", help="send an authenticated request")
    request.add_argument("url")
    request.add_argument("--method", default="GET")

    return parser


async def run_command(args: argparse.Namespace, api: RestApi) -> Any:
    """Execute a parsed sub-command and return its JSON-serializable result."""
    if args.command == "auth-url":
        url = api.get_authorization_url(
            args.redirect_uri,
            args.scope,
            approval_prompt=args.approval_prompt,
            access_type=args.access_type,
            state=args.state,
        )
        return {"auth-url": url}

    async with api:
        if args.command == "tokens":
            return {"tokens": await api.authorize(args.code, args.redirect_uri)}
        if args.command == "user-info":
            return {"user-info": await api.get_user_info()}
        response = await api.request(args.url, method=args.method)
        return response.json() if response.content else {}


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run the sub-command, and print the result as JSON."""
    args = build_parser().parse_args(argv)
    _setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        api = RestApi.from_settings(ClientSettings.from_env())
        result = asyncio.run(run_command(args, api))
    except RestApiError as exc:
        logger.error(
            "Command %s failed", args.command, extra={"error": str(exc)}
        )
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
