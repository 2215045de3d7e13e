"""Retry audit events.

Every approved retry is recorded before the next attempt is sent, so a
final failed attempt is never missing from the log. The Authorization
header is always masked.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

REDACTED = "*****"


def _body_text(content: bytes) -> str:
    return content.decode("utf-8", errors="replace")


def redact_headers(headers: httpx.Headers) -> dict[str, str]:
    """Return request headers with their original casing, Authorization masked."""
    redacted: dict[str, str] = {}
    for raw_key, raw_value in headers.raw:
        key = raw_key.decode("latin-1")
        if key.lower() == "authorization":
            redacted[key] = REDACTED
        else:
            redacted[key] = raw_value.decode("latin-1")
    return redacted


def build_retry_event(
    request: httpx.Request,
    response: httpx.Response | None = None,
) -> dict[str, Any]:
    """Build the structured context attached to a retry log record."""
    event: dict[str, Any] = {
        "request": {
            "uri": str(request.url),
            "headers": redact_headers(request.headers),
            "method": request.method,
            "body": _body_text(request.content),
        },
    }
    if response is not None:
        event["response"] = {
            "statusCode": response.status_code,
            "reason": response.reason_phrase,
            "body": response.text,
        }
    return event


def retry_message(attempt: int, response: httpx.Response | None = None) -> str:
    """Format the retry message, e.g. ``Retrying request (2x) - reason: Not Found``.

    The count is the number of attempts already made, so the first retry
    logs ``(1x)``. Consumers expecting a 0-based retry index subtract one.
    """
    if response is None:
        return f"Retrying request ({attempt}x)"
    return f"Retrying request ({attempt}x) - reason: {response.reason_phrase}"


def log_retry_request(
    logger: logging.Logger,
    attempt: int,
    request: httpx.Request,
    response: httpx.Response | None = None,
) -> None:
    """Emit one INFO record describing an approved retry.

    Args:
        logger: Destination logger.
        attempt: Number of attempts made so far in the exchange.
        request: The request that is about to be retried.
        response: The response that triggered the retry, if any.
    """
    event = build_retry_event(request, response)
    logger.info(
        retry_message(attempt, response),
        extra={**event, "attempt": attempt},
    )
