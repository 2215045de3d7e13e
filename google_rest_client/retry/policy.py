"""Retry configuration and status hooks.

RetryPolicy gathers everything a caller may tune about retries. The
400 and 403 hooks decide whether such a response is worth another
attempt; they receive the (already read) response.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

import httpx

from google_rest_client.retry.delay import DelayFn, exponential_delay
from google_rest_client.utils.errors import ConfigurationError

StatusHook = Callable[[httpx.Response], bool]

DEFAULT_MAX_ATTEMPTS = 7

# Body marker of a known transient 400 from the Analytics reporting API.
UNKNOWN_METRIC_MARKER = "Unknown metric"

QUOTA_EXCEEDED_REASONS = frozenset({"quotaExceeded", "dailyLimitExceeded"})


def always_retry(response: httpx.Response) -> bool:
    return True


def never_retry(response: httpx.Response) -> bool:
    return False


def body_contains(*markers: str) -> StatusHook:
    """Build a hook that approves a retry when the body contains any marker.

    Args:
        *markers: Substrings identifying a transient failure.

    Returns:
        Hook returning True if any marker occurs in the response body.
    """
    if not markers:
        raise ValueError("at least one marker is required")

    def hook(response: httpx.Response) -> bool:
        body = response.text
        return any(marker in body for marker in markers)

    return hook


def _error_reasons(response: httpx.Response) -> set[str]:
    try:
        payload = response.json()
    except ValueError:
        return set()
    if not isinstance(payload, dict):
        return set()
    error = payload.get("error")
    if not isinstance(error, dict):
        return set()
    errors = error.get("errors")
    if not isinstance(errors, list):
        return set()
    return {
        item.get("reason", "")
        for item in errors
        if isinstance(item, dict)
    }


def quota_exceeded_declines(response: httpx.Response) -> bool:
    """403 hook that declines once the project quota is exhausted.

    Rate-limit 403s (``rateLimitExceeded``, ``userRateLimitExceeded``)
    clear up with backoff; quota 403s do not until the quota resets.
    """
    return not (_error_reasons(response) & QUOTA_EXCEEDED_REASONS)


@dataclass
class RetryPolicy:
    """Tunable retry behavior for one client.

    Attributes:
        max_attempts: Maximum number of attempts per exchange, including
            the first one.
        delay_fn: Maps the retry number (1-based) to seconds to wait.
        forbidden_status_hook: Decides whether a 403 is retried.
        bad_request_hook: Decides whether a 400 is retried.
        transient_unauthorized_reasons: Reason phrases that permit one
            extra attempt after a refresh was already spent on a 401.
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    delay_fn: DelayFn = exponential_delay
    forbidden_status_hook: StatusHook = always_retry
    bad_request_hook: StatusHook = never_retry
    transient_unauthorized_reasons: frozenset[str] = field(
        default_factory=lambda: frozenset({"Service Unavailable"})
    )

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError(
                f"max_attempts must be at least 1, got {self.max_attempts}"
            )
