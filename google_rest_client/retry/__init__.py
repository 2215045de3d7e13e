"""Retry, backoff, and credential re-signing for outbound requests."""

from google_rest_client.retry.decider import RetryContext, RetryDecider
from google_rest_client.retry.delay import exponential_delay, make_exponential_delay
from google_rest_client.retry.middleware import RetryTransport
from google_rest_client.retry.mutator import RequestMutator
from google_rest_client.retry.policy import (
    UNKNOWN_METRIC_MARKER,
    RetryPolicy,
    always_retry,
    body_contains,
    never_retry,
    quota_exceeded_declines,
)

__all__ = [
    "RequestMutator",
    "RetryContext",
    "RetryDecider",
    "RetryPolicy",
    "RetryTransport",
    "UNKNOWN_METRIC_MARKER",
    "always_retry",
    "body_contains",
    "exponential_delay",
    "make_exponential_delay",
    "never_retry",
    "quota_exceeded_declines",
]
