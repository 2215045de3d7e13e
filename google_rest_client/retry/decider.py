"""Retry decision for a single HTTP exchange.

RetryContext carries the per-exchange state; RetryDecider turns it into a
yes/no answer following the status-code policy:

    attempts exhausted   -> stop
    no response          -> retry (connect failure, timeout)
    2xx                  -> stop
    400                  -> bad_request_hook
    401                  -> retry once to refresh credentials; a second 401
                            stops unless its reason phrase is transient
    403                  -> forbidden_status_hook
    429, 5xx             -> retry
    other statuses       -> stop
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from google_rest_client.observability.retry_events import log_retry_request
from google_rest_client.retry.policy import RetryPolicy


@dataclass
class RetryContext:
    """State of one logical exchange, created fresh per top-level call.

    Attributes:
        request: The request as it will be sent on the next attempt.
        attempt: Number of attempts completed so far.
        last_response: Response of the latest attempt, if one arrived.
        last_error: Transport error of the latest attempt, if any.
        unauthorized_count: 401 responses received in this exchange.
        refresh_count: Credential refreshes performed in this exchange.
    """

    request: httpx.Request
    attempt: int = 0
    last_response: httpx.Response | None = None
    last_error: Exception | None = None
    unauthorized_count: int = 0
    refresh_count: int = 0

    def record_response(self, response: httpx.Response) -> None:
        self.attempt += 1
        self.last_response = response
        self.last_error = None
        if response.status_code == 401:
            self.unauthorized_count += 1

    def record_error(self, error: Exception) -> None:
        self.attempt += 1
        self.last_response = None
        self.last_error = error


class RetryDecider:
    """Decides whether the latest attempt of an exchange is retried.

    Args:
        policy: Retry configuration (attempt limit and status hooks).
        logger: Destination for retry events. Defaults to this module's logger.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        logger: logging.Logger | None = None,
    ) -> None:
        self.policy = policy
        self._logger = logger if logger is not None else logging.getLogger(__name__)

    def decide(self, context: RetryContext) -> bool:
        """Return True if the exchange should be attempted again.

        A True decision is logged before returning, so the event is
        recorded even if the next attempt never completes.
        """
        decision = self._decide(context)
        if decision:
            log_retry_request(
                self._logger,
                context.attempt,
                context.request,
                context.last_response,
            )
        return decision

    def _decide(self, context: RetryContext) -> bool:
        if context.attempt >= self.policy.max_attempts:
            return False

        response = context.last_response
        if response is None:
            return True

        status = response.status_code
        if 200 <= status < 300:
            return False
        if status == 400:
            return self.policy.bad_request_hook(response)
        if status == 401:
            return self._decide_unauthorized(context, response)
        if status == 403:
            return self.policy.forbidden_status_hook(response)
        if status == 429 or status >= 500:
            return True
        return False

    def _decide_unauthorized(
        self, context: RetryContext, response: httpx.Response
    ) -> bool:
        # First 401: refresh credentials and try again
        if context.unauthorized_count <= 1:
            return True
        if (
            context.unauthorized_count == 2
            and response.reason_phrase in self.policy.transient_unauthorized_reasons
        ):
            return True
        return False
