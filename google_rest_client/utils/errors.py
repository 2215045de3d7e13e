"""Custom exception hierarchy for the REST API client.

All exceptions inherit from RestApiError, enabling targeted handling
at the client boundary while preserving the HTTP status and response
that produced the failure.
"""

from __future__ import annotations

import httpx


class RestApiError(Exception):
    """Base exception for all REST API client errors."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: httpx.Response | None = None,
    ) -> None:
        if status_code is None and response is not None:
            status_code = response.status_code
        self.status_code = status_code
        self.response = response
        super().__init__(message)

    def __str__(self) -> str:
        if self.status_code:
            return f"[HTTP {self.status_code}] {super().__str__()}"
        return super().__str__()


class TransientNetworkError(RestApiError):
    """Raised when no response was received (connect failure, timeout)."""

    retryable = True


class TransientServerError(RestApiError):
    """Raised for 429 and 5xx responses that survived every retry."""

    retryable = True


class UnauthorizedError(RestApiError):
    """Raised when a 401 persists after the one permitted credential refresh."""


class AuthRefreshError(RestApiError):
    """Raised when a token refresh or token exchange fails. Never retried."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: httpx.Response | None = None,
        grant_type: str | None = None,
    ) -> None:
        self.grant_type = grant_type
        super().__init__(message, status_code, response)


class ForbiddenError(RestApiError):
    """Raised for a 403 the forbidden-status hook declined to retry."""


class ClientRequestError(RestApiError):
    """Raised for 4xx responses that are not retried (most 400s, 404, ...)."""


class ConfigurationError(RestApiError):
    """Raised for missing credentials, scopes, or invalid call arguments.

    Always raised before any network I/O takes place.
    """


def error_for_response(response: httpx.Response) -> RestApiError:
    """Map a final non-success response to its error class.

    Args:
        response: The last response returned by the retrying transport.

    Returns:
        A RestApiError subclass instance carrying the response.
    """
    status = response.status_code
    message = (
        f"{response.request.method} {response.request.url} failed: "
        f"{status} {response.reason_phrase}"
    )
    if status == 401:
        return UnauthorizedError(message, response=response)
    if status == 403:
        return ForbiddenError(message, response=response)
    if status == 429 or status >= 500:
        return TransientServerError(message, response=response)
    return ClientRequestError(message, response=response)
