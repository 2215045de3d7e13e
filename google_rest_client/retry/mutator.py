"""Rebuild a request for its next attempt.

Only a 401 changes anything: credentials are refreshed and the
Authorization header is replaced. Every other header and the body are
carried over untouched.
"""

from __future__ import annotations

import httpx

from google_rest_client.auth.manager import CredentialManager

BEARER_PREFIX = "Bearer "


def bearer_token_of(request: httpx.Request) -> str | None:
    """Extract the bearer token a request was sent with, if any."""
    value = request.headers.get("Authorization")
    if value is None or not value.startswith(BEARER_PREFIX):
        return None
    return value[len(BEARER_PREFIX):]


def with_authorization(request: httpx.Request, access_token: str) -> httpx.Request:
    """Copy a request, replacing only its Authorization header."""
    headers = request.headers.copy()
    headers["Authorization"] = f"{BEARER_PREFIX}{access_token}"
    return httpx.Request(
        request.method,
        request.url,
        headers=headers,
        content=request.content,
        extensions=request.extensions,
    )


class RequestMutator:
    """Refreshes credentials after a 401 and re-signs the request.

    Args:
        credentials: The manager that owns the token state.
    """

    def __init__(self, credentials: CredentialManager) -> None:
        self._credentials = credentials

    async def mutate(
        self, request: httpx.Request, response: httpx.Response
    ) -> httpx.Request:
        """Return the request to send on the next attempt.

        Raises:
            AuthRefreshError: If the credential refresh fails.
        """
        if response.status_code != 401:
            return request

        access_token = await self._credentials.refresh(
            stale_token=bearer_token_of(request)
        )
        return with_authorization(request, access_token)
