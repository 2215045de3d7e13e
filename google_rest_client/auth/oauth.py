"""OAuth2 token endpoint and authorization URL.

Token exchanges are sent on their own client, outside the retrying
transport: a failed refresh must surface immediately instead of feeding
back into the retry loop that asked for it.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

import httpx

from google_rest_client.utils.errors import AuthRefreshError

logger = logging.getLogger(__name__)

API_URI = "https://www.googleapis.com"
OAUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_PATH = "/oauth2/v4/token"
DEFAULT_TOKEN_URL = f"{API_URI}{TOKEN_PATH}"
DEFAULT_TOKEN_TIMEOUT = 30.0


def build_authorization_url(
    client_id: str,
    redirect_uri: str,
    scope: str,
    approval_prompt: str = "force",
    access_type: str = "offline",
    state: str = "",
) -> str:
    """Build the consent-screen URL the user is sent to.

    Args:
        client_id: OAuth client ID of the application.
        redirect_uri: Where the consent screen sends the authorization code.
        scope: Space-separated scopes being requested.
        approval_prompt: "force" to always show consent, "auto" otherwise.
        access_type: "offline" to receive a refresh token.
        state: Opaque value echoed back on the redirect (omitted if empty).

    Returns:
        The full authorization URL.
    """
    params = [
        ("response_type", "code"),
        ("redirect_uri", redirect_uri),
        ("client_id", client_id),
        ("scope", scope),
        ("access_type", access_type),
        ("approval_prompt", approval_prompt),
    ]
    if state:
        params.append(("state", state))
    return f"{OAUTH_URL}?{urlencode(params)}"


class OAuthTokenEndpoint:
    """Client for the OAuth2 token endpoint.

    Args:
        token_url: Token endpoint URL (default Google's v4 endpoint).
        timeout: Request timeout in seconds.
        transport: Optional httpx transport, mainly for tests.
    """

    def __init__(
        self,
        token_url: str = DEFAULT_TOKEN_URL,
        timeout: float = DEFAULT_TOKEN_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token_url = token_url
        self._timeout = timeout
        self._transport = transport

    async def exchange_refresh_token(
        self, refresh_token: str, client_id: str, client_secret: str
    ) -> dict[str, Any]:
        """Exchange a refresh token for a new access token.

        Raises:
            AuthRefreshError: If the endpoint is unreachable, rejects the
                grant, or answers without an access token.
        """
        return await self._exchange(
            {
                "refresh_token": refresh_token,
                "client_id": client_id,
                "client_secret": client_secret,
                "grant_type": "refresh_token",
            }
        )

    async def exchange_authorization_code(
        self,
        code: str,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
    ) -> dict[str, Any]:
        """Exchange an authorization code for an access/refresh token pair.

        Raises:
            AuthRefreshError: As for exchange_refresh_token().
        """
        return await self._exchange(
            {
                "code": code,
                "client_id": client_id,
                "client_secret": client_secret,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            }
        )

    async def _exchange(self, form: dict[str, str]) -> dict[str, Any]:
        grant_type = form["grant_type"]
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self.token_url,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                    data=form,
                )
        except httpx.HTTPError as exc:
            raise AuthRefreshError(
                f"Token endpoint unreachable ({grant_type}): {exc}",
                grant_type=grant_type,
            ) from exc

        if not response.is_success:
            raise AuthRefreshError(
                f"Token exchange ({grant_type}) failed: {response.text}",
                response=response,
                grant_type=grant_type,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise AuthRefreshError(
                f"Token endpoint returned invalid JSON ({grant_type})",
                response=response,
                grant_type=grant_type,
            ) from exc

        if not isinstance(body, dict) or not body.get("access_token"):
            raise AuthRefreshError(
                f"No access_token in token response ({grant_type})",
                response=response,
                grant_type=grant_type,
            )

        logger.info("Token exchange succeeded (%s)", grant_type)
        return body
