"""Service-account bearer tokens via google-auth.

The JWT assertion and token endpoint details are handled by google-auth;
this module only turns them into a FetchedToken the CredentialManager can
cache.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol

import google.auth.exceptions
import google.auth.transport.requests
from google.oauth2 import service_account

from google_rest_client.utils.errors import AuthRefreshError, ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_LIFETIME_SECONDS = 3600


@dataclass(frozen=True)
class FetchedToken:
    """A freshly issued bearer token and its lifetime in seconds."""

    access_token: str
    expires_in: int = DEFAULT_TOKEN_LIFETIME_SECONDS


class TokenFetcher(Protocol):
    """Anything that can produce a new bearer token on demand."""

    async def fetch_token(self) -> FetchedToken: ...


class GoogleServiceAccountFetcher:
    """Fetch tokens for a service-account key with google-auth.

    Args:
        key_material: Parsed service-account JSON key.
        scopes: OAuth scopes requested for the token.

    Raises:
        ConfigurationError: If the key cannot be loaded.
    """

    def __init__(self, key_material: dict[str, Any], scopes: Iterable[str]) -> None:
        try:
            self._credentials = service_account.Credentials.from_service_account_info(
                key_material, scopes=sorted(scopes)
            )
        except (ValueError, KeyError, TypeError) as exc:
            raise ConfigurationError(
                f"Failed to initialize service account credentials: {exc}"
            ) from exc

    async def fetch_token(self) -> FetchedToken:
        """Request a new access token from Google's token endpoint.

        Raises:
            AuthRefreshError: If the token endpoint rejects the assertion
                or cannot be reached.
        """
        request = google.auth.transport.requests.Request()
        try:
            await asyncio.to_thread(self._credentials.refresh, request)
        except google.auth.exceptions.GoogleAuthError as exc:
            raise AuthRefreshError(
                f"Failed to fetch service account access token: {exc}",
                grant_type="jwt-bearer",
            ) from exc

        token = self._credentials.token
        if not token:
            raise AuthRefreshError(
                "Failed to retrieve access token from service account",
                grant_type="jwt-bearer",
            )

        logger.info(
            "Fetched service account token for %s",
            self._credentials.service_account_email,
            extra={"auth_type": "service_account"},
        )
        return FetchedToken(access_token=token, expires_in=self._expires_in())

    def _expires_in(self) -> int:
        # google-auth reports expiry as a naive UTC datetime
        expiry = self._credentials.expiry
        if expiry is None:
            return DEFAULT_TOKEN_LIFETIME_SECONDS
        now = datetime.now(UTC).replace(tzinfo=None)
        return max(int((expiry - now).total_seconds()), 0)
