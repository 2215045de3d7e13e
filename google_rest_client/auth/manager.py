"""Credential ownership and refresh.

CredentialManager is the only writer of token state. Every
refresh-then-write runs under one asyncio.Lock, and the credential object
itself is immutable and swapped by reference, so concurrent readers see
either the old or the new token pair.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from google_rest_client.auth.credentials import (
    AuthType,
    Credential,
    OAuthCredential,
    ServiceAccountCredential,
    auth_type_of,
)
from google_rest_client.auth.oauth import OAuthTokenEndpoint
from google_rest_client.auth.service_account import (
    GoogleServiceAccountFetcher,
    TokenFetcher,
)
from google_rest_client.utils.errors import AuthRefreshError, ConfigurationError

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[str, str], None]


class CredentialManager:
    """Owns the active credential and performs token refreshes.

    Args:
        credential: The OAuth or service-account credential. Its variant
            fixes the auth type for the lifetime of the manager.
        token_endpoint: OAuth token endpoint client (OAuth only).
        token_fetcher: Source of service-account tokens. Defaults to
            google-auth using the credential's key material.
        refresh_callback: Called with (access_token, refresh_token) each
            time an OAuth refresh rotates the tokens.
        clock: Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        credential: Credential,
        *,
        token_endpoint: OAuthTokenEndpoint | None = None,
        token_fetcher: TokenFetcher | None = None,
        refresh_callback: RefreshCallback | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._credential = credential
        self._auth_type = auth_type_of(credential)
        self._token_endpoint = token_endpoint or OAuthTokenEndpoint()
        self._refresh_callback = refresh_callback
        self._clock = clock
        self._lock = asyncio.Lock()

        if (
            isinstance(credential, ServiceAccountCredential)
            and token_fetcher is None
        ):
            token_fetcher = GoogleServiceAccountFetcher(
                credential.key_material, credential.scopes
            )
        self._token_fetcher = token_fetcher

    @property
    def auth_type(self) -> AuthType:
        return self._auth_type

    @property
    def credential(self) -> Credential:
        """Snapshot of the current credential."""
        return self._credential

    def set_refresh_callback(self, callback: RefreshCallback | None) -> None:
        self._refresh_callback = callback

    def set_tokens(self, access_token: str, refresh_token: str) -> None:
        """Replace the OAuth token pair, e.g. with tokens loaded from storage."""
        credential = self._oauth_credential("Tokens")
        self._credential = replace(
            credential, access_token=access_token, refresh_token=refresh_token
        )

    def set_app_credentials(self, client_id: str, client_secret: str) -> None:
        credential = self._oauth_credential("App credentials")
        self._credential = replace(
            credential, client_id=client_id, client_secret=client_secret
        )

    def validate(self) -> None:
        """Check the credential is usable before any request is sent.

        Raises:
            ConfigurationError: If required credential fields are missing.
        """
        credential = self._credential
        if isinstance(credential, ServiceAccountCredential):
            if not credential.key_material or not credential.scopes:
                raise ConfigurationError(
                    "Service account configuration and scopes must be set "
                    "for service account authentication"
                )
        elif not credential.refresh_token:
            raise ConfigurationError(
                "Refresh token must be set for OAuth authentication"
            )

    async def get_access_token(self) -> str:
        """Return the bearer token to attach to the next request.

        For OAuth an empty access token is exchanged for a new one first,
        since an empty bearer value cannot be sent. For service accounts the
        cached token is reused until it is within 60 seconds of expiry, then
        a new one is fetched.

        Raises:
            AuthRefreshError: If the token has to be obtained and that fails.
        """
        credential = self._credential
        if isinstance(credential, OAuthCredential):
            if credential.access_token or not credential.refresh_token:
                return credential.access_token
            async with self._lock:
                current = self._oauth_credential("Tokens")
                if current.access_token:
                    return current.access_token
                body = await self._refresh_oauth_locked()
                return body["access_token"]

        if credential.is_fresh(self._clock()):
            return credential.cached_token  # type: ignore[return-value]

        async with self._lock:
            credential = self._credential
            if credential.is_fresh(self._clock()):
                return credential.cached_token
            return await self._fetch_service_account_token()

    async def refresh(self, stale_token: str | None = None) -> str:
        """Obtain a new bearer token, replacing the current one.

        Args:
            stale_token: The token the caller saw rejected. If the current
                token already differs, another task refreshed in the
                meantime and that token is returned without a new exchange.

        Returns:
            The new access token.

        Raises:
            AuthRefreshError: If the refresh itself fails.
        """
        async with self._lock:
            current = self._current_token()
            if stale_token is not None and current and current != stale_token:
                logger.debug(
                    "Token already refreshed by a concurrent request",
                    extra={"auth_type": self._auth_type.value},
                )
                return current

            if self._auth_type is AuthType.SERVICE_ACCOUNT:
                return await self._fetch_service_account_token()

            body = await self._refresh_oauth_locked()
            return body["access_token"]

    async def refresh_oauth_token(self) -> dict[str, Any]:
        """Exchange the refresh token for a new access token.

        Returns:
            The token endpoint's JSON response.

        Raises:
            ConfigurationError: For service-account credentials.
            AuthRefreshError: If the token endpoint rejects the refresh.
        """
        if self._auth_type is AuthType.SERVICE_ACCOUNT:
            raise ConfigurationError(
                "Refresh token is not applicable for service account authentication"
            )
        async with self._lock:
            return await self._refresh_oauth_locked()

    async def authorize(self, code: str, redirect_uri: str) -> dict[str, Any]:
        """Complete the authorization-code grant and store the token pair.

        Returns:
            The token endpoint's JSON response.
        """
        async with self._lock:
            credential = self._oauth_credential("Authorization codes")
            body = await self._token_endpoint.exchange_authorization_code(
                code,
                credential.client_id,
                credential.client_secret,
                redirect_uri,
            )
            self._credential = replace(
                credential,
                access_token=body["access_token"],
                refresh_token=body.get("refresh_token") or credential.refresh_token,
            )
            logger.info("Stored tokens from authorization code grant")
            return body

    def _current_token(self) -> str | None:
        credential = self._credential
        if isinstance(credential, ServiceAccountCredential):
            return credential.cached_token
        return credential.access_token

    def _oauth_credential(self, what: str) -> OAuthCredential:
        credential = self._credential
        if not isinstance(credential, OAuthCredential):
            raise ConfigurationError(
                f"{what} are not applicable for service account authentication"
            )
        return credential

    async def _refresh_oauth_locked(self) -> dict[str, Any]:
        credential = self._oauth_credential("Refresh tokens")
        if not credential.refresh_token:
            raise AuthRefreshError(
                "No refresh token available", grant_type="refresh_token"
            )

        body = await self._token_endpoint.exchange_refresh_token(
            credential.refresh_token,
            credential.client_id,
            credential.client_secret,
        )
        updated = replace(
            credential,
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token") or credential.refresh_token,
        )
        self._credential = updated
        logger.info(
            "Refreshed OAuth access token",
            extra={"auth_type": AuthType.OAUTH.value},
        )

        if self._refresh_callback is not None:
            self._refresh_callback(updated.access_token, updated.refresh_token)
        return body

    async def _fetch_service_account_token(self) -> str:
        credential = self._credential
        if not isinstance(credential, ServiceAccountCredential):
            raise ConfigurationError(
                "Service account tokens are not applicable for OAuth authentication"
            )
        # Invalidate first so a failed fetch never leaves a rejected token cached
        credential = replace(credential, cached_token=None, expires_at=None)
        self._credential = credential

        if self._token_fetcher is None:
            raise ConfigurationError("Service account credentials not initialized")
        fetched = await self._token_fetcher.fetch_token()

        self._credential = replace(
            credential,
            cached_token=fetched.access_token,
            expires_at=self._clock() + fetched.expires_in,
        )
        return fetched.access_token
