"""Authenticated REST API client.

RestApi attaches the current bearer token to each request and sends it
through a RetryTransport, which retries transient failures and re-signs
the request after a 401. The final outcome is either a complete
successful response or a typed RestApiError.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any

import httpx

from google_rest_client.auth.credentials import (
    AuthType,
    OAuthCredential,
    ServiceAccountCredential,
)
from google_rest_client.auth.manager import CredentialManager, RefreshCallback
from google_rest_client.auth.oauth import (
    API_URI,
    OAuthTokenEndpoint,
    build_authorization_url,
)
from google_rest_client.auth.service_account import TokenFetcher
from google_rest_client.config import ClientSettings
from google_rest_client.retry.decider import RetryDecider
from google_rest_client.retry.delay import DelayFn
from google_rest_client.retry.middleware import RetryTransport
from google_rest_client.retry.mutator import RequestMutator
from google_rest_client.retry.policy import RetryPolicy, StatusHook
from google_rest_client.utils.errors import (
    ConfigurationError,
    TransientNetworkError,
    error_for_response,
)

ALLOWED_METHODS = frozenset(
    {"get", "head", "post", "put", "patch", "delete", "options"}
)
DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_REQUEST_TIMEOUT = 5 * 60.0
USER_INFO_PATH = "/oauth2/v3/userinfo"


class RestApi:
    """REST API client with OAuth or service-account authentication.

    Prefer the factories create_with_oauth() and
    create_with_service_account(); the auth type cannot change afterwards.

    Args:
        credentials: Manager owning the token state.
        logger: Destination for retry events.
        retry_policy: Retry configuration (default RetryPolicy()).
        base_url: Base URL relative request paths are resolved against.
        transport: Transport performing the I/O beneath the retry layer.
        connect_timeout: Connect timeout in seconds.
        timeout: Read/write/pool timeout in seconds.
    """

    def __init__(
        self,
        credentials: CredentialManager,
        *,
        logger: logging.Logger | None = None,
        retry_policy: RetryPolicy | None = None,
        base_url: str = API_URI,
        transport: httpx.AsyncBaseTransport | None = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self._credentials = credentials
        self._decider = RetryDecider(retry_policy or RetryPolicy(), logger)
        self.base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = httpx.Timeout(timeout, connect=connect_timeout)
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def create_with_oauth(
        cls,
        client_id: str,
        client_secret: str,
        access_token: str = "",
        refresh_token: str = "",
        *,
        token_endpoint: OAuthTokenEndpoint | None = None,
        refresh_callback: RefreshCallback | None = None,
        **options: Any,
    ) -> RestApi:
        """Create a client authenticating with an OAuth token pair."""
        credentials = CredentialManager(
            OAuthCredential(
                client_id=client_id,
                client_secret=client_secret,
                access_token=access_token,
                refresh_token=refresh_token,
            ),
            token_endpoint=token_endpoint,
            refresh_callback=refresh_callback,
        )
        return cls(credentials, **options)

    @classmethod
    def create_with_service_account(
        cls,
        service_account_config: Mapping[str, Any],
        scopes: Iterable[str],
        *,
        token_fetcher: TokenFetcher | None = None,
        **options: Any,
    ) -> RestApi:
        """Create a client authenticating as a service account.

        Args:
            service_account_config: Parsed service-account JSON key.
            scopes: OAuth scopes requested for the tokens.
            token_fetcher: Token source; defaults to google-auth.
            **options: Passed to the RestApi constructor.

        Raises:
            ConfigurationError: If the key or scopes are missing, or the
                key cannot be loaded.
        """
        scope_set = frozenset(scopes)
        if not service_account_config or not scope_set:
            raise ConfigurationError(
                "Service account configuration and scopes are required"
            )
        credentials = CredentialManager(
            ServiceAccountCredential(
                key_material=dict(service_account_config),
                scopes=scope_set,
            ),
            token_fetcher=token_fetcher,
        )
        return cls(credentials, **options)

    @classmethod
    def from_settings(cls, settings: ClientSettings, **options: Any) -> RestApi:
        """Create a client from ClientSettings (see ClientSettings.from_env)."""
        options.setdefault("base_url", settings.base_url)
        options.setdefault("retry_policy", RetryPolicy(max_attempts=settings.max_attempts))
        if settings.auth_type is AuthType.SERVICE_ACCOUNT:
            return cls.create_with_service_account(
                settings.service_account_config or {},
                settings.scopes,
                **options,
            )
        return cls.create_with_oauth(
            settings.client_id,
            settings.client_secret,
            settings.access_token,
            settings.refresh_token,
            **options,
        )

    @property
    def auth_type(self) -> AuthType:
        return self._credentials.auth_type

    @property
    def credentials(self) -> CredentialManager:
        return self._credentials

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._decider.policy

    def set_delay_fn(self, delay_fn: DelayFn) -> None:
        self._decider.policy = replace(self._decider.policy, delay_fn=delay_fn)

    def set_backoffs_count(self, count: int) -> None:
        self._decider.policy = replace(self._decider.policy, max_attempts=count)

    def set_backoff_callback_403(self, hook: StatusHook) -> None:
        self._decider.policy = replace(
            self._decider.policy, forbidden_status_hook=hook
        )

    def set_bad_request_callback(self, hook: StatusHook) -> None:
        self._decider.policy = replace(self._decider.policy, bad_request_hook=hook)

    def set_refresh_token_callback(self, callback: RefreshCallback | None) -> None:
        self._credentials.set_refresh_callback(callback)

    def set_credentials(self, access_token: str, refresh_token: str) -> None:
        self._credentials.set_tokens(access_token, refresh_token)

    def set_app_credentials(self, client_id: str, client_secret: str) -> None:
        self._credentials.set_app_credentials(client_id, client_secret)

    async def get_access_token(self) -> str:
        return await self._credentials.get_access_token()

    async def refresh_token(self) -> dict[str, Any]:
        """Refresh the OAuth access token now.

        Returns:
            The token endpoint's JSON response.

        Raises:
            ConfigurationError: For service-account clients.
            AuthRefreshError: If the token endpoint rejects the refresh.
        """
        return await self._credentials.refresh_oauth_token()

    async def authorize(self, code: str, redirect_uri: str) -> dict[str, Any]:
        """Exchange an authorization code for tokens and keep them."""
        return await self._credentials.authorize(code, redirect_uri)

    def get_authorization_url(
        self,
        redirect_uri: str,
        scope: str,
        approval_prompt: str = "force",
        access_type: str = "offline",
        state: str = "",
    ) -> str:
        credential = self._credentials.credential
        if not isinstance(credential, OAuthCredential):
            raise ConfigurationError(
                "Authorization URLs are not applicable for service account authentication"
            )
        return build_authorization_url(
            credential.client_id,
            redirect_uri,
            scope,
            approval_prompt=approval_prompt,
            access_type=access_type,
            state=state,
        )

    async def request(
        self,
        url: str,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        *,
        http_errors: bool = True,
        **options: Any,
    ) -> httpx.Response:
        """Send an authenticated request, retrying per the retry policy.

        Args:
            url: Absolute URL or path relative to base_url.
            method: HTTP method (case-insensitive).
            headers: Extra headers; they override the defaults.
            http_errors: Raise on a final 4xx/5xx response (default True).
            **options: Passed to httpx (params, json, data, content, timeout).

        Returns:
            The final response.

        Raises:
            ConfigurationError: Invalid method, incomplete credentials, or
                a request the HTTP layer refuses to send (e.g. an illegal
                header value). Never retried.
            AuthRefreshError: A credential refresh failed.
            TransientNetworkError: No response after all attempts.
            RestApiError: Subclass matching the final 4xx/5xx status.
        """
        method_name = method.lower()
        if method_name not in ALLOWED_METHODS:
            raise ConfigurationError(f"Wrong http method specified: '{method}'")
        self._credentials.validate()

        access_token = await self._credentials.get_access_token()
        request_headers = httpx.Headers(
            {
                "Accept": "application/json",
                "Authorization": f"Bearer {access_token}",
            }
        )
        for key, value in (headers or {}).items():
            request_headers[key] = value

        client = self._get_client()
        try:
            response = await client.request(
                method_name.upper(), url, headers=request_headers, **options
            )
        except (httpx.LocalProtocolError, httpx.UnsupportedProtocol) as exc:
            raise ConfigurationError(
                f"{method_name.upper()} {url} is not a valid request: {exc}"
            ) from exc
        except httpx.TransportError as exc:
            raise TransientNetworkError(
                f"{method_name.upper()} {url} failed: {exc}"
            ) from exc

        if http_errors and response.is_error:
            raise error_for_response(response)
        return response

    async def get_user_info(self) -> dict[str, Any]:
        """Fetch the profile of the user the OAuth tokens belong to."""
        response = await self.request(USER_INFO_PATH)
        return response.json()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                transport=RetryTransport(
                    self._decider,
                    RequestMutator(self._credentials),
                    self._transport,
                ),
                timeout=self._timeout,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the shared HTTP client and release connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> RestApi:
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.aclose()
