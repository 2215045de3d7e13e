"""Tests for RetryTransport retry loop and 401 re-signing."""

import httpx
import pytest

from google_rest_client.auth.credentials import OAuthCredential
from google_rest_client.auth.manager import CredentialManager
from google_rest_client.retry.decider import RetryDecider
from google_rest_client.retry.delay import no_delay
from google_rest_client.retry.middleware import RetryTransport
from google_rest_client.retry.mutator import RequestMutator
from google_rest_client.retry.policy import RetryPolicy
from google_rest_client.utils.errors import AuthRefreshError


class ScriptedHandler:
    """MockTransport handler that replays a fixed list of outcomes.

    Each outcome is a status code, an httpx.Response, or an exception to
    raise. Every request seen is recorded.
    """

    def __init__(self, *outcomes) -> None:
        self.outcomes = list(outcomes)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, int):
            return httpx.Response(outcome, json={"status": outcome})
        return outcome


@pytest.fixture
def manager(token_endpoint) -> CredentialManager:
    return CredentialManager(
        OAuthCredential("client-id", "client-secret", "access-0", "refresh-0"),
        token_endpoint=token_endpoint,
    )


def _client(
    handler: ScriptedHandler,
    manager: CredentialManager,
    policy: RetryPolicy | None = None,
) -> httpx.AsyncClient:
    transport = RetryTransport(
        RetryDecider(policy or RetryPolicy(delay_fn=no_delay)),
        RequestMutator(manager),
        httpx.MockTransport(handler),
    )
    return httpx.AsyncClient(
        transport=transport,
        headers={"Authorization": "Bearer access-0"},
    )


class TestRetryTransport:
    """Tests for the attempt loop."""

    @pytest.mark.asyncio
    async def test_success_is_single_attempt(self, manager) -> None:
        handler = ScriptedHandler(200)
        async with _client(handler, manager) as client:
            response = await client.get("https://api.test/items")

        assert response.status_code == 200
        assert response.json() == {"status": 200}
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_retries_server_errors_until_success(self, manager) -> None:
        handler = ScriptedHandler(503, 500, 429, 200)
        async with _client(handler, manager) as client:
            response = await client.get("https://api.test/items")

        assert response.status_code == 200
        assert len(handler.requests) == 4

    @pytest.mark.asyncio
    async def test_exhaustion_returns_last_response(self, manager) -> None:
        handler = ScriptedHandler(503, 502, 504)
        policy = RetryPolicy(max_attempts=3, delay_fn=no_delay)
        async with _client(handler, manager, policy) as client:
            response = await client.get("https://api.test/items")

        assert response.status_code == 504
        assert response.json() == {"status": 504}
        assert len(handler.requests) == 3

    @pytest.mark.asyncio
    async def test_transport_error_retried(self, manager) -> None:
        handler = ScriptedHandler(httpx.ConnectError("refused"), 200)
        async with _client(handler, manager) as client:
            response = await client.get("https://api.test/items")

        assert response.status_code == 200
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_persistent_transport_error_raised(self, manager) -> None:
        handler = ScriptedHandler(
            httpx.ReadTimeout("slow"), httpx.ReadTimeout("still slow")
        )
        policy = RetryPolicy(max_attempts=2, delay_fn=no_delay)
        async with _client(handler, manager, policy) as client:
            with pytest.raises(httpx.ReadTimeout, match="still slow"):
                await client.get("https://api.test/items")

        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            httpx.LocalProtocolError("Illegal header value b'abc '"),
            httpx.UnsupportedProtocol("Request URL has an unsupported protocol"),
        ],
    )
    async def test_client_side_rejection_not_retried(self, manager, error) -> None:
        seen: list[int] = []

        def record_delay(attempt: int) -> float:
            seen.append(attempt)
            return 0.0

        handler = ScriptedHandler(error, 200)
        async with _client(
            handler, manager, RetryPolicy(delay_fn=record_delay)
        ) as client:
            with pytest.raises(type(error)):
                await client.get("https://api.test/items")

        assert len(handler.requests) == 1
        assert seen == []

    @pytest.mark.asyncio
    async def test_delay_fn_receives_retry_number(self, manager) -> None:
        seen: list[int] = []

        def record_delay(attempt: int) -> float:
            seen.append(attempt)
            return 0.0

        handler = ScriptedHandler(500, 500, 500, 200)
        async with _client(
            handler, manager, RetryPolicy(delay_fn=record_delay)
        ) as client:
            await client.get("https://api.test/items")

        assert seen == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_body_resent_identically(self, manager) -> None:
        handler = ScriptedHandler(503, 200)
        async with _client(handler, manager) as client:
            await client.post("https://api.test/items", content=b'{"name": "a"}')

        first, second = handler.requests
        assert first.content == second.content == b'{"name": "a"}'
        assert first.headers["Authorization"] == second.headers["Authorization"]


class TestUnauthorizedHandling:
    """Tests for credential refresh on 401."""

    @pytest.mark.asyncio
    async def test_refresh_and_resign_once(self, manager, token_endpoint) -> None:
        handler = ScriptedHandler(401, 200)
        async with _client(handler, manager) as client:
            response = await client.post(
                "https://api.test/items",
                json={"name": "a"},
                headers={"X-Custom": "kept"},
            )

        assert response.status_code == 200
        assert len(token_endpoint.calls) == 1
        first, second = handler.requests
        assert first.headers["Authorization"] == "Bearer access-0"
        assert second.headers["Authorization"] == "Bearer access-1"
        assert second.headers["X-Custom"] == "kept"
        assert second.content == first.content

    @pytest.mark.asyncio
    async def test_persistent_401_returned_after_one_refresh(
        self, manager, token_endpoint
    ) -> None:
        handler = ScriptedHandler(401, 401)
        async with _client(handler, manager) as client:
            response = await client.get("https://api.test/items")

        assert response.status_code == 401
        assert len(handler.requests) == 2
        assert len(token_endpoint.calls) == 1

    @pytest.mark.asyncio
    async def test_refresh_failure_is_fatal(self, manager, token_endpoint) -> None:
        token_endpoint.fail_with = AuthRefreshError("invalid_grant", status_code=400)
        handler = ScriptedHandler(401, 200)
        async with _client(handler, manager) as client:
            with pytest.raises(AuthRefreshError):
                await client.get("https://api.test/items")

        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_server_errors_do_not_refresh(self, manager, token_endpoint) -> None:
        handler = ScriptedHandler(500, 503, 200)
        async with _client(handler, manager) as client:
            await client.get("https://api.test/items")

        assert token_endpoint.calls == []
