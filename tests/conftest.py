"""Shared fakes for credential and transport tests."""

from __future__ import annotations

import asyncio
import json
import threading
from collections.abc import Callable, Iterator
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

import httpx
import pytest

from google_rest_client.auth.service_account import FetchedToken
from google_rest_client.utils.errors import AuthRefreshError


def build_response(
    status_code: int = 200,
    json_data: Any = None,
    text: str = "",
    reason: str | None = None,
    request: httpx.Request | None = None,
) -> httpx.Response:
    """Build an httpx.Response with proper content encoding."""
    if json_data is not None:
        content = json.dumps(json_data).encode("utf-8")
        headers = {"content-type": "application/json"}
    else:
        content = text.encode("utf-8")
        headers = {"content-type": "text/plain"}
    extensions = {}
    if reason is not None:
        extensions["reason_phrase"] = reason.encode("ascii")
    return httpx.Response(
        status_code=status_code,
        content=content,
        headers=headers,
        extensions=extensions,
        request=request or httpx.Request("GET", "https://mock"),
    )


class FakeTokenEndpoint:
    """OAuth token endpoint that issues numbered tokens."""

    def __init__(self, fail_with: Exception | None = None, rotate: bool = True) -> None:
        self.calls: list[dict[str, str]] = []
        self.fail_with = fail_with
        self.rotate = rotate

    async def exchange_refresh_token(
        self, refresh_token: str, client_id: str, client_secret: str
    ) -> dict[str, Any]:
        self.calls.append(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": client_id,
                "client_secret": client_secret,
            }
        )
        # Yield so concurrent refreshes can interleave if unsynchronized
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with
        n = len(self.calls)
        body = {"access_token": f"access-{n}", "expires_in": 3599}
        if self.rotate:
            body["refresh_token"] = f"refresh-{n}"
        return body

    async def exchange_authorization_code(
        self, code: str, client_id: str, client_secret: str, redirect_uri: str
    ) -> dict[str, Any]:
        self.calls.append(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
            }
        )
        return {"access_token": "access-from-code", "refresh_token": "refresh-from-code"}


class FakeTokenFetcher:
    """Service-account token source issuing numbered tokens."""

    def __init__(self, expires_in: int = 3600, fail: bool = False) -> None:
        self.calls = 0
        self.expires_in = expires_in
        self.fail = fail

    async def fetch_token(self) -> FetchedToken:
        self.calls += 1
        await asyncio.sleep(0)
        if self.fail:
            raise AuthRefreshError("Failed to fetch service account access token: denied")
        return FetchedToken(access_token=f"sa-token-{self.calls}", expires_in=self.expires_in)


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def make_response() -> Callable[..., httpx.Response]:
    return build_response


@pytest.fixture
def token_endpoint() -> FakeTokenEndpoint:
    return FakeTokenEndpoint()


@pytest.fixture
def token_fetcher() -> FakeTokenFetcher:
    return FakeTokenFetcher()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class _TokenCheckingHandler(BaseHTTPRequestHandler):
    """Answers 200 only to the bearer token the server was told to accept."""

    def do_GET(self) -> None:
        authorization = self.headers.get("Authorization")
        self.server.seen.append(authorization)
        if authorization == f"Bearer {self.server.valid_token}":
            status, body = 200, b'{"ok": true}'
        else:
            status, body = 401, b'{"error": "unauthorized"}'
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        pass


@pytest.fixture
def api_server() -> Iterator[ThreadingHTTPServer]:
    """Real HTTP server on localhost, reached through httpx's socket transport.

    ``seen`` records the Authorization header of every request received;
    ``url`` is the base URL to send requests to.
    """
    server = ThreadingHTTPServer(("127.0.0.1", 0), _TokenCheckingHandler)
    server.seen = []
    server.valid_token = "access-1"
    server.url = f"http://127.0.0.1:{server.server_address[1]}"
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)
