"""Retrying transport with credential refresh.

RetryTransport wraps any httpx async transport. For each request it runs
one sequential loop:

    Attempting -> Succeeded   decider says stop on a response
               -> Retrying    decider approves: wait, re-sign on 401, loop
               -> Exhausted   attempt limit reached: last response or
                              transport error goes to the caller unchanged
               -> FatalError  credential refresh failed: raised at once

The decider is consulted after every attempt, including the one that
follows a refresh, so a revoked credential costs exactly one refresh.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from google_rest_client.retry.decider import RetryContext, RetryDecider
from google_rest_client.retry.mutator import RequestMutator
from google_rest_client.retry.policy import RetryPolicy

logger = logging.getLogger(__name__)


class RetryTransport(httpx.AsyncBaseTransport):
    """httpx transport decorator adding retries and 401 re-signing.

    Args:
        decider: Decides whether an attempt is retried.
        mutator: Rebuilds the request after a 401.
        transport: Transport that performs the actual I/O. Defaults to
            httpx.AsyncHTTPTransport().
    """

    def __init__(
        self,
        decider: RetryDecider,
        mutator: RequestMutator,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._decider = decider
        self._mutator = mutator
        self._transport = transport or httpx.AsyncHTTPTransport()

    @property
    def policy(self) -> RetryPolicy:
        return self._decider.policy

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        # Buffer the body so every attempt sends identical bytes
        await request.aread()
        context = RetryContext(request=request)

        while True:
            try:
                response = await self._transport.handle_async_request(
                    context.request
                )
            except (httpx.LocalProtocolError, httpx.UnsupportedProtocol):
                # Rejected before leaving the client; resending cannot help
                raise
            except httpx.TransportError as exc:
                context.record_error(exc)
                if not self._decider.decide(context):
                    logger.warning(
                        "Giving up on %s %s after %d attempt(s): %s",
                        request.method,
                        request.url,
                        context.attempt,
                        exc,
                    )
                    raise
                await asyncio.sleep(self.policy.delay_fn(context.attempt))
                continue

            await response.aread()
            context.record_response(response)
            if not self._decider.decide(context):
                return response

            delay = self.policy.delay_fn(context.attempt)
            try:
                if response.status_code == 401:
                    context.request = await self._mutator.mutate(
                        context.request, response
                    )
                    context.refresh_count += 1
            finally:
                await response.aclose()
            await asyncio.sleep(delay)

    async def aclose(self) -> None:
        await self._transport.aclose()
