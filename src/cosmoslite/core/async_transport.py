"""Async HTTP transport with network-error retry."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable
from typing import Protocol

import httpx

from ..config import CosmosClientConfig
from .errors import CosmosTransportError
from .retry import can_retry, next_backoff_seconds

logger = logging.getLogger("cosmoslite")

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
# Raised before the request reached the service.
CONNECT_PHASE_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout)


class AsyncTransportClient(Protocol):
    async def send(self, request: httpx.Request) -> httpx.Response: ...
    async def aclose(self) -> None: ...


class AsyncTransport:
    """Asynchronous transport shared by every operation of one client.

    Only failures that never produced an HTTP response are retried here, and
    for writes only when the request never left the client. Status handling
    (including 429) belongs to the batch engine.
    """

    def __init__(
        self,
        config: CosmosClientConfig,
        *,
        client: AsyncTransportClient | None = None,
        sleeper: Callable[[float], Awaitable[None]] | None = None,
        clock: Callable[[], float] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._config = config
        self._sleep = sleeper or _default_sleep
        self._clock = clock or time.monotonic
        self._rng = rng or random.Random()
        self._closed = False

        self._default_headers = _default_headers(config)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers=self._default_headers,
            timeout=_default_timeout(config),
        )

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_client and hasattr(self._client, "aclose"):
            await self._client.aclose()

    async def send(self, request: httpx.Request) -> httpx.Response:
        if self._closed:
            raise CosmosTransportError("transport is already closed")

        for name, value in self._default_headers.items():
            request.headers.setdefault(name, value)

        started_at = self._clock()
        attempt = 0

        while True:
            attempt += 1
            logger.debug(
                "request start method=%s url=%s attempt=%s",
                request.method,
                request.url,
                attempt,
            )
            try:
                response = await self._client.send(request)
            except httpx.TransportError as exc:
                if is_resendable(request.method, exc) and can_retry(
                    attempt=attempt,
                    max_attempts=self._config.retry.max_transport_attempts,
                    started_at=started_at,
                    now=self._clock(),
                    total_budget_seconds=self._config.retry.total_retry_budget_seconds,
                ):
                    logger.warning(
                        "request network error; retrying url=%s attempt=%s error=%s",
                        request.url,
                        attempt,
                        exc.__class__.__name__,
                    )
                    await self._sleep(
                        next_backoff_seconds(
                            attempt_index=attempt - 1,
                            max_backoff_seconds=self._config.retry.max_backoff_seconds,
                            rng=self._rng,
                        )
                    )
                    continue
                logger.error(
                    "request network error; giving up url=%s attempt=%s error=%s",
                    request.url,
                    attempt,
                    exc.__class__.__name__,
                )
                raise CosmosTransportError(
                    "network/transport error",
                    cause="network",
                ) from exc

            logger.debug(
                "response received url=%s attempt=%s http_status=%s",
                request.url,
                attempt,
                response.status_code,
            )
            return response


def is_resendable(method: str, exc: httpx.TransportError) -> bool:
    return method.upper() in IDEMPOTENT_METHODS or isinstance(exc, CONNECT_PHASE_ERRORS)


def _default_headers(config: CosmosClientConfig) -> dict[str, str]:
    return {
        "Accept": "application/json",
        "Accept-Encoding": "gzip",
        "Cache-Control": "no-cache",
        "User-Agent": config.user_agent,
    }


def _default_timeout(config: CosmosClientConfig) -> httpx.Timeout:
    transport = config.transport
    return httpx.Timeout(
        connect=transport.timeout_connect_seconds,
        read=transport.timeout_read_seconds,
        write=transport.timeout_write_seconds,
        pool=transport.timeout_pool_seconds,
    )


async def _default_sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


__all__ = [
    "IDEMPOTENT_METHODS",
    "CONNECT_PHASE_ERRORS",
    "is_resendable",
    "AsyncTransportClient",
    "AsyncTransport",
]
