"""Batch execution with throttle retry.

A batch is drained as a whole: every outstanding operation must complete
before responses are classified. Throttled members (HTTP 429) with retries
left are collected, the engine sleeps once for the longest retry hint of the
round, and only those members are resent as a fresh batch. Every other
response, including a 429 whose retry budget is spent, settles into a
``ResponseRecord``. Records come back in submission order.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING

from .dispatch import OutstandingOperation, SendingTransport, dispatch
from .errors import CosmosApiError, CosmosTransportError
from .requests import RequestDescriptor
from .response import ResponseRecord, failure_record, normalize_response
from .retry import is_throttled_status, merge_retry_wait_ms, retry_after_ms

if TYPE_CHECKING:
    from ..connection import ConnectionContext

logger = logging.getLogger("cosmoslite")


class AsyncBatchExecutor:
    """Drains batches of outstanding operations, retrying throttled ones."""

    def __init__(
        self,
        transport: SendingTransport,
        connection: "ConnectionContext",
        *,
        default_retry_after_ms: int = 1000,
        sleeper: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self._transport = transport
        self._connection = connection
        self._default_retry_after_ms = default_retry_after_ms
        self._sleep = sleeper or asyncio.sleep

    @property
    def transport(self) -> SendingTransport:
        return self._transport

    def dispatch(self, descriptor: RequestDescriptor) -> OutstandingOperation:
        return dispatch(descriptor, self._transport)

    async def execute(self, descriptors: Sequence[RequestDescriptor]) -> list[ResponseRecord]:
        return await self.drain([self.dispatch(descriptor) for descriptor in descriptors])

    async def drain(self, outstanding: Sequence[OutstandingOperation]) -> list[ResponseRecord]:
        records: list[ResponseRecord | None] = [None] * len(outstanding)
        pending: list[tuple[int, OutstandingOperation]] = list(enumerate(outstanding))
        retry_round = 0

        while pending:
            await self._wait_all([operation for _, operation in pending])

            throttled: list[tuple[int, RequestDescriptor]] = []
            hints: list[int] = []
            handled = 0
            try:
                for index, operation in pending:
                    handled += 1
                    await self._settle(index, operation, records, throttled, hints)
            finally:
                await self._discard([operation for _, operation in pending[handled:]])

            if not throttled:
                break

            retry_round += 1
            wait_ms = merge_retry_wait_ms(hints)
            logger.warning(
                "throttled; retrying requests=%s wait_ms=%s round=%s",
                len(throttled),
                wait_ms,
                retry_round,
            )
            await self._sleep(wait_ms / 1000.0)
            pending = [(index, self.dispatch(descriptor)) for index, descriptor in throttled]

        settled = [record for record in records if record is not None]
        if len(settled) != len(records):
            raise RuntimeError("batch drained without settling every operation")
        return settled

    async def abandon(self, outstanding: Sequence[OutstandingOperation]) -> None:
        """Cancel in-flight operations and release their wire resources."""

        for operation in outstanding:
            operation.task.cancel()
        await asyncio.gather(
            *(operation.task for operation in outstanding),
            return_exceptions=True,
        )
        await self._discard(outstanding)
        if outstanding:
            logger.debug("abandoned outstanding operations count=%s", len(outstanding))

    async def _settle(
        self,
        index: int,
        operation: OutstandingOperation,
        records: list[ResponseRecord | None],
        throttled: list[tuple[int, RequestDescriptor]],
        hints: list[int],
    ) -> None:
        operation.release()
        descriptor = operation.descriptor
        exc = operation.task.exception()
        if exc is not None:
            records[index] = failure_record(_as_api_error(exc, descriptor))
            return
        response = operation.task.result()
        try:
            if is_throttled_status(response.status_code) and descriptor.remaining_retries > 0:
                descriptor.remaining_retries -= 1
                hints.append(
                    retry_after_ms(
                        response.headers,
                        default_ms=self._default_retry_after_ms,
                    )
                )
                throttled.append((index, descriptor))
            else:
                records[index] = normalize_response(
                    response,
                    descriptor,
                    self._connection,
                    default_retry_after_ms=self._default_retry_after_ms,
                )
        finally:
            await response.aclose()

    async def _discard(self, operations: Sequence[OutstandingOperation]) -> None:
        """Release settled operations whose responses were never classified."""

        for operation in operations:
            operation.release()
            task = operation.task
            if task.done() and not task.cancelled() and task.exception() is None:
                await task.result().aclose()

    async def _wait_all(self, outstanding: Sequence[OutstandingOperation]) -> None:
        try:
            await asyncio.wait([operation.task for operation in outstanding])
        except asyncio.CancelledError:
            await self.abandon(outstanding)
            raise


class RequestBatch:
    """Accumulates dispatched operations up to ``width`` and drains them together."""

    def __init__(self, executor: AsyncBatchExecutor, *, width: int = 1) -> None:
        if width < 1:
            raise ValueError("width must be >= 1")
        self._executor = executor
        self._width = width
        self._outstanding: list[OutstandingOperation] = []

    def __len__(self) -> int:
        return len(self._outstanding)

    async def add(self, descriptor: RequestDescriptor) -> list[ResponseRecord]:
        """Dispatch ``descriptor``; drain once the batch is full."""

        self._outstanding.append(self._executor.dispatch(descriptor))
        if len(self._outstanding) >= self._width:
            return await self.flush()
        return []

    async def flush(self) -> list[ResponseRecord]:
        outstanding, self._outstanding = self._outstanding, []
        if not outstanding:
            return []
        return await self._executor.drain(outstanding)

    async def abandon(self) -> None:
        outstanding, self._outstanding = self._outstanding, []
        await self._executor.abandon(outstanding)


def _as_api_error(exc: BaseException, descriptor: RequestDescriptor) -> CosmosApiError:
    if isinstance(exc, CosmosApiError):
        if exc.request is None:
            exc.request = descriptor
        return exc
    error = CosmosTransportError(
        f"request failed: {exc.__class__.__name__}",
        cause="unexpected",
        request=descriptor,
    )
    error.__cause__ = exc
    return error


__all__ = [
    "AsyncBatchExecutor",
    "RequestBatch",
]
