"""Document operations over the batch engine."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Iterable, Iterator
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from ..client_shared import resolve_throw_on_error
from ..config import CosmosClientConfig
from ..core.batch import AsyncBatchExecutor, RequestBatch
from ..core.dispatch import SendingTransport
from ..core.errors import CosmosApiError
from ..core.pagination import aiterate_continuation
from ..core.requests import PriorityLevel, RequestDescriptor
from ..core.response import ResponseRecord, emit_record
from .builders import build_descriptor, build_partition_key_ranges_descriptor
from .operations import (
    CallProcedure,
    CreateDocument,
    DeleteDocument,
    DocumentBody,
    DocumentOperation,
    GetDocument,
    PartitionKeyInput,
    PatchDocument,
    QueryDocuments,
    ReplaceDocument,
)
from .patch import PatchOperation

if TYPE_CHECKING:
    from ..connection import ConnectionContext

logger = logging.getLogger("cosmoslite")


class AsyncDocumentService:
    """Executes document operations against one connection."""

    def __init__(
        self,
        transport: SendingTransport,
        connection: "ConnectionContext",
        *,
        config: CosmosClientConfig | None = None,
        sleeper: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self._config = config or CosmosClientConfig()
        self._connection = connection
        self._executor = AsyncBatchExecutor(
            transport,
            connection,
            default_retry_after_ms=self._config.retry.default_retry_after_ms,
            sleeper=sleeper,
        )

    @property
    def connection(self) -> "ConnectionContext":
        return self._connection

    async def execute(
        self,
        operation: DocumentOperation,
        *,
        collection: str,
        throw_on_error: bool | None = None,
    ) -> ResponseRecord:
        descriptor = await self._build(operation, collection)
        [record] = await self._executor.execute([descriptor])
        return self._emit(record, collection, throw_on_error)

    async def execute_many(
        self,
        operations: Iterable[DocumentOperation] | AsyncIterable[DocumentOperation],
        *,
        collection: str,
        batch_size: int | None = None,
        throw_on_error: bool | None = None,
    ) -> AsyncIterator[ResponseRecord]:
        """Run operations ``batch_size`` at a time, yielding records in order.

        Under the throw policy a failed record does not hide the rest of its
        batch: the other records are yielded first, then the first failure is
        raised.
        """

        width = batch_size if batch_size is not None else self._config.batch.batch_size
        batch = RequestBatch(self._executor, width=width)
        logger.debug("execute_many start collection=%s batch_size=%s", collection, width)
        try:
            async for operation in _aiter(operations):
                descriptor = await self._build(operation, collection)
                for record in self._emit_batch(await batch.add(descriptor), collection, throw_on_error):
                    yield record
            for record in self._emit_batch(await batch.flush(), collection, throw_on_error):
                yield record
        finally:
            if len(batch):
                await batch.abandon()

    async def get_document(
        self,
        collection: str,
        id: str,
        partition_key: PartitionKeyInput,
        *,
        etag: str | None = None,
        priority: PriorityLevel | None = None,
        target_type: Callable[[Any], Any] | None = None,
        throw_on_error: bool | None = None,
    ) -> ResponseRecord:
        return await self.execute(
            GetDocument(
                id=id,
                partition_key=partition_key,
                etag=etag,
                priority=priority,
                target_type=target_type,
            ),
            collection=collection,
            throw_on_error=throw_on_error,
        )

    async def create_document(
        self,
        collection: str,
        document: DocumentBody,
        partition_key: PartitionKeyInput,
        *,
        upsert: bool = False,
        no_content: bool = False,
        throw_on_error: bool | None = None,
    ) -> ResponseRecord:
        return await self.execute(
            CreateDocument(
                document=document,
                partition_key=partition_key,
                upsert=upsert,
                no_content=no_content,
            ),
            collection=collection,
            throw_on_error=throw_on_error,
        )

    async def replace_document(
        self,
        collection: str,
        id: str,
        document: DocumentBody,
        partition_key: PartitionKeyInput,
        *,
        etag: str | None = None,
        no_content: bool = False,
        throw_on_error: bool | None = None,
    ) -> ResponseRecord:
        return await self.execute(
            ReplaceDocument(
                id=id,
                document=document,
                partition_key=partition_key,
                etag=etag,
                no_content=no_content,
            ),
            collection=collection,
            throw_on_error=throw_on_error,
        )

    async def patch_document(
        self,
        collection: str,
        id: str,
        partition_key: PartitionKeyInput,
        operations: Iterable[PatchOperation],
        *,
        condition: str | None = None,
        etag: str | None = None,
        no_content: bool = False,
        throw_on_error: bool | None = None,
    ) -> ResponseRecord:
        return await self.execute(
            PatchDocument(
                id=id,
                partition_key=partition_key,
                operations=tuple(operations),
                condition=condition,
                etag=etag,
                no_content=no_content,
            ),
            collection=collection,
            throw_on_error=throw_on_error,
        )

    async def delete_document(
        self,
        collection: str,
        id: str,
        partition_key: PartitionKeyInput,
        *,
        etag: str | None = None,
        priority: PriorityLevel | None = None,
        throw_on_error: bool | None = None,
    ) -> ResponseRecord:
        return await self.execute(
            DeleteDocument(id=id, partition_key=partition_key, etag=etag, priority=priority),
            collection=collection,
            throw_on_error=throw_on_error,
        )

    async def query(
        self,
        query: QueryDocuments,
        *,
        collection: str,
        throw_on_error: bool | None = None,
    ) -> ResponseRecord:
        """Fetch a single page. Feed ``record.continuation`` back to get the next one."""

        return await self.execute(query, collection=collection, throw_on_error=throw_on_error)

    async def iter_query(
        self,
        query: QueryDocuments,
        *,
        collection: str,
        throw_on_error: bool | None = None,
    ) -> AsyncIterator[ResponseRecord]:
        """Yield every page of ``query``.

        Without a partition key, range id or starting continuation, the
        collection's partition key ranges are resolved first and each range is
        paged through in turn.
        """

        if (
            query.partition_key is not None
            or query.partition_key_range_id is not None
            or query.continuation is not None
        ):
            async for record in self._iter_pages(query, collection, throw_on_error):
                yield record
            return

        range_ids = await self.get_partition_key_ranges(collection)
        if not range_ids:
            logger.warning(
                "partition key ranges unavailable; query not executed collection=%s",
                collection,
            )
            return
        logger.debug("query fan-out collection=%s ranges=%s", collection, len(range_ids))
        for range_id in range_ids:
            ranged = replace(query, partition_key_range_id=range_id)
            async for record in self._iter_pages(ranged, collection, throw_on_error):
                yield record

    async def call_procedure(
        self,
        procedure: CallProcedure,
        *,
        collection: str,
        throw_on_error: bool | None = None,
    ) -> ResponseRecord:
        return await self.execute(procedure, collection=collection, throw_on_error=throw_on_error)

    async def iter_procedure(
        self,
        procedure: CallProcedure,
        *,
        collection: str,
        throw_on_error: bool | None = None,
    ) -> AsyncIterator[ResponseRecord]:
        async for record in self._iter_pages(procedure, collection, throw_on_error):
            yield record

    async def get_partition_key_ranges(self, collection: str) -> list[str]:
        """Range ids of ``collection``; empty when they cannot be read."""

        descriptor = await build_partition_key_ranges_descriptor(
            self._connection,
            collection=collection,
        )
        [record] = await self._executor.execute([descriptor])
        if not record.is_success:
            logger.warning(
                "partition key range read failed collection=%s http_status=%s",
                collection,
                record.http_status,
            )
            return []
        data = record.data
        ranges = data.get("PartitionKeyRanges") if isinstance(data, dict) else None
        if not isinstance(ranges, list):
            logger.warning("partition key range payload malformed collection=%s", collection)
            return []
        return [str(item["id"]) for item in ranges if isinstance(item, dict) and "id" in item]

    async def _iter_pages(
        self,
        operation: QueryDocuments | CallProcedure,
        collection: str,
        throw_on_error: bool | None,
    ) -> AsyncIterator[ResponseRecord]:
        async def fetch(continuation: str | None) -> ResponseRecord:
            return await self.execute(
                replace(operation, continuation=continuation),
                collection=collection,
                throw_on_error=throw_on_error,
            )

        pages = aiterate_continuation(
            fetch,
            continuation=operation.continuation,
            max_pages=self._config.query.max_pages,
        )
        try:
            async for record in pages:
                yield record
        finally:
            await pages.aclose()

    async def _build(self, operation: DocumentOperation, collection: str) -> RequestDescriptor:
        return await build_descriptor(
            self._connection,
            operation,
            collection=collection,
            continuation_limit_kb=self._config.query.response_continuation_limit_kb,
        )

    def _emit_batch(
        self,
        records: list[ResponseRecord],
        collection: str,
        throw_on_error: bool | None,
    ) -> Iterator[ResponseRecord]:
        deferred: CosmosApiError | None = None
        for record in records:
            try:
                yield self._emit(record, collection, throw_on_error)
            except CosmosApiError as exc:
                if deferred is None:
                    deferred = exc
                else:
                    logger.error(
                        "batch member failed collection=%s http_status=%s code=%s",
                        collection,
                        record.http_status,
                        exc.code,
                    )
        if deferred is not None:
            raise deferred

    def _emit(
        self,
        record: ResponseRecord,
        collection: str,
        throw_on_error: bool | None,
    ) -> ResponseRecord:
        if record.is_success:
            logger.info(
                "operation success collection=%s http_status=%s charge=%s",
                collection,
                record.http_status,
                record.charge,
            )
        return emit_record(
            record,
            throw_on_error=resolve_throw_on_error(self._connection.throw_on_error, throw_on_error),
        )


async def _aiter(
    items: Iterable[DocumentOperation] | AsyncIterable[DocumentOperation],
) -> AsyncIterator[DocumentOperation]:
    if isinstance(items, AsyncIterable):
        async for item in items:
            yield item
        return
    for item in items:
        yield item


__all__ = [
    "AsyncDocumentService",
]
