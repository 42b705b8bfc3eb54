"""Public async client entrypoint."""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Iterable
from types import TracebackType
from typing import Any

from .client_shared import validate_client_config
from .config import CosmosClientConfig
from .connection import ConnectionContext
from .core.async_transport import AsyncTransport
from .core.errors import CosmosClientClosedError, CosmosNotInitializedError
from .core.requests import PriorityLevel
from .core.response import ResponseRecord
from .documents.operations import (
    CallProcedure,
    DocumentBody,
    DocumentOperation,
    PartitionKeyInput,
    QueryDocuments,
)
from .documents.patch import PatchOperation
from .documents.service import AsyncDocumentService


class _GuardedAsyncDocumentService:
    """Guard wrapper to block usage after async client close."""

    def __init__(self, owner: "AsyncCosmosClient", delegate: AsyncDocumentService) -> None:
        self._owner = owner
        self._delegate = delegate

    async def execute(
        self,
        operation: DocumentOperation,
        *,
        collection: str,
        throw_on_error: bool | None = None,
    ) -> ResponseRecord:
        self._owner._ensure_open()
        return await self._delegate.execute(
            operation,
            collection=collection,
            throw_on_error=throw_on_error,
        )

    def execute_many(
        self,
        operations: Iterable[DocumentOperation] | AsyncIterable[DocumentOperation],
        *,
        collection: str,
        batch_size: int | None = None,
        throw_on_error: bool | None = None,
    ) -> AsyncIterator[ResponseRecord]:
        self._owner._ensure_open()
        return self._guard_iterator(
            self._delegate.execute_many(
                operations,
                collection=collection,
                batch_size=batch_size,
                throw_on_error=throw_on_error,
            )
        )

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
        self._owner._ensure_open()
        return await self._delegate.get_document(
            collection,
            id,
            partition_key,
            etag=etag,
            priority=priority,
            target_type=target_type,
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
        self._owner._ensure_open()
        return await self._delegate.create_document(
            collection,
            document,
            partition_key,
            upsert=upsert,
            no_content=no_content,
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
        self._owner._ensure_open()
        return await self._delegate.replace_document(
            collection,
            id,
            document,
            partition_key,
            etag=etag,
            no_content=no_content,
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
        self._owner._ensure_open()
        return await self._delegate.patch_document(
            collection,
            id,
            partition_key,
            operations,
            condition=condition,
            etag=etag,
            no_content=no_content,
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
        self._owner._ensure_open()
        return await self._delegate.delete_document(
            collection,
            id,
            partition_key,
            etag=etag,
            priority=priority,
            throw_on_error=throw_on_error,
        )

    async def query(
        self,
        query: QueryDocuments,
        *,
        collection: str,
        throw_on_error: bool | None = None,
    ) -> ResponseRecord:
        self._owner._ensure_open()
        return await self._delegate.query(query, collection=collection, throw_on_error=throw_on_error)

    def iter_query(
        self,
        query: QueryDocuments,
        *,
        collection: str,
        throw_on_error: bool | None = None,
    ) -> AsyncIterator[ResponseRecord]:
        self._owner._ensure_open()
        return self._guard_iterator(
            self._delegate.iter_query(query, collection=collection, throw_on_error=throw_on_error)
        )

    async def call_procedure(
        self,
        procedure: CallProcedure,
        *,
        collection: str,
        throw_on_error: bool | None = None,
    ) -> ResponseRecord:
        self._owner._ensure_open()
        return await self._delegate.call_procedure(
            procedure,
            collection=collection,
            throw_on_error=throw_on_error,
        )

    def iter_procedure(
        self,
        procedure: CallProcedure,
        *,
        collection: str,
        throw_on_error: bool | None = None,
    ) -> AsyncIterator[ResponseRecord]:
        self._owner._ensure_open()
        return self._guard_iterator(
            self._delegate.iter_procedure(
                procedure,
                collection=collection,
                throw_on_error=throw_on_error,
            )
        )

    async def get_partition_key_ranges(self, collection: str) -> list[str]:
        self._owner._ensure_open()
        return await self._delegate.get_partition_key_ranges(collection)

    async def _guard_iterator(
        self,
        source: AsyncIterator[ResponseRecord],
    ) -> AsyncIterator[ResponseRecord]:
        iterator = source.__aiter__()
        try:
            while True:
                self._owner._ensure_open()
                try:
                    record = await anext(iterator)
                except StopAsyncIteration:
                    return
                self._owner._ensure_open()
                yield record
        finally:
            await iterator.aclose()


class AsyncCosmosClient:
    """Public async Cosmos DB client bound to one connection."""

    def __init__(
        self,
        connection: ConnectionContext,
        *,
        config: CosmosClientConfig | None = None,
        transport: AsyncTransport | None = None,
        document_service: AsyncDocumentService | None = None,
        sleeper: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        if connection is None:
            raise CosmosNotInitializedError("connection is required; call connect() first")
        self._config = config or CosmosClientConfig()
        validate_client_config(self._config)

        self._connection = connection
        self._transport = transport or AsyncTransport(self._config)
        internal_documents = document_service or AsyncDocumentService(
            self._transport,
            connection,
            config=self._config,
            sleeper=sleeper,
        )
        self._closed = False
        self.documents = _GuardedAsyncDocumentService(self, internal_documents)

    @property
    def connection(self) -> ConnectionContext:
        return self._connection

    def _ensure_open(self) -> None:
        if self._closed:
            raise CosmosClientClosedError("AsyncCosmosClient is already closed")

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._transport.close()
        finally:
            close_provider = getattr(self._connection.token_provider, "close", None)
            if close_provider is not None:
                await close_provider()

    async def __aenter__(self) -> "AsyncCosmosClient":
        self._ensure_open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        await self.close()
        return False


__all__ = [
    "AsyncCosmosClient",
]
