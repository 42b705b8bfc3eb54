"""Translate operation models into request descriptors."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from ..core.errors import CosmosValidationError
from ..core.requests import (
    CONTENT_TYPE_JSON,
    CONTENT_TYPE_PATCH,
    CONTENT_TYPE_QUERY,
    OperationKind,
    RequestDescriptor,
    build_request,
)
from .operations import (
    CallProcedure,
    CreateDocument,
    DeleteDocument,
    DocumentBody,
    DocumentOperation,
    GetDocument,
    PatchDocument,
    QueryDocuments,
    ReplaceDocument,
)
from .patch import build_patch_payload

if TYPE_CHECKING:
    from ..connection import ConnectionContext


def serialize_document(document: DocumentBody) -> str:
    if isinstance(document, str):
        return document
    return json.dumps(document)


def build_query_payload(query: str, parameters: Mapping[str, Any] | None) -> str:
    body: dict[str, Any] = {"query": query}
    if parameters:
        body["parameters"] = [{"name": name, "value": value} for name, value in parameters.items()]
    return json.dumps(body)


def _docs_uri(connection: "ConnectionContext", collection: str, document_id: str | None = None) -> str:
    uri = f"{connection.collection_uri(collection)}/docs"
    if document_id is not None:
        uri = f"{uri}/{quote(document_id, safe='')}"
    return uri


async def build_descriptor(
    connection: "ConnectionContext",
    operation: DocumentOperation,
    *,
    collection: str,
    continuation_limit_kb: int = 8,
) -> RequestDescriptor:
    if isinstance(operation, GetDocument):
        return await build_request(
            connection,
            OperationKind.OTHER,
            collection,
            method="GET",
            uri=_docs_uri(connection, collection, operation.id),
            partition_key=operation.partition_key,
            etag=operation.etag,
            priority=operation.priority,
            target_type=operation.target_type,
        )
    if isinstance(operation, DeleteDocument):
        return await build_request(
            connection,
            OperationKind.OTHER,
            collection,
            method="DELETE",
            uri=_docs_uri(connection, collection, operation.id),
            partition_key=operation.partition_key,
            etag=operation.etag,
            priority=operation.priority,
        )
    if isinstance(operation, CreateDocument):
        return await build_request(
            connection,
            OperationKind.DOCUMENT,
            collection,
            method="POST",
            uri=_docs_uri(connection, collection),
            partition_key=operation.partition_key,
            payload=serialize_document(operation.document),
            content_type=CONTENT_TYPE_JSON,
            upsert=operation.upsert,
            no_content=operation.no_content,
            target_type=operation.target_type,
        )
    if isinstance(operation, ReplaceDocument):
        return await build_request(
            connection,
            OperationKind.DOCUMENT,
            collection,
            method="PUT",
            uri=_docs_uri(connection, collection, operation.id),
            partition_key=operation.partition_key,
            payload=serialize_document(operation.document),
            content_type=CONTENT_TYPE_JSON,
            etag=operation.etag,
            no_content=operation.no_content,
            target_type=operation.target_type,
        )
    if isinstance(operation, PatchDocument):
        try:
            payload = build_patch_payload(operation.operations, condition=operation.condition)
        except ValueError as exc:
            raise CosmosValidationError(str(exc)) from exc
        return await build_request(
            connection,
            OperationKind.DOCUMENT,
            collection,
            method="PATCH",
            uri=_docs_uri(connection, collection, operation.id),
            partition_key=operation.partition_key,
            payload=payload,
            content_type=CONTENT_TYPE_PATCH,
            etag=operation.etag,
            no_content=operation.no_content,
            target_type=operation.target_type,
        )
    if isinstance(operation, QueryDocuments):
        return await build_request(
            connection,
            OperationKind.QUERY,
            collection,
            method="POST",
            uri=_docs_uri(connection, collection),
            partition_key=operation.partition_key,
            partition_key_range_id=operation.partition_key_range_id,
            continuation=operation.continuation,
            max_items=operation.max_items,
            payload=build_query_payload(operation.query, operation.parameters),
            content_type=CONTENT_TYPE_QUERY,
            target_type=operation.target_type,
            response_continuation_limit_kb=continuation_limit_kb,
        )
    if isinstance(operation, CallProcedure):
        return await build_request(
            connection,
            OperationKind.PROCEDURE_CALL,
            collection,
            method="POST",
            uri=f"{connection.collection_uri(collection)}/sprocs/{quote(operation.name, safe='')}",
            partition_key=operation.partition_key,
            continuation=operation.continuation,
            payload=json.dumps(list(operation.parameters)),
            content_type=CONTENT_TYPE_JSON,
            target_type=operation.target_type,
        )
    raise CosmosValidationError(f"unsupported operation type: {type(operation).__name__}")


async def build_partition_key_ranges_descriptor(
    connection: "ConnectionContext",
    *,
    collection: str,
) -> RequestDescriptor:
    return await build_request(
        connection,
        OperationKind.OTHER,
        collection,
        method="GET",
        uri=f"{connection.collection_uri(collection)}/pkranges",
    )


__all__ = [
    "serialize_document",
    "build_query_payload",
    "build_descriptor",
    "build_partition_key_ranges_descriptor",
]
