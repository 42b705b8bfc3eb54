"""Request descriptors: one per logical operation."""

from __future__ import annotations

import enum
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .errors import CosmosNotInitializedError, CosmosValidationError

if TYPE_CHECKING:
    from ..connection import ConnectionContext

PartitionKeyValue = str | int | float | bool | None

CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_QUERY = "application/query+json"
CONTENT_TYPE_PATCH = "application/json_patch+json"


class OperationKind(enum.Enum):
    QUERY = "query"
    PROCEDURE_CALL = "procedure_call"
    DOCUMENT = "document"
    OTHER = "other"


class PriorityLevel(enum.Enum):
    HIGH = "High"
    LOW = "Low"


@dataclass(slots=True, eq=False)
class RequestDescriptor:
    """Everything needed to (re)materialize the wire request of one operation.

    Only ``remaining_retries`` changes after creation; it is decremented by the
    batch engine every time the operation is throttled.
    """

    kind: OperationKind
    method: str
    uri: str
    collection: str
    access_token: str
    api_version: str
    remaining_retries: int
    partition_key: tuple[PartitionKeyValue, ...] = ()
    partition_key_range_id: str | None = None
    continuation: str | None = None
    max_items: int | None = None
    upsert: bool = False
    etag: str | None = None
    priority: PriorityLevel | None = None
    no_content: bool = False
    session_token: str | None = None
    payload: str | None = None
    content_type: str = CONTENT_TYPE_JSON
    target_type: Callable[[Any], Any] | None = None
    response_continuation_limit_kb: int = 8


def normalize_partition_key(
    partition_key: PartitionKeyValue | Sequence[PartitionKeyValue] | None,
) -> tuple[PartitionKeyValue, ...]:
    """Accept a scalar or a sequence of components (hierarchical keys)."""

    if partition_key is None:
        return ()
    if isinstance(partition_key, (str, int, float, bool)):
        return (partition_key,)
    if isinstance(partition_key, Sequence):
        components = tuple(partition_key)
        for component in components:
            if component is not None and not isinstance(component, (str, int, float, bool)):
                raise CosmosValidationError("partition key components must be scalars")
        return components
    raise CosmosValidationError("partition key must be a scalar or a sequence of scalars")


async def build_request(
    connection: "ConnectionContext",
    kind: OperationKind,
    collection: str,
    *,
    method: str,
    uri: str,
    partition_key: PartitionKeyValue | Sequence[PartitionKeyValue] | None = None,
    partition_key_range_id: str | None = None,
    continuation: str | None = None,
    max_items: int | None = None,
    target_type: Callable[[Any], Any] | None = None,
    payload: str | None = None,
    content_type: str = CONTENT_TYPE_JSON,
    etag: str | None = None,
    upsert: bool = False,
    priority: PriorityLevel | None = None,
    no_content: bool = False,
    response_continuation_limit_kb: int = 8,
) -> RequestDescriptor:
    if connection is None:
        raise CosmosNotInitializedError("connection is not initialized")
    if connection.token_provider is None:
        raise CosmosNotInitializedError("connection has no token provider bound")
    if not collection:
        raise CosmosValidationError("collection must not be empty")
    if max_items is not None and max_items < 1 and max_items != -1:
        raise CosmosValidationError("max_items must be >= 1 or -1")

    token = await connection.token_provider.acquire_token(connection.scopes)
    return RequestDescriptor(
        kind=kind,
        method=method.upper(),
        uri=uri,
        collection=collection,
        access_token=token.token,
        api_version=connection.api_version,
        remaining_retries=connection.retry_budget(),
        partition_key=normalize_partition_key(partition_key),
        partition_key_range_id=partition_key_range_id,
        continuation=continuation,
        max_items=max_items,
        upsert=upsert,
        etag=etag,
        priority=priority,
        no_content=no_content,
        session_token=connection.session_tokens.get(collection),
        payload=payload,
        content_type=content_type,
        target_type=target_type,
        response_continuation_limit_kb=response_continuation_limit_kb,
    )


__all__ = [
    "PartitionKeyValue",
    "CONTENT_TYPE_JSON",
    "CONTENT_TYPE_QUERY",
    "CONTENT_TYPE_PATCH",
    "OperationKind",
    "PriorityLevel",
    "RequestDescriptor",
    "normalize_partition_key",
    "build_request",
]
