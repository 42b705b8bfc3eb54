"""Operation models: one frozen struct per logical operation kind."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Union

from ..core.requests import PartitionKeyValue, PriorityLevel
from .patch import PatchOperation

PartitionKeyInput = Union[PartitionKeyValue, Sequence[PartitionKeyValue]]
DocumentBody = Union[Mapping[str, Any], str]
TargetType = Callable[[Any], Any]


def _require_text(value: object, name: str) -> None:
    if not isinstance(value, str):
        raise TypeError(f"{name} must be str")
    if value == "":
        raise ValueError(f"{name} must not be empty")


def _require_document(value: object) -> None:
    if not isinstance(value, (str, Mapping)):
        raise TypeError("document must be a mapping or a serialized JSON str")


@dataclass(slots=True, frozen=True)
class GetDocument:
    id: str
    partition_key: PartitionKeyInput
    etag: str | None = None
    priority: PriorityLevel | None = None
    target_type: TargetType | None = None

    def __post_init__(self) -> None:
        _require_text(self.id, "id")


@dataclass(slots=True, frozen=True)
class CreateDocument:
    document: DocumentBody
    partition_key: PartitionKeyInput
    upsert: bool = False
    no_content: bool = False
    target_type: TargetType | None = None

    def __post_init__(self) -> None:
        _require_document(self.document)


@dataclass(slots=True, frozen=True)
class ReplaceDocument:
    id: str
    document: DocumentBody
    partition_key: PartitionKeyInput
    etag: str | None = None
    no_content: bool = False
    target_type: TargetType | None = None

    def __post_init__(self) -> None:
        _require_text(self.id, "id")
        _require_document(self.document)


@dataclass(slots=True, frozen=True)
class PatchDocument:
    id: str
    partition_key: PartitionKeyInput
    operations: Sequence[PatchOperation]
    condition: str | None = None
    etag: str | None = None
    no_content: bool = False
    target_type: TargetType | None = None

    def __post_init__(self) -> None:
        _require_text(self.id, "id")
        if isinstance(self.operations, PatchOperation):
            object.__setattr__(self, "operations", (self.operations,))
            return
        operations = tuple(self.operations)
        for operation in operations:
            if not isinstance(operation, PatchOperation):
                raise TypeError("operations entries must be PatchOperation")
        object.__setattr__(self, "operations", operations)


@dataclass(slots=True, frozen=True)
class DeleteDocument:
    id: str
    partition_key: PartitionKeyInput
    etag: str | None = None
    priority: PriorityLevel | None = None

    def __post_init__(self) -> None:
        _require_text(self.id, "id")


@dataclass(slots=True, frozen=True)
class QueryDocuments:
    query: str
    parameters: Mapping[str, Any] | None = None
    partition_key: PartitionKeyInput | None = None
    partition_key_range_id: str | None = None
    continuation: str | None = None
    max_items: int | None = None
    target_type: TargetType | None = None

    def __post_init__(self) -> None:
        _require_text(self.query, "query")


@dataclass(slots=True, frozen=True)
class CallProcedure:
    name: str
    parameters: Sequence[Any] = ()
    partition_key: PartitionKeyInput | None = None
    continuation: str | None = None
    target_type: TargetType | None = None

    def __post_init__(self) -> None:
        _require_text(self.name, "name")
        if isinstance(self.parameters, (str, bytes)):
            raise TypeError("parameters must be a sequence of values, not str")
        object.__setattr__(self, "parameters", tuple(self.parameters))


DocumentOperation = Union[
    GetDocument,
    CreateDocument,
    ReplaceDocument,
    PatchDocument,
    DeleteDocument,
    QueryDocuments,
    CallProcedure,
]


__all__ = [
    "PartitionKeyInput",
    "DocumentBody",
    "TargetType",
    "GetDocument",
    "CreateDocument",
    "ReplaceDocument",
    "PatchDocument",
    "DeleteDocument",
    "QueryDocuments",
    "CallProcedure",
    "DocumentOperation",
]
