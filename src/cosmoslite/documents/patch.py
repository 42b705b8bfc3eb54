"""Partial document update (patch) operations."""

from __future__ import annotations

import enum
import json
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

MAX_PATCH_OPERATIONS = 10


class PatchOperationType(enum.Enum):
    ADD = "add"
    SET = "set"
    REPLACE = "replace"
    REMOVE = "remove"
    INCREMENT = "incr"
    MOVE = "move"


@dataclass(slots=True, frozen=True)
class PatchOperation:
    op: PatchOperationType
    path: str
    value: Any = None
    from_path: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.op, PatchOperationType):
            raise TypeError("op must be PatchOperationType")
        if not isinstance(self.path, str) or not self.path.startswith("/"):
            raise ValueError("path must be a str starting with '/'")
        if self.op is PatchOperationType.MOVE:
            if not self.from_path or not self.from_path.startswith("/"):
                raise ValueError("move requires from_path starting with '/'")
        elif self.from_path is not None:
            raise ValueError("from_path is only valid for move")
        if self.op is PatchOperationType.INCREMENT and (
            isinstance(self.value, bool) or not isinstance(self.value, (int, float))
        ):
            raise ValueError("incr requires a numeric value")

    @classmethod
    def add(cls, path: str, value: Any) -> "PatchOperation":
        return cls(PatchOperationType.ADD, path, value)

    @classmethod
    def set(cls, path: str, value: Any) -> "PatchOperation":
        return cls(PatchOperationType.SET, path, value)

    @classmethod
    def replace(cls, path: str, value: Any) -> "PatchOperation":
        return cls(PatchOperationType.REPLACE, path, value)

    @classmethod
    def remove(cls, path: str) -> "PatchOperation":
        return cls(PatchOperationType.REMOVE, path)

    @classmethod
    def increment(cls, path: str, value: int | float) -> "PatchOperation":
        return cls(PatchOperationType.INCREMENT, path, value)

    @classmethod
    def move(cls, from_path: str, path: str) -> "PatchOperation":
        return cls(PatchOperationType.MOVE, path, from_path=from_path)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"op": self.op.value, "path": self.path}
        if self.op is PatchOperationType.MOVE:
            payload["from"] = self.from_path
        elif self.op is not PatchOperationType.REMOVE:
            payload["value"] = self.value
        return payload


def build_patch_payload(
    operations: Sequence[PatchOperation],
    *,
    condition: str | None = None,
) -> str:
    if not operations:
        raise ValueError("at least one patch operation is required")
    if len(operations) > MAX_PATCH_OPERATIONS:
        raise ValueError(f"at most {MAX_PATCH_OPERATIONS} patch operations are allowed per request")
    body: dict[str, Any] = {"operations": [operation.to_payload() for operation in operations]}
    if condition:
        body["condition"] = condition
    return json.dumps(body)


__all__ = [
    "MAX_PATCH_OPERATIONS",
    "PatchOperationType",
    "PatchOperation",
    "build_patch_payload",
]
