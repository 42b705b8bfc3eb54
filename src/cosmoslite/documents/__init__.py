"""Document operations package."""

from .operations import (
    CallProcedure,
    CreateDocument,
    DeleteDocument,
    GetDocument,
    PatchDocument,
    QueryDocuments,
    ReplaceDocument,
)
from .patch import PatchOperation, PatchOperationType

__all__ = [
    "GetDocument",
    "CreateDocument",
    "ReplaceDocument",
    "PatchDocument",
    "DeleteDocument",
    "QueryDocuments",
    "CallProcedure",
    "PatchOperation",
    "PatchOperationType",
]
