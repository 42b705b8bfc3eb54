"""Public package exports for the Cosmos DB lite client."""

from .async_client import AsyncCosmosClient
from .config import CosmosClientConfig
from .connection import ConnectionContext, connect
from .core.response import ResponseRecord

__all__ = [
    "AsyncCosmosClient",
    "CosmosClientConfig",
    "ConnectionContext",
    "ResponseRecord",
    "connect",
]
