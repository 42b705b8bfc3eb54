"""Per-database connection state."""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from .client_shared import validate_client_config
from .config import CosmosClientConfig
from .core.auth import CredentialTokenProvider, TokenProvider, default_scopes
from .core.errors import CosmosNotInitializedError, CosmosValidationError

logger = logging.getLogger("cosmoslite")


class SessionTokenStore:
    """Last session token seen per collection."""

    def __init__(self) -> None:
        self._tokens: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, collection: str) -> str | None:
        with self._lock:
            return self._tokens.get(collection)

    def update(self, collection: str, token: str) -> None:
        with self._lock:
            self._tokens[collection] = token

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return dict(self._tokens)


@dataclass(slots=True, eq=False)
class ConnectionContext:
    """State shared by every operation issued against one database."""

    account: str
    endpoint: str
    database: str
    token_provider: TokenProvider | None
    scopes: tuple[str, ...]
    api_version: str = "2018-12-31"
    retry_count: int = 10
    collect_response_headers: bool = False
    throw_on_error: bool = True
    session_tokens: SessionTokenStore = field(default_factory=SessionTokenStore)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def retry_budget(self) -> int:
        with self._lock:
            return self.retry_count

    def set_retry_count(self, retry_count: int) -> None:
        if isinstance(retry_count, bool) or not isinstance(retry_count, int) or retry_count < 0:
            raise CosmosValidationError("retry_count must be an int >= 0")
        with self._lock:
            self.retry_count = retry_count
        logger.info("retry budget changed database=%s retry_count=%s", self.database, retry_count)

    def collection_uri(self, collection: str) -> str:
        return (
            f"{self.endpoint}/dbs/{quote(self.database, safe='')}"
            f"/colls/{quote(collection, safe='')}"
        )


def connect(
    account: str,
    database: str,
    *,
    token_provider: TokenProvider | None = None,
    credential: Any | None = None,
    scopes: Sequence[str] | None = None,
    config: CosmosClientConfig | None = None,
) -> ConnectionContext:
    """Create the connection context for ``database`` in ``account``.

    ``account`` is either the account name or a full endpoint URL (emulator,
    sovereign clouds). Without an explicit ``token_provider`` the given
    ``credential`` is wrapped in a caching provider; without either,
    ``azure.identity.aio.DefaultAzureCredential`` is used and closed along
    with the provider.
    """

    config = config or CosmosClientConfig()
    validate_client_config(config)
    if not account:
        raise CosmosValidationError("account must not be empty")
    if not database:
        raise CosmosValidationError("database must not be empty")

    if account.startswith(("https://", "http://")):
        endpoint = account.rstrip("/")
    else:
        endpoint = config.endpoint_for(account)

    if token_provider is None:
        token_provider = CredentialTokenProvider(
            credential if credential is not None else _default_credential(),
            refresh_margin_seconds=config.auth.refresh_margin_seconds,
            timeout_seconds=config.auth.token_timeout_seconds,
            owns_credential=credential is None,
        )

    connection = ConnectionContext(
        account=account,
        endpoint=endpoint,
        database=database,
        token_provider=token_provider,
        scopes=tuple(scopes) if scopes else tuple(default_scopes(endpoint)),
        api_version=config.api_version,
        retry_count=config.retry.max_throttle_retries,
        collect_response_headers=config.collect_response_headers,
        throw_on_error=config.throw_on_error,
    )
    logger.info("connected endpoint=%s database=%s", endpoint, database)
    return connection


def _default_credential() -> Any:
    try:
        from azure.identity.aio import DefaultAzureCredential
    except ImportError as exc:
        raise CosmosNotInitializedError(
            "azure-identity is required when no token provider or credential is given; "
            "install it with: pip install 'cosmoslite[azure]'"
        ) from exc
    return DefaultAzureCredential()


__all__ = [
    "SessionTokenStore",
    "ConnectionContext",
    "connect",
]
