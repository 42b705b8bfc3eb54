"""Client configuration."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True)
class TransportConfig:
    """Transport-related settings."""

    timeout_connect_seconds: float = 5.0
    timeout_read_seconds: float = 60.0
    timeout_write_seconds: float = 60.0
    timeout_pool_seconds: float = 5.0

    def validate(self) -> None:
        for field_name in (
            "timeout_connect_seconds",
            "timeout_read_seconds",
            "timeout_write_seconds",
            "timeout_pool_seconds",
        ):
            if getattr(self, field_name) <= 0:
                raise ValueError(f"transport.{field_name} must be > 0")


@dataclass(slots=True, frozen=True)
class RetryConfig:
    """Retry-related settings.

    ``max_throttle_retries`` bounds how often a single operation is resent
    after HTTP 429. The transport-level fields only apply to network errors,
    which never reached the service.
    """

    max_throttle_retries: int = 10
    default_retry_after_ms: int = 1000
    max_transport_attempts: int = 3
    max_backoff_seconds: float = 30.0
    total_retry_budget_seconds: float = 120.0

    def validate(self) -> None:
        if self.max_throttle_retries < 0:
            raise ValueError("retry.max_throttle_retries must be >= 0")
        if self.default_retry_after_ms < 0:
            raise ValueError("retry.default_retry_after_ms must be >= 0")
        if self.max_transport_attempts < 1:
            raise ValueError("retry.max_transport_attempts must be >= 1")
        if self.max_backoff_seconds < 0:
            raise ValueError("retry.max_backoff_seconds must be >= 0")
        if self.total_retry_budget_seconds < 0:
            raise ValueError("retry.total_retry_budget_seconds must be >= 0")


@dataclass(slots=True, frozen=True)
class BatchConfig:
    """Batching settings. A width of 1 runs operations strictly one by one."""

    batch_size: int = 1

    def validate(self) -> None:
        if isinstance(self.batch_size, bool) or not isinstance(self.batch_size, int):
            raise ValueError("batch.batch_size must be int")
        if self.batch_size < 1:
            raise ValueError("batch.batch_size must be >= 1")


@dataclass(slots=True, frozen=True)
class QueryConfig:
    """Query and pagination settings."""

    response_continuation_limit_kb: int = 8
    max_pages: int = 10_000

    def validate(self) -> None:
        if self.response_continuation_limit_kb < 1:
            raise ValueError("query.response_continuation_limit_kb must be >= 1")
        if self.max_pages < 1:
            raise ValueError("query.max_pages must be >= 1")


@dataclass(slots=True, frozen=True)
class AuthConfig:
    """Token acquisition settings."""

    token_timeout_seconds: float = 60.0
    refresh_margin_seconds: float = 300.0

    def validate(self) -> None:
        if self.token_timeout_seconds <= 0:
            raise ValueError("auth.token_timeout_seconds must be > 0")
        if self.refresh_margin_seconds < 0:
            raise ValueError("auth.refresh_margin_seconds must be >= 0")


@dataclass(slots=True, frozen=True)
class CosmosClientConfig:
    """Runtime configuration for the Cosmos DB client."""

    endpoint_template: str = "https://{account}.documents.azure.com"
    api_version: str = "2018-12-31"
    user_agent: str = "cosmoslite/0.1.0"
    collect_response_headers: bool = False
    throw_on_error: bool = True

    transport: TransportConfig = field(default_factory=TransportConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)

    def endpoint_for(self, account: str) -> str:
        return self.endpoint_template.format(account=account).rstrip("/")

    def validate(self) -> None:
        if not self.endpoint_template:
            raise ValueError("endpoint_template must not be empty")
        if not self.api_version:
            raise ValueError("api_version must not be empty")
        if not isinstance(self.collect_response_headers, bool):
            raise ValueError("collect_response_headers must be bool")
        if not isinstance(self.throw_on_error, bool):
            raise ValueError("throw_on_error must be bool")
        self.transport.validate()
        self.retry.validate()
        self.batch.validate()
        self.query.validate()
        self.auth.validate()


__all__ = [
    "TransportConfig",
    "RetryConfig",
    "BatchConfig",
    "QueryConfig",
    "AuthConfig",
    "CosmosClientConfig",
]
