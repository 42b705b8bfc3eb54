"""Error types and status mapping."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .requests import RequestDescriptor


def extract_code(payload: Mapping[str, object] | None) -> str | None:
    if not isinstance(payload, Mapping):
        return None
    value = payload.get("code")
    return str(value) if value is not None else None


def extract_message(payload: Mapping[str, object] | None) -> str | None:
    if not isinstance(payload, Mapping):
        return None
    value = payload.get("message")
    return str(value) if value is not None else None


class CosmosApiError(Exception):
    """Base exception for this package."""

    def __init__(
        self,
        message: str,
        *,
        http_status: int | None = None,
        code: str | None = None,
        cause: str | None = None,
        request: "RequestDescriptor | None" = None,
    ) -> None:
        super().__init__(message)
        self.http_status = http_status
        self.code = code
        self.cause = cause
        self.request = request


class CosmosNotInitializedError(CosmosApiError):
    """Connection or token provider is missing."""


class CosmosValidationError(CosmosApiError):
    """Invalid configuration or operation arguments."""


class CosmosClientClosedError(CosmosApiError):
    """Raised when client is used after close."""


class CosmosTransportError(CosmosApiError):
    """Network/transport-level failure."""


class CosmosAuthenticationError(CosmosApiError):
    """Token acquisition failed or timed out."""


class CosmosProtocolError(CosmosApiError):
    """Unexpected response shape or pagination state."""


class CosmosFormatError(CosmosApiError):
    """Response body could not be deserialized."""

    def __init__(
        self,
        message: str,
        *,
        raw_payload: str | bytes | None,
        http_status: int | None = None,
        request: "RequestDescriptor | None" = None,
    ) -> None:
        super().__init__(
            message,
            http_status=http_status,
            cause="format",
            request=request,
        )
        self.raw_payload = raw_payload


class CosmosServerError(CosmosApiError):
    """Non-success HTTP status reported by the service."""


class CosmosThrottledError(CosmosServerError):
    """HTTP 429 left over after the retry budget was spent."""

    def __init__(
        self,
        message: str,
        *,
        retry_after_ms: int | None = None,
        http_status: int | None = 429,
        code: str | None = None,
        request: "RequestDescriptor | None" = None,
    ) -> None:
        super().__init__(
            message,
            http_status=http_status,
            code=code,
            cause="throttled",
            request=request,
        )
        self.retry_after_ms = retry_after_ms


def classify_status(
    payload: Mapping[str, object] | None,
    *,
    http_status: int,
    request: "RequestDescriptor | None" = None,
    retry_after_ms: int | None = None,
) -> CosmosServerError | None:
    """Map a completed HTTP exchange to a domain exception, or None on success."""

    if 200 <= http_status < 300:
        return None

    code = extract_code(payload)
    message = extract_message(payload) or f"Cosmos DB request failed with HTTP {http_status}"

    if http_status == 429:
        return CosmosThrottledError(
            message,
            retry_after_ms=retry_after_ms,
            code=code,
            request=request,
        )
    return CosmosServerError(
        message,
        http_status=http_status,
        code=code,
        cause="server_transient" if http_status >= 500 else "rejected",
        request=request,
    )


__all__ = [
    "CosmosApiError",
    "CosmosNotInitializedError",
    "CosmosValidationError",
    "CosmosClientClosedError",
    "CosmosTransportError",
    "CosmosAuthenticationError",
    "CosmosProtocolError",
    "CosmosFormatError",
    "CosmosServerError",
    "CosmosThrottledError",
    "extract_code",
    "extract_message",
    "classify_status",
]
