"""Response normalization: charge, continuation, session token, body, errors."""

from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from .errors import CosmosApiError, CosmosFormatError, classify_status
from .requests import OperationKind, RequestDescriptor
from .retry import retry_after_ms

if TYPE_CHECKING:
    from ..connection import ConnectionContext

logger = logging.getLogger("cosmoslite")

HEADER_REQUEST_CHARGE = "x-ms-request-charge"
HEADER_CONTINUATION = "x-ms-continuation"
HEADER_SESSION_TOKEN = "x-ms-session-token"
HEADER_QUERY_METRICS = "x-ms-documentdb-query-metrics"
HEADER_INDEX_UTILIZATION = "x-ms-cosmos-index-utilization"

CHARGE_ABSENT = -1


class WireResponse(Protocol):
    status_code: int

    @property
    def headers(self) -> Mapping[str, str]: ...

    @property
    def content(self) -> bytes: ...


@dataclass(slots=True, frozen=True)
class ResponseRecord:
    is_success: bool
    http_status: int | None
    charge: int = CHARGE_ABSENT
    data: object = None
    continuation: str | None = None
    headers: Mapping[str, object] | None = None
    error: CosmosApiError | None = None


def parse_charge(value: str | None) -> int:
    if value is None:
        return CHARGE_ABSENT
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        return CHARGE_ABSENT


def decode_headers(headers: Mapping[str, str]) -> dict[str, object]:
    decoded: dict[str, object] = {}
    for name, value in headers.items():
        key = name.lower()
        if key == HEADER_QUERY_METRICS:
            decoded[key] = [part for part in value.split(";") if part]
        elif key == HEADER_INDEX_UTILIZATION:
            decoded[key] = _decode_index_utilization(value)
        else:
            decoded[key] = value
    return decoded


def _decode_index_utilization(value: str) -> object:
    try:
        return json.loads(base64.b64decode(value, validate=True).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        logger.debug("index utilization header is not base64 JSON; kept raw")
        return value


def parse_body(content: bytes) -> object:
    """Parse a JSON body. Empty bodies (204, ``return=minimal``) map to None."""

    if not content or not content.strip():
        return None
    return json.loads(content)


def _apply_target_type(data: object, descriptor: RequestDescriptor) -> object:
    converter = descriptor.target_type
    if converter is None or data is None:
        return data
    if descriptor.kind is OperationKind.QUERY and isinstance(data, dict):
        documents = data.get("Documents")
        if isinstance(documents, list):
            converted = dict(data)
            converted["Documents"] = [converter(item) for item in documents]
            return converted
    return converter(data)


def normalize_response(
    response: WireResponse,
    descriptor: RequestDescriptor,
    connection: "ConnectionContext",
    *,
    default_retry_after_ms: int = 1000,
) -> ResponseRecord:
    headers = response.headers
    http_status = response.status_code
    charge = parse_charge(headers.get(HEADER_REQUEST_CHARGE))
    continuation = headers.get(HEADER_CONTINUATION)
    captured = decode_headers(headers) if connection.collect_response_headers else None

    if 200 <= http_status < 300:
        session_token = headers.get(HEADER_SESSION_TOKEN)
        if session_token:
            connection.session_tokens.update(descriptor.collection, session_token)
        try:
            data = _apply_target_type(parse_body(response.content), descriptor)
        except Exception as exc:
            error = CosmosFormatError(
                f"response body could not be deserialized: {exc}",
                raw_payload=response.content,
                http_status=http_status,
                request=descriptor,
            )
            error.__cause__ = exc
            return ResponseRecord(
                is_success=False,
                http_status=http_status,
                charge=charge,
                continuation=continuation,
                headers=captured,
                error=error,
            )
        return ResponseRecord(
            is_success=True,
            http_status=http_status,
            charge=charge,
            data=data,
            continuation=continuation,
            headers=captured,
        )

    try:
        payload = parse_body(response.content)
    except ValueError:
        payload = None
    error = classify_status(
        payload if isinstance(payload, Mapping) else None,
        http_status=http_status,
        request=descriptor,
        retry_after_ms=retry_after_ms(headers, default_ms=default_retry_after_ms),
    )
    return ResponseRecord(
        is_success=False,
        http_status=http_status,
        charge=charge,
        data=payload,
        continuation=continuation,
        headers=captured,
        error=error,
    )


def failure_record(error: CosmosApiError) -> ResponseRecord:
    """Record for an operation that never produced an HTTP response."""

    return ResponseRecord(is_success=False, http_status=error.http_status, error=error)


def emit_record(record: ResponseRecord, *, throw_on_error: bool) -> ResponseRecord:
    """Apply the caller's error policy to a settled record."""

    error = record.error
    if error is None:
        return record
    if throw_on_error or isinstance(error, CosmosFormatError):
        raise error
    logger.error(
        "operation failed http_status=%s code=%s message=%s",
        record.http_status,
        error.code,
        error,
    )
    return record


__all__ = [
    "HEADER_REQUEST_CHARGE",
    "HEADER_CONTINUATION",
    "HEADER_SESSION_TOKEN",
    "HEADER_QUERY_METRICS",
    "HEADER_INDEX_UTILIZATION",
    "CHARGE_ABSENT",
    "WireResponse",
    "ResponseRecord",
    "parse_charge",
    "decode_headers",
    "parse_body",
    "normalize_response",
    "failure_record",
    "emit_record",
]
