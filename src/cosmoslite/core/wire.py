"""Turns request descriptors into transport-level HTTP requests."""

from __future__ import annotations

import json
import time
from email.utils import formatdate
from urllib.parse import quote

import httpx

from .requests import CONTENT_TYPE_QUERY, OperationKind, RequestDescriptor

HEADER_AUTHORIZATION = "Authorization"
HEADER_DATE = "x-ms-date"
HEADER_VERSION = "x-ms-version"
HEADER_SESSION_TOKEN = "x-ms-session-token"
HEADER_IS_QUERY = "x-ms-documentdb-isquery"
HEADER_CONTINUATION_LIMIT = "x-ms-documentdb-responsecontinuationtokenlimitinkb"
HEADER_MAX_ITEM_COUNT = "x-ms-max-item-count"
HEADER_CROSS_PARTITION = "x-ms-documentdb-query-enablecrosspartition"
HEADER_CONTINUATION = "x-ms-continuation"
HEADER_PARTITION_KEY_RANGE_ID = "x-ms-documentdb-partitionkeyrangeid"
HEADER_PARTITION_KEY = "x-ms-documentdb-partitionkey"
HEADER_UPSERT = "x-ms-documentdb-is-upsert"
HEADER_PRIORITY = "x-ms-cosmos-priority-level"
HEADER_IF_MATCH = "If-Match"
HEADER_IF_NONE_MATCH = "If-None-Match"
HEADER_PREFER = "Prefer"


def authorization_value(access_token: str) -> str:
    return quote(f"type=aad&ver=1.0&sig={access_token}", safe="")


def rfc1123_date(timestamp: float | None = None) -> str:
    # formatdate uses fixed English names regardless of locale.
    return formatdate(time.time() if timestamp is None else timestamp, usegmt=True)


def quote_etag(etag: str) -> str:
    if etag.startswith('"') and etag.endswith('"') and len(etag) >= 2:
        return etag
    return f'"{etag}"'


def build_headers(descriptor: RequestDescriptor, *, timestamp: float | None = None) -> dict[str, str]:
    headers: dict[str, str] = {
        HEADER_AUTHORIZATION: authorization_value(descriptor.access_token),
        HEADER_DATE: rfc1123_date(timestamp),
        HEADER_VERSION: descriptor.api_version,
    }
    if descriptor.session_token:
        headers[HEADER_SESSION_TOKEN] = descriptor.session_token

    if descriptor.kind is OperationKind.QUERY:
        headers["Content-Type"] = CONTENT_TYPE_QUERY
        headers[HEADER_IS_QUERY] = "True"
        headers[HEADER_CONTINUATION_LIMIT] = str(descriptor.response_continuation_limit_kb)
        if descriptor.max_items is not None:
            headers[HEADER_MAX_ITEM_COUNT] = str(descriptor.max_items)
        if not descriptor.partition_key:
            headers[HEADER_CROSS_PARTITION] = "True"
        if descriptor.continuation:
            headers[HEADER_CONTINUATION] = descriptor.continuation
        if descriptor.partition_key_range_id:
            headers[HEADER_PARTITION_KEY_RANGE_ID] = descriptor.partition_key_range_id
    elif descriptor.kind in (OperationKind.DOCUMENT, OperationKind.PROCEDURE_CALL):
        headers["Content-Type"] = descriptor.content_type
        if descriptor.etag:
            headers[HEADER_IF_MATCH] = quote_etag(descriptor.etag)
        if descriptor.no_content:
            headers[HEADER_PREFER] = "return=minimal"
        if descriptor.kind is OperationKind.PROCEDURE_CALL and descriptor.continuation:
            headers[HEADER_CONTINUATION] = descriptor.continuation
    else:
        if descriptor.etag:
            headers[HEADER_IF_NONE_MATCH] = quote_etag(descriptor.etag)
        if descriptor.priority is not None:
            headers[HEADER_PRIORITY] = descriptor.priority.value

    if descriptor.upsert:
        headers[HEADER_UPSERT] = "True"
    if descriptor.partition_key:
        headers[HEADER_PARTITION_KEY] = json.dumps(list(descriptor.partition_key))
    return headers


def materialize(descriptor: RequestDescriptor, *, timestamp: float | None = None) -> httpx.Request:
    """Build the wire request. Does not touch the descriptor."""

    content = descriptor.payload.encode("utf-8") if descriptor.payload is not None else None
    return httpx.Request(
        descriptor.method,
        descriptor.uri,
        headers=build_headers(descriptor, timestamp=timestamp),
        content=content,
    )


__all__ = [
    "HEADER_AUTHORIZATION",
    "HEADER_DATE",
    "HEADER_VERSION",
    "HEADER_SESSION_TOKEN",
    "HEADER_IS_QUERY",
    "HEADER_CONTINUATION_LIMIT",
    "HEADER_MAX_ITEM_COUNT",
    "HEADER_CROSS_PARTITION",
    "HEADER_CONTINUATION",
    "HEADER_PARTITION_KEY_RANGE_ID",
    "HEADER_PARTITION_KEY",
    "HEADER_UPSERT",
    "HEADER_PRIORITY",
    "HEADER_IF_MATCH",
    "HEADER_IF_NONE_MATCH",
    "HEADER_PREFER",
    "authorization_value",
    "rfc1123_date",
    "quote_etag",
    "build_headers",
    "materialize",
]
