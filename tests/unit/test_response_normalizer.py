from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass

import httpx
import pytest

from cosmoslite.core.errors import CosmosFormatError, CosmosServerError, CosmosThrottledError, CosmosTransportError
from cosmoslite.core.requests import OperationKind, RequestDescriptor
from cosmoslite.core.response import (
    CHARGE_ABSENT,
    decode_headers,
    emit_record,
    failure_record,
    normalize_response,
    parse_charge,
)
from tests.shared.transport import build_connection, cosmos_response


def _descriptor(kind: OperationKind = OperationKind.OTHER, target_type=None) -> RequestDescriptor:
    return RequestDescriptor(
        kind=kind,
        method="GET",
        uri="https://testacct.documents.azure.com/dbs/testdb/colls/docs/docs/1",
        collection="docs",
        access_token="tok",
        api_version="2018-12-31",
        remaining_retries=3,
        target_type=target_type,
    )


@dataclass(frozen=True)
class Item:
    id: str


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("2.86", 2), ("10", 10), (None, CHARGE_ABSENT), ("n/a", CHARGE_ABSENT), ("inf", CHARGE_ABSENT)],
)
def test_parse_charge_truncates_or_marks_absent(raw, expected):
    assert parse_charge(raw) == expected


def test_success_record_carries_charge_continuation_and_body():
    connection = build_connection()
    response = cosmos_response(200, {"id": "1"}, charge="4.7", headers={"x-ms-continuation": "next"})

    record = normalize_response(response, _descriptor(), connection)

    assert record.is_success
    assert record.http_status == 200
    assert record.charge == 4
    assert record.continuation == "next"
    assert record.data == {"id": "1"}
    assert record.headers is None
    assert record.error is None


def test_missing_charge_header_is_minus_one():
    record = normalize_response(cosmos_response(200, {"id": "1"}, charge=None), _descriptor(), build_connection())
    assert record.charge == CHARGE_ABSENT


def test_empty_body_maps_to_none():
    record = normalize_response(cosmos_response(204), _descriptor(), build_connection())
    assert record.is_success
    assert record.data is None


def test_session_token_overwrites_per_collection():
    connection = build_connection()
    normalize_response(
        cosmos_response(200, {}, headers={"x-ms-session-token": "0:1#5"}),
        _descriptor(),
        connection,
    )
    normalize_response(
        cosmos_response(200, {}, headers={"x-ms-session-token": "0:1#9"}),
        _descriptor(),
        connection,
    )
    assert connection.session_tokens.get("docs") == "0:1#9"
    assert connection.session_tokens.get("other") is None


def test_failure_does_not_update_session_token():
    connection = build_connection()
    normalize_response(
        cosmos_response(404, {"code": "NotFound"}, headers={"x-ms-session-token": "0:1#7"}),
        _descriptor(),
        connection,
    )
    assert connection.session_tokens.get("docs") is None


def test_header_capture_splits_metrics_and_decodes_index_utilization():
    utilization = base64.b64encode(json.dumps({"UtilizedSingleIndexes": []}).encode()).decode()
    response = cosmos_response(
        200,
        {"Documents": []},
        headers={
            "x-ms-documentdb-query-metrics": "totalExecutionTimeInMs=1.2;retrievedDocumentCount=3;",
            "x-ms-cosmos-index-utilization": utilization,
            "x-ms-activity-id": "abc",
        },
    )
    record = normalize_response(response, _descriptor(), build_connection(collect_response_headers=True))

    assert record.headers["x-ms-documentdb-query-metrics"] == [
        "totalExecutionTimeInMs=1.2",
        "retrievedDocumentCount=3",
    ]
    assert record.headers["x-ms-cosmos-index-utilization"] == {"UtilizedSingleIndexes": []}
    assert record.headers["x-ms-activity-id"] == "abc"


def test_index_utilization_kept_raw_when_not_base64():
    decoded = decode_headers({"x-ms-cosmos-index-utilization": "not base64!"})
    assert decoded["x-ms-cosmos-index-utilization"] == "not base64!"


def test_failure_status_is_classified_with_payload():
    response = cosmos_response(412, {"code": "PreconditionFailed", "message": "etag mismatch"})
    record = normalize_response(response, _descriptor(), build_connection())

    assert not record.is_success
    assert record.http_status == 412
    assert record.data == {"code": "PreconditionFailed", "message": "etag mismatch"}
    assert isinstance(record.error, CosmosServerError)
    assert record.error.code == "PreconditionFailed"


def test_not_modified_is_a_failure_record():
    record = normalize_response(cosmos_response(304), _descriptor(), build_connection())
    assert not record.is_success
    assert record.http_status == 304


def test_throttled_record_keeps_retry_hint():
    response = cosmos_response(429, {"code": "TooManyRequests"}, headers={"x-ms-retry-after-ms": "300"})
    record = normalize_response(response, _descriptor(), build_connection())
    assert isinstance(record.error, CosmosThrottledError)
    assert record.error.retry_after_ms == 300


def test_malformed_success_body_is_format_error():
    response = httpx.Response(200, content=b"{not json", headers={"x-ms-request-charge": "1"})
    record = normalize_response(response, _descriptor(), build_connection())

    assert not record.is_success
    assert isinstance(record.error, CosmosFormatError)
    assert record.error.raw_payload == b"{not json"


def test_target_type_converts_whole_body():
    record = normalize_response(
        cosmos_response(200, {"id": "7"}),
        _descriptor(target_type=lambda body: Item(**body)),
        build_connection(),
    )
    assert record.data == Item(id="7")


def test_target_type_converts_each_query_document():
    record = normalize_response(
        cosmos_response(200, {"_count": 2, "Documents": [{"id": "a"}, {"id": "b"}]}),
        _descriptor(OperationKind.QUERY, target_type=lambda body: Item(**body)),
        build_connection(),
    )
    assert record.data["Documents"] == [Item(id="a"), Item(id="b")]
    assert record.data["_count"] == 2


def test_target_type_failure_is_format_error():
    record = normalize_response(
        cosmos_response(200, {"unexpected": True}),
        _descriptor(target_type=lambda body: Item(**body)),
        build_connection(),
    )
    assert isinstance(record.error, CosmosFormatError)


def test_emit_record_raises_under_throw_policy():
    record = failure_record(CosmosTransportError("boom", cause="network"))
    with pytest.raises(CosmosTransportError):
        emit_record(record, throw_on_error=True)


def test_emit_record_logs_and_returns_when_not_throwing(caplog):
    record = normalize_response(cosmos_response(404, {"code": "NotFound"}), _descriptor(), build_connection())
    with caplog.at_level(logging.ERROR, logger="cosmoslite"):
        assert emit_record(record, throw_on_error=False) is record
    assert "code=NotFound" in caplog.text


def test_emit_record_always_raises_format_errors():
    record = failure_record(CosmosFormatError("bad", raw_payload=b"x"))
    with pytest.raises(CosmosFormatError):
        emit_record(record, throw_on_error=False)


def test_failure_with_non_finite_retry_hint_is_classified():
    response = cosmos_response(503, {"code": "ServiceUnavailable"}, headers={"x-ms-retry-after-ms": "inf"})
    record = normalize_response(response, _descriptor(), build_connection())
    assert record.http_status == 503
    assert record.error.cause == "server_transient"
