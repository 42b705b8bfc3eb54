from __future__ import annotations

from cosmoslite.core.errors import (
    CosmosFormatError,
    CosmosServerError,
    CosmosThrottledError,
    classify_status,
)


def test_classify_2xx_is_success():
    assert classify_status(None, http_status=200) is None
    assert classify_status(None, http_status=204) is None


def test_classify_429_maps_to_throttled_error():
    err = classify_status(
        {"code": "TooManyRequests", "message": "slow down"},
        http_status=429,
        retry_after_ms=250,
    )
    assert isinstance(err, CosmosThrottledError)
    assert isinstance(err, CosmosServerError)
    assert err.http_status == 429
    assert err.retry_after_ms == 250
    assert err.code == "TooManyRequests"


def test_classify_412_keeps_server_code_and_message():
    err = classify_status(
        {"code": "PreconditionFailed", "message": "condition not met"},
        http_status=412,
    )
    assert type(err) is CosmosServerError
    assert err.code == "PreconditionFailed"
    assert str(err) == "condition not met"
    assert err.cause == "rejected"


def test_classify_5xx_marks_transient_cause():
    err = classify_status(None, http_status=503)
    assert isinstance(err, CosmosServerError)
    assert err.cause == "server_transient"
    assert "503" in str(err)


def test_classify_keeps_request_back_reference():
    marker = object()
    err = classify_status(None, http_status=404, request=marker)  # type: ignore[arg-type]
    assert err.request is marker


def test_format_error_carries_raw_payload():
    err = CosmosFormatError("bad body", raw_payload=b"{nope", http_status=200)
    assert err.raw_payload == b"{nope"
    assert err.cause == "format"
