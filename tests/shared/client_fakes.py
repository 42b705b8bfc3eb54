from __future__ import annotations

from types import SimpleNamespace

import httpx

from cosmoslite.core.response import ResponseRecord


class DummyAsyncTransport:
    def __init__(self, status_code: int = 200, payload: object | None = None):
        self.closed = False
        self.requests: list[httpx.Request] = []
        self._status_code = status_code
        self._payload = payload if payload is not None else {"id": "1"}

    async def close(self):
        self.closed = True

    async def send(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(
            self._status_code,
            headers={"x-ms-request-charge": "1"},
            json=self._payload,
        )


class PagedDummyAsyncTransport(DummyAsyncTransport):
    async def send(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.headers.get("x-ms-continuation") is None:
            return httpx.Response(
                200,
                headers={"x-ms-request-charge": "2", "x-ms-continuation": "page-2"},
                json={"Documents": [{"id": "a"}], "_count": 1},
            )
        return httpx.Response(
            200,
            headers={"x-ms-request-charge": "2"},
            json={"Documents": [{"id": "b"}], "_count": 1},
        )


class CloseAwareDocumentService:
    def __init__(self):
        self.query_closed = False

    async def iter_query(self, query, *, collection, throw_on_error=None):
        try:
            yield ResponseRecord(is_success=True, http_status=200, continuation="c1")
            yield ResponseRecord(is_success=True, http_status=200)
        finally:
            self.query_closed = True


class ClosableCredential:
    def __init__(self):
        self.closed = 0

    async def get_token(self, *scopes):
        return SimpleNamespace(token="tok", expires_on=10_000_000_000.0)

    async def close(self):
        self.closed += 1
