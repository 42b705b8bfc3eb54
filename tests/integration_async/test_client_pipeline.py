from __future__ import annotations

import logging

import httpx
import pytest

from cosmoslite import AsyncCosmosClient, connect
from cosmoslite.core.auth import StaticTokenProvider
from cosmoslite.core.wire import authorization_value
from cosmoslite.documents import CreateDocument, QueryDocuments
from tests.shared.transport import (
    ACCOUNT,
    DATABASE,
    RecordingHandler,
    build_config,
    build_transport,
    cosmos_response,
    request_json,
    throttled,
)


class FakeCollection:
    """In-memory collection speaking just enough of the REST surface."""

    def __init__(self):
        self.documents: dict[str, dict] = {}
        self.throttle_next: list[int] = []
        self.session = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/pkranges"):
            return cosmos_response(200, {"PartitionKeyRanges": [{"id": "0"}, {"id": "1"}]})
        if request.method == "POST" and path.endswith("/docs") and "x-ms-documentdb-isquery" not in request.headers:
            if self.throttle_next:
                return throttled(self.throttle_next.pop(0))
            body = request_json(request)
            self.documents[body["id"]] = body
            self.session += 1
            return cosmos_response(
                201,
                body,
                charge="5.71",
                headers={"x-ms-session-token": f"0:-1#{self.session}"},
            )
        if request.method == "POST":
            range_id = request.headers["x-ms-documentdb-partitionkeyrangeid"]
            documents = [doc for doc in self.documents.values() if doc["shard"] == range_id]
            return cosmos_response(
                200,
                {"Documents": documents, "_count": len(documents)},
                headers={"x-ms-documentdb-query-metrics": "retrievedDocumentCount=1;"},
            )
        if request.method == "GET":
            document = self.documents.get(path.rsplit("/", 1)[-1])
            if document is None:
                return cosmos_response(404, {"code": "NotFound", "message": "Entity does not exist"})
            return cosmos_response(200, document)
        return cosmos_response(400, {"code": "BadRequest", "message": "unsupported"})


@pytest.mark.asyncio
async def test_client_pipeline_create_query_read(sleeper, sleeps, caplog):
    collection = FakeCollection()
    collection.throttle_next = [300]
    handler = RecordingHandler(collection)
    config = build_config(collect_response_headers=True)
    connection = connect(ACCOUNT, DATABASE, token_provider=StaticTokenProvider("pipeline-token"), config=config)

    async with AsyncCosmosClient(
        connection,
        config=config,
        transport=build_transport(handler, config=config),
        sleeper=sleeper,
    ) as client:
        operations = [
            CreateDocument({"id": str(index), "shard": str(index % 2)}, str(index % 2)) for index in range(4)
        ]
        with caplog.at_level(logging.WARNING, logger="cosmoslite"):
            created = [
                record
                async for record in client.documents.execute_many(operations, collection="items", batch_size=4)
            ]

        pages = [
            record
            async for record in client.documents.iter_query(QueryDocuments("SELECT * FROM c"), collection="items")
        ]
        found = await client.documents.get_document("items", "2", "0")
        missing = await client.documents.get_document("items", "9", "1", throw_on_error=False)

    assert [record.http_status for record in created] == [201, 201, 201, 201]
    assert [record.charge for record in created] == [5, 5, 5, 5]
    assert sleeps == [0.3]
    assert "throttled; retrying" in caplog.text

    assert [sorted(doc["id"] for doc in page.data["Documents"]) for page in pages] == [["0", "2"], ["1", "3"]]
    assert pages[0].headers["x-ms-documentdb-query-metrics"] == ["retrievedDocumentCount=1"]

    assert found.data == {"id": "2", "shard": "0"}
    assert missing.http_status == 404
    assert missing.error.code == "NotFound"

    assert connection.session_tokens.get("items") == "0:-1#4"
    assert {request.headers["authorization"] for request in handler.requests} == {
        authorization_value("pipeline-token")
    }
    assert all(request.headers["x-ms-version"] == "2018-12-31" for request in handler.requests)
