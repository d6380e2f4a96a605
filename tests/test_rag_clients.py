"""Wire-level tests for the Chroma and Qdrant vector store clients."""
import json

import httpx
import pytest

from shared.clients.rag.chroma.RAGClientChroma import RAGClientChroma
from shared.clients.rag.models.ChunkMetadata import ChunkMetadata
from shared.clients.rag.models.VectorFilter import VectorFilter
from shared.clients.rag.qdrant.RAGClientQdrant import RAGClientQdrant
from shared.errors import StoreError, ValidationError
from shared.helper.HelperConfig import HelperConfig


class RecordingTransport:
    """Routes requests to a handler and keeps every request for assertions."""

    def __init__(self, handler):
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def bodies(self, path_suffix: str) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.url.path.endswith(path_suffix)]


async def booted(client, handler) -> RecordingTransport:
    recorder = RecordingTransport(handler)
    await client.boot(transport=httpx.MockTransport(recorder))
    return recorder


def chroma_handler(extra=None):
    """Chroma server stub where the collection already exists as 'col-1'."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET" and request.url.path == "/api/v1/collections/medical_documents":
            return httpx.Response(200, json={"id": "col-1", "name": "medical_documents"})
        if extra is not None:
            return extra(request)
        return httpx.Response(200, json={})

    return handler


##########################################
################ FILTERS #################
##########################################

def test_vector_filter_requires_a_condition() -> None:
    with pytest.raises(ValueError):
        VectorFilter()


def test_chroma_where_payload(helper_config: HelperConfig) -> None:
    client = RAGClientChroma(helper_config=helper_config)
    assert client.get_where_payload(VectorFilter(user_id=3)) == {"user_id": 3}
    assert client.get_where_payload(VectorFilter(user_id=3, document_id=1)) == {
        "$and": [{"document_id": 1}, {"user_id": 3}]
    }


def test_qdrant_filter_payload(helper_config: HelperConfig) -> None:
    client = RAGClientQdrant(helper_config=helper_config)
    assert client.get_filter_payload(VectorFilter(user_id=3, document_id=1)) == {
        "must": [
            {"key": "document_id", "match": {"value": 1}},
            {"key": "user_id", "match": {"value": 3}},
        ]
    }


def test_chunk_metadata_from_wire() -> None:
    parsed = ChunkMetadata.from_wire({"document_id": 4.0, "user_id": 9, "chunk_index": 2, "title": "Labs"})
    assert parsed == ChunkMetadata(document_id=4, user_id=9, chunk_index=2, title="Labs")
    assert ChunkMetadata.from_wire({"document_id": 4, "chunk_index": 2}) is None
    assert ChunkMetadata.from_wire({"document_id": 4.5, "user_id": 9, "chunk_index": 2}) is None
    assert ChunkMetadata.from_wire(None) is None


##########################################
################ CHROMA ##################
##########################################

@pytest.mark.asyncio
async def test_chroma_ensure_collection_creates_when_missing(helper_config: HelperConfig) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(404, json={"error": "Collection medical_documents does not exist."})
        return httpx.Response(200, json={"id": "col-new", "name": "medical_documents"})

    client = RAGClientChroma(helper_config=helper_config)
    recorder = await booted(client, handler)
    await client.do_ensure_collection()

    create = recorder.bodies("/api/v1/collections")
    assert create == [{
        "name": "medical_documents",
        "metadata": {"description": "Medical documents collection"},
        "get_or_create": True,
    }]
    assert await client._get_collection_id() == "col-new"
    await client.close()


@pytest.mark.asyncio
async def test_chroma_ensure_collection_is_idempotent(helper_config: HelperConfig) -> None:
    client = RAGClientChroma(helper_config=helper_config)
    recorder = await booted(client, chroma_handler())
    await client.do_ensure_collection()
    await client.do_ensure_collection()
    assert all(r.method == "GET" for r in recorder.requests)
    await client.close()


@pytest.mark.asyncio
async def test_chroma_ensure_collection_raises_on_unexpected_status(helper_config: HelperConfig) -> None:
    client = RAGClientChroma(helper_config=helper_config)
    await booted(client, lambda request: httpx.Response(403, text="forbidden"))
    with pytest.raises(StoreError) as exc_info:
        await client.do_ensure_collection()
    assert exc_info.value.status_code == 403
    await client.close()


@pytest.mark.asyncio
async def test_chroma_add_sends_one_upsert(helper_config: HelperConfig) -> None:
    client = RAGClientChroma(helper_config=helper_config)
    recorder = await booted(client, chroma_handler())
    metadata = ChunkMetadata(document_id=1, user_id=3, chunk_index=0, title="ECG")
    await client.do_add(["1-0-3"], [[0.1, 0.2]], ["sinus rhythm"], [metadata])

    upserts = recorder.bodies("/api/v1/collections/col-1/upsert")
    assert upserts == [{
        "ids": ["1-0-3"],
        "embeddings": [[0.1, 0.2]],
        "documents": ["sinus rhythm"],
        "metadatas": [{"document_id": 1, "user_id": 3, "chunk_index": 0, "title": "ECG"}],
    }]
    await client.close()


@pytest.mark.asyncio
async def test_add_rejects_mismatched_lengths(helper_config: HelperConfig) -> None:
    client = RAGClientChroma(helper_config=helper_config)
    recorder = await booted(client, chroma_handler())
    with pytest.raises(ValidationError):
        await client.do_add(["a", "b"], [[0.1]], ["x", "y"], [])
    assert recorder.requests == []
    await client.close()


@pytest.mark.asyncio
async def test_chroma_add_raises_store_error_on_failure(helper_config: HelperConfig) -> None:
    client = RAGClientChroma(helper_config=helper_config)
    await booted(client, chroma_handler(lambda request: httpx.Response(500, text="boom")))
    metadata = ChunkMetadata(document_id=1, user_id=3, chunk_index=0)
    with pytest.raises(StoreError) as exc_info:
        await client.do_add(["1-0-3"], [[0.1]], ["x"], [metadata])
    assert exc_info.value.retryable is True
    await client.close()


@pytest.mark.asyncio
async def test_chroma_query_parses_and_orders_matches(helper_config: HelperConfig) -> None:
    def query(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={
            "ids": [["1-1-3", "1-0-3", "2-0-3"]],
            "documents": [["second", "first", "broken"]],
            "metadatas": [[
                {"document_id": 1, "user_id": 3, "chunk_index": 1, "title": "ECG"},
                {"document_id": 1, "user_id": 3, "chunk_index": 0, "title": "ECG"},
                {"user_id": 3},
            ]],
            "distances": [[0.4, 0.1, 0.2]],
        })

    client = RAGClientChroma(helper_config=helper_config)
    recorder = await booted(client, chroma_handler(query))
    matches = await client.do_query([0.5, 0.5], 5, VectorFilter(user_id=3))

    assert [m.id for m in matches] == ["1-0-3", "2-0-3", "1-1-3"]
    assert matches[0].text == "first"
    assert matches[1].metadata is None
    body = recorder.bodies("/query")[0]
    assert body["n_results"] == 5
    assert body["where"] == {"user_id": 3}
    await client.close()


@pytest.mark.asyncio
async def test_chroma_query_rejects_non_json_success_body(helper_config: HelperConfig) -> None:
    client = RAGClientChroma(helper_config=helper_config)
    await booted(client, chroma_handler(lambda request: httpx.Response(200, text="<html>proxy page</html>")))
    with pytest.raises(StoreError) as exc_info:
        await client.do_query([0.5, 0.5], 5, VectorFilter(user_id=3))
    assert exc_info.value.retryable is False
    assert exc_info.value.status_code == 200
    await client.close()


@pytest.mark.asyncio
async def test_chroma_collection_lookup_without_id_is_store_error(helper_config: HelperConfig) -> None:
    client = RAGClientChroma(helper_config=helper_config)
    await booted(client, lambda request: httpx.Response(200, json={"name": "medical_documents"}))
    with pytest.raises(StoreError) as exc_info:
        await client.do_ensure_collection()
    assert exc_info.value.retryable is False
    await client.close()


@pytest.mark.asyncio
async def test_chroma_delete_empty_sends_nothing(helper_config: HelperConfig) -> None:
    client = RAGClientChroma(helper_config=helper_config)
    recorder = await booted(client, chroma_handler())
    await client.do_delete([])
    assert recorder.requests == []
    await client.close()


@pytest.mark.asyncio
async def test_chroma_get_ids_and_delete(helper_config: HelperConfig) -> None:
    def records(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/get"):
            return httpx.Response(200, json={"ids": ["1-0-3", "1-1-3"]})
        return httpx.Response(200, json=None)

    client = RAGClientChroma(helper_config=helper_config)
    recorder = await booted(client, chroma_handler(records))
    ids = await client.do_get_ids_by_metadata(VectorFilter(document_id=1, user_id=3))
    await client.do_delete(ids)

    assert recorder.bodies("/get") == [{"where": {"$and": [{"document_id": 1}, {"user_id": 3}]}, "include": []}]
    assert recorder.bodies("/delete") == [{"ids": ["1-0-3", "1-1-3"]}]
    await client.close()


@pytest.mark.asyncio
async def test_request_before_boot_raises(helper_config: HelperConfig) -> None:
    client = RAGClientChroma(helper_config=helper_config)
    with pytest.raises(StoreError):
        await client.do_ensure_collection()


@pytest.mark.asyncio
async def test_transport_failure_becomes_store_error(helper_config: HelperConfig) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = RAGClientChroma(helper_config=helper_config)
    await booted(client, handler)
    with pytest.raises(StoreError):
        await client.do_ensure_collection()
    await client.close()


##########################################
################ QDRANT ##################
##########################################

@pytest.mark.asyncio
async def test_qdrant_ensure_collection_creates_when_missing(helper_config: HelperConfig, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RAG_QDRANT_VECTOR_SIZE", "3")

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/exists"):
            return httpx.Response(200, json={"result": {"exists": False}})
        return httpx.Response(200, json={"result": True})

    client = RAGClientQdrant(helper_config=helper_config)
    recorder = await booted(client, handler)
    await client.do_ensure_collection()

    create = [r for r in recorder.requests if r.method == "PUT"]
    assert len(create) == 1
    assert create[0].url.path == "/collections/medical_documents"
    assert json.loads(create[0].content) == {"vectors": {"size": 3, "distance": "Cosine"}}
    await client.close()


@pytest.mark.asyncio
async def test_qdrant_add_uses_deterministic_point_ids(helper_config: HelperConfig) -> None:
    client = RAGClientQdrant(helper_config=helper_config)
    recorder = await booted(client, lambda request: httpx.Response(200, json={"result": {}}))
    metadata = ChunkMetadata(document_id=1, user_id=3, chunk_index=0, title="ECG")
    await client.do_add(["1-0-3"], [[0.1, 0.2]], ["sinus rhythm"], [metadata])

    body = recorder.bodies("/points")[0]
    point = body["points"][0]
    assert point["id"] == RAGClientQdrant.make_point_id("1-0-3")
    assert point["payload"]["record_id"] == "1-0-3"
    assert point["payload"]["chunk_text"] == "sinus rhythm"
    assert point["payload"]["user_id"] == 3
    assert recorder.requests[0].url.params["wait"] == "true"
    await client.close()


@pytest.mark.asyncio
async def test_qdrant_query_converts_scores_to_distances(helper_config: HelperConfig) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"result": [
            {"id": "p1", "score": 0.6, "payload": {"record_id": "1-1-3", "chunk_text": "b", "document_id": 1, "user_id": 3, "chunk_index": 1}},
            {"id": "p2", "score": 0.9, "payload": {"record_id": "1-0-3", "chunk_text": "a", "document_id": 1, "user_id": 3, "chunk_index": 0}},
        ]})

    client = RAGClientQdrant(helper_config=helper_config)
    await booted(client, handler)
    matches = await client.do_query([0.1], 5, VectorFilter(user_id=3))

    assert [m.id for m in matches] == ["1-0-3", "1-1-3"]
    assert matches[0].distance == pytest.approx(0.1)
    await client.close()


@pytest.mark.asyncio
async def test_qdrant_get_ids_pages_through_scroll(helper_config: HelperConfig) -> None:
    pages = iter([
        {"result": {"points": [{"id": "p1", "payload": {"record_id": "1-0-3"}}], "next_page_offset": "p2"}},
        {"result": {"points": [{"id": "p2", "payload": {"record_id": "1-1-3"}}], "next_page_offset": None}},
    ])
    client = RAGClientQdrant(helper_config=helper_config)
    recorder = await booted(client, lambda request: httpx.Response(200, json=next(pages)))
    ids = await client.do_get_ids_by_metadata(VectorFilter(document_id=1, user_id=3))

    assert ids == ["1-0-3", "1-1-3"]
    scroll_bodies = recorder.bodies("/points/scroll")
    assert "offset" not in scroll_bodies[0]
    assert scroll_bodies[1]["offset"] == "p2"
    await client.close()


@pytest.mark.asyncio
async def test_qdrant_scroll_rejects_non_json_success_body(helper_config: HelperConfig) -> None:
    client = RAGClientQdrant(helper_config=helper_config)
    await booted(client, lambda request: httpx.Response(200, text="<html>502 Bad Gateway</html>"))
    with pytest.raises(StoreError) as exc_info:
        await client.do_get_ids_by_metadata(VectorFilter(document_id=1, user_id=3))
    assert exc_info.value.retryable is False
    await client.close()
