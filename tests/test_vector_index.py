"""
Tests for the in-memory and Qdrant vector index backends.
"""

import json

import httpx
import pytest

from catalog_sync.core.errors import ConfigError, VectorIndexError
from catalog_sync.indexing.vector_index import InMemoryVectorIndex, QdrantVectorIndex, create_vector_index
from conftest import MockBackend


class TestInMemoryVectorIndex:
    @pytest.mark.asyncio
    async def test_create_is_idempotent(self, vector_index):
        await vector_index.create_index("products", 3)
        await vector_index.upsert("products", [[1, 0, 0]], [{"id": "a"}], ["a"])
        await vector_index.create_index("products", 3)

        stats = await vector_index.describe_index("products")
        assert stats.to_dict() == {"dimension": 3, "metric": "cosine", "count": 1}

    @pytest.mark.asyncio
    async def test_upsert_overwrites_by_id(self, vector_index):
        await vector_index.create_index("products", 2)
        await vector_index.upsert("products", [[1, 0]], [{"name": "old"}], ["a"])
        await vector_index.upsert("products", [[0, 1], [1, 1]], [{"name": "new"}, {"name": "b"}], ["a", "b"])

        matches = await vector_index.query("products", [0, 1], top_k=5)

        assert (await vector_index.describe_index("products")).count == 2
        assert matches[0].id == "a"
        assert matches[0].metadata == {"name": "new"}
        assert matches[0].score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_query_orders_and_limits(self, vector_index):
        await vector_index.create_index("products", 2)
        await vector_index.upsert(
            "products",
            [[1, 0], [0.8, 0.6], [0, 1]],
            [{"id": "x"}, {"id": "y"}, {"id": "z"}],
            ["x", "y", "z"],
        )

        matches = await vector_index.query("products", [1, 0], top_k=2)

        assert [m.id for m in matches] == ["x", "y"]

    @pytest.mark.asyncio
    async def test_dot_and_euclidean_metrics(self):
        index = InMemoryVectorIndex()
        await index.create_index("dot", 2, metric="dot")
        await index.create_index("l2", 2, metric="euclidean")
        for name in ("dot", "l2"):
            await index.upsert(name, [[1, 0], [3, 0]], [{}, {}], ["near", "far"])

        assert (await index.query("dot", [1, 0], top_k=1))[0].id == "far"
        assert (await index.query("l2", [1, 0], top_k=1))[0].id == "near"

    @pytest.mark.asyncio
    async def test_errors(self, vector_index):
        with pytest.raises(VectorIndexError):
            await vector_index.describe_index("missing")
        with pytest.raises(VectorIndexError):
            await vector_index.create_index("products", 2, metric="manhattan")

        await vector_index.create_index("products", 2)
        with pytest.raises(VectorIndexError) as exc:
            await vector_index.upsert("products", [[1, 0, 0]], [{}], ["a"])
        assert exc.value.details["expected"] == 2
        with pytest.raises(VectorIndexError):
            await vector_index.upsert("products", [[1, 0]], [{}, {}], ["a"])
        with pytest.raises(VectorIndexError):
            await vector_index.query("products", [1, 0, 0])

    @pytest.mark.asyncio
    async def test_empty_index_query(self, vector_index):
        await vector_index.create_index("products", 2)
        assert await vector_index.query("products", [1, 0]) == []


QDRANT_URL = "https://qdrant.example.com"


def make_qdrant(backend: MockBackend) -> QdrantVectorIndex:
    return QdrantVectorIndex(url=QDRANT_URL, api_key="qdrant-key", transport=backend.transport)


class TestQdrantVectorIndex:
    @pytest.mark.asyncio
    async def test_creates_missing_collection(self):
        created = []

        def collection(request: httpx.Request) -> httpx.Response:
            created.append(json.loads(request.content))
            return httpx.Response(200, json={"result": True, "status": "ok"})

        backend = MockBackend({
            "/collections/products/exists": {"result": {"exists": False}},
            "/collections/products": collection,
        })

        await make_qdrant(backend).create_index("products", 1536)

        assert created == [{"vectors": {"size": 1536, "distance": "Cosine"}}]
        assert backend.requests[0].headers["api-key"] == "qdrant-key"

    @pytest.mark.asyncio
    async def test_existing_collection_is_left_alone(self):
        backend = MockBackend({"/collections/products/exists": {"result": {"exists": True}}})
        await make_qdrant(backend).create_index("products", 1536)
        assert backend.paths() == ["/collections/products/exists"]

    @pytest.mark.asyncio
    async def test_describe(self):
        backend = MockBackend({
            "/collections/products": {
                "result": {
                    "points_count": 42,
                    "config": {"params": {"vectors": {"size": 1536, "distance": "Cosine"}}},
                },
            },
        })
        stats = await make_qdrant(backend).describe_index("products")
        assert stats.to_dict() == {"dimension": 1536, "metric": "cosine", "count": 42}

    @pytest.mark.asyncio
    async def test_upsert_waits_for_write(self):
        backend = MockBackend({"/collections/products/points": {"result": {"status": "completed"}}})

        await make_qdrant(backend).upsert("products", [[0.1, 0.2]], [{"id": "1"}], ["uuid-1"])

        request = backend.requests[0]
        assert request.method == "PUT"
        assert request.url.params["wait"] == "true"
        assert json.loads(request.content) == {
            "points": [{"id": "uuid-1", "vector": [0.1, 0.2], "payload": {"id": "1"}}],
        }

    @pytest.mark.asyncio
    async def test_search_parses_results(self):
        backend = MockBackend({
            "/collections/products/points/search": {
                "result": [
                    {"id": "b", "score": 0.4, "payload": {"id": "2"}},
                    {"id": "a", "score": 0.9, "payload": {"id": "1"}},
                ],
            },
        })

        matches = await make_qdrant(backend).query("products", [0.1, 0.2], top_k=2)

        body = json.loads(backend.requests[0].content)
        assert body["limit"] == 2
        assert body["with_payload"] is True
        assert [m.id for m in matches] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_error_carries_details(self):
        backend = MockBackend({
            "/collections/products/points": httpx.Response(400, json={"status": {"error": "Wrong input: vector dimension"}}),
        })

        with pytest.raises(VectorIndexError) as exc:
            await make_qdrant(backend).upsert("products", [[0.1]], [{}], ["a"])

        assert exc.value.details["status"] == 400
        assert "vector dimension" in exc.value.details["body"]["status"]["error"]

    def test_requires_url(self, monkeypatch):
        monkeypatch.delenv("QDRANT_URL", raising=False)
        with pytest.raises(ConfigError):
            QdrantVectorIndex()

    def test_factory(self):
        assert isinstance(create_vector_index("memory"), InMemoryVectorIndex)
        with pytest.raises(ConfigError):
            create_vector_index("pinecone")
