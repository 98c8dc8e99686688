"""
Vector index backends.

- InMemoryVectorIndex: numpy matrix per collection (tests, local dev)
- QdrantVectorIndex: Qdrant REST API over httpx (QDRANT_URL, QDRANT_API_KEY)

Both treat ``create_index`` as create-if-absent and ``upsert`` as
overwrite-by-id, so re-running a sync never duplicates points.
"""
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
import numpy as np

from catalog_sync.core.errors import ConfigError, VectorIndexError
from catalog_sync.utils.logger import get_logger

logger = get_logger("indexing.vector_index")

SUPPORTED_METRICS = ("cosine", "euclidean", "dot")

_QDRANT_DISTANCE = {"cosine": "Cosine", "euclidean": "Euclid", "dot": "Dot"}
_METRIC_FROM_QDRANT = {v: k for k, v in _QDRANT_DISTANCE.items()}


@dataclass
class IndexStats:
    dimension: int
    metric: str
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"dimension": self.dimension, "metric": self.metric, "count": self.count}


@dataclass
class VectorMatch:
    id: str
    score: float
    metadata: Dict[str, Any]


def _check_metric(metric: str) -> str:
    if metric not in SUPPORTED_METRICS:
        raise VectorIndexError(f"Unsupported metric: {metric}", details={"supported": list(SUPPORTED_METRICS)})
    return metric


def _check_upsert_args(vectors, metadata, ids) -> None:
    if not (len(vectors) == len(metadata) == len(ids)):
        raise VectorIndexError(
            "vectors, metadata and ids must have the same length",
            details={"vectors": len(vectors), "metadata": len(metadata), "ids": len(ids)},
        )


class VectorIndex(ABC):

    @abstractmethod
    async def create_index(self, name: str, dimension: int, metric: str = "cosine") -> None:
        """Create the collection if it does not exist; no-op otherwise."""

    @abstractmethod
    async def describe_index(self, name: str) -> IndexStats:
        ...

    @abstractmethod
    async def upsert(
        self,
        name: str,
        vectors: List[List[float]],
        metadata: List[Dict[str, Any]],
        ids: List[str],
    ) -> None:
        ...

    @abstractmethod
    async def query(self, name: str, vector: List[float], top_k: int = 10) -> List[VectorMatch]:
        """Return up to ``top_k`` matches ordered by descending score."""

    async def close(self) -> None:
        return None


class _Collection:
    def __init__(self, dimension: int, metric: str):
        self.dimension = dimension
        self.metric = metric
        self.ids: List[str] = []
        self.payloads: List[Dict[str, Any]] = []
        self.matrix = np.zeros((0, dimension), dtype=np.float32)


class InMemoryVectorIndex(VectorIndex):
    """
    Brute-force search over a numpy matrix. Scores follow Qdrant's
    conventions: cosine similarity, dot product, or negated L2 distance.
    """

    def __init__(self):
        self._collections: Dict[str, _Collection] = {}

    def _get(self, name: str) -> _Collection:
        if name not in self._collections:
            raise VectorIndexError(f"Index not found: {name}", details={"index": name})
        return self._collections[name]

    async def create_index(self, name, dimension, metric="cosine"):
        _check_metric(metric)
        if name in self._collections:
            return
        self._collections[name] = _Collection(dimension, metric)
        logger.info(f"Created in-memory index {name} (dimension={dimension}, metric={metric})")

    async def describe_index(self, name):
        collection = self._get(name)
        return IndexStats(collection.dimension, collection.metric, len(collection.ids))

    async def upsert(self, name, vectors, metadata, ids):
        collection = self._get(name)
        _check_upsert_args(vectors, metadata, ids)
        if not ids:
            return

        matrix = np.asarray(vectors, dtype=np.float32)
        if matrix.ndim != 2 or matrix.shape[1] != collection.dimension:
            raise VectorIndexError(
                f"Vector dimension mismatch for index {name}",
                details={"expected": collection.dimension, "got": list(matrix.shape)},
            )

        positions = {point_id: i for i, point_id in enumerate(collection.ids)}
        new_rows = []
        for row, point_id, payload in zip(matrix, ids, metadata):
            if point_id in positions:
                collection.matrix[positions[point_id]] = row
                collection.payloads[positions[point_id]] = dict(payload)
            else:
                positions[point_id] = len(collection.ids)
                collection.ids.append(point_id)
                collection.payloads.append(dict(payload))
                new_rows.append(row)

        if new_rows:
            collection.matrix = np.vstack([collection.matrix, np.stack(new_rows)])

    def _scores(self, collection: _Collection, query: np.ndarray) -> np.ndarray:
        if collection.metric == "dot":
            return collection.matrix @ query
        if collection.metric == "euclidean":
            return -np.linalg.norm(collection.matrix - query, axis=1)
        norms = np.linalg.norm(collection.matrix, axis=1) * np.linalg.norm(query)
        norms[norms == 0] = 1.0
        return (collection.matrix @ query) / norms

    async def query(self, name, vector, top_k=10):
        collection = self._get(name)
        query = np.asarray(vector, dtype=np.float32)
        if query.shape != (collection.dimension,):
            raise VectorIndexError(
                f"Query dimension mismatch for index {name}",
                details={"expected": collection.dimension, "got": list(query.shape)},
            )
        if not collection.ids or top_k <= 0:
            return []

        scores = self._scores(collection, query)
        order = np.argsort(-scores)[:top_k]
        return [
            VectorMatch(
                id=collection.ids[i],
                score=float(scores[i]),
                metadata=dict(collection.payloads[i]),
            )
            for i in order
        ]


class QdrantVectorIndex(VectorIndex):
    """
    Qdrant REST API client.

    Usage:
        index = QdrantVectorIndex()          # reads QDRANT_URL / QDRANT_API_KEY
        await index.create_index("products", 1536)
    """

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url or os.environ.get("QDRANT_URL")
        self.api_key = api_key if api_key is not None else os.environ.get("QDRANT_API_KEY")

        if not self.url:
            raise ConfigError("QDRANT_URL is required for the qdrant vector backend")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["api-key"] = self.api_key
        self.client = httpx.AsyncClient(base_url=self.url, headers=headers, timeout=timeout, transport=transport)

    async def _request(self, method: str, path: str, action: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise VectorIndexError(f"Qdrant {action} failed: {e}", details={"path": path}) from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            raise VectorIndexError(
                f"Qdrant {action} failed with status {response.status_code}",
                details={"status": response.status_code, "body": body},
            )
        try:
            return response.json()
        except ValueError as e:
            raise VectorIndexError(f"Qdrant {action} returned invalid JSON", details={"path": path}) from e

    async def _exists(self, name: str) -> bool:
        data = await self._request("GET", f"/collections/{name}/exists", "exists check")
        return bool(data.get("result", {}).get("exists"))

    async def create_index(self, name, dimension, metric="cosine"):
        _check_metric(metric)
        if await self._exists(name):
            return
        await self._request(
            "PUT",
            f"/collections/{name}",
            "create collection",
            json={"vectors": {"size": dimension, "distance": _QDRANT_DISTANCE[metric]}},
        )
        logger.info(f"Created Qdrant collection {name} (dimension={dimension}, metric={metric})")

    async def describe_index(self, name):
        data = await self._request("GET", f"/collections/{name}", "describe collection")
        result = data.get("result") or {}
        vectors = result.get("config", {}).get("params", {}).get("vectors", {})
        return IndexStats(
            dimension=int(vectors.get("size", 0)),
            metric=_METRIC_FROM_QDRANT.get(vectors.get("distance"), str(vectors.get("distance", "")).lower()),
            count=int(result.get("points_count") or 0),
        )

    async def upsert(self, name, vectors, metadata, ids):
        _check_upsert_args(vectors, metadata, ids)
        if not ids:
            return
        points = [
            {"id": point_id, "vector": list(vector), "payload": payload}
            for point_id, vector, payload in zip(ids, vectors, metadata)
        ]
        await self._request(
            "PUT",
            f"/collections/{name}/points",
            "upsert",
            params={"wait": "true"},
            json={"points": points},
        )
        logger.debug(f"Upserted {len(points)} points into {name}")

    async def query(self, name, vector, top_k=10):
        if top_k <= 0:
            return []
        data = await self._request(
            "POST",
            f"/collections/{name}/points/search",
            "search",
            json={"vector": list(vector), "limit": top_k, "with_payload": True},
        )
        matches = [
            VectorMatch(id=str(hit["id"]), score=float(hit["score"]), metadata=hit.get("payload") or {})
            for hit in data.get("result") or []
        ]
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:top_k]

    async def close(self):
        await self.client.aclose()


def create_vector_index(backend: str, timeout: float = 30.0) -> VectorIndex:
    if backend == "memory":
        return InMemoryVectorIndex()
    if backend == "qdrant":
        return QdrantVectorIndex(timeout=timeout)
    raise ConfigError(f"Unknown vector index backend: {backend}")
