"""
Embedding indexer: stored products -> embeddings -> vector index.

Vector ids are uuid5(namespace, product_id), so re-indexing a product
overwrites its point instead of adding a new one.
"""
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List

from catalog_sync.core.errors import CatalogSyncError, ConfigError, VectorIndexError
from catalog_sync.data.models import Product
from catalog_sync.data.storage import CatalogRepository
from catalog_sync.indexing.embeddings import EmbeddingsProvider
from catalog_sync.indexing.metadata import ProductVectorMetadata, build_embedding_text
from catalog_sync.indexing.vector_index import IndexStats, VectorIndex
from catalog_sync.utils.logger import get_logger

logger = get_logger("indexing.indexer")

DEFAULT_NAMESPACE = "6ba7b810-9dad-11d1-80b4-00c04fd430c8"
MAX_SEARCH_LIMIT = 100


@dataclass
class SearchResult:
    id: str
    product_id: str
    score: float
    metadata: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "productId": self.product_id,
            "score": self.score,
            "product": self.metadata,
        }


class EmbeddingIndexer:
    """
    Usage:
        indexer = EmbeddingIndexer(repository, embeddings, vector_index)
        await indexer.sync_all()              # {"synced": n}
        results = await indexer.search("red shoes", limit=5)
    """

    def __init__(
        self,
        repository: CatalogRepository,
        embeddings: EmbeddingsProvider,
        vector_index: VectorIndex,
        collection: str = "products",
        namespace: str = DEFAULT_NAMESPACE,
        metric: str = "cosine",
        batch_size: int = 100,
    ):
        self.repository = repository
        self.embeddings = embeddings
        self.vector_index = vector_index
        self.collection = collection
        self.namespace = uuid.UUID(namespace)
        self.metric = metric
        self.batch_size = batch_size

    def vector_id_for(self, product_id: str) -> str:
        return str(uuid.uuid5(self.namespace, str(product_id)))

    async def ensure_index(self) -> IndexStats:
        """Create the collection if absent and check its dimension matches the embeddings."""
        dimension = await self.embeddings.resolve_dimension()
        await self.vector_index.create_index(self.collection, dimension, self.metric)
        stats = await self.vector_index.describe_index(self.collection)
        if stats.dimension != dimension:
            raise ConfigError(
                f"Vector index {self.collection} has dimension {stats.dimension}, "
                f"but {self.embeddings.model_name} produces {dimension}"
            )
        return stats

    async def _embed(self, texts: List[str]) -> List[List[float]]:
        try:
            vectors = await self.embeddings.embed(texts)
        except CatalogSyncError:
            raise
        except Exception as e:
            raise VectorIndexError(f"Embedding generation failed: {e}", details={"model": self.embeddings.model_name}) from e

        if len(vectors) != len(texts):
            raise VectorIndexError(
                "Embedding provider returned the wrong number of vectors",
                details={"expected": len(texts), "got": len(vectors)},
            )
        return vectors

    async def _index_products(self, products: List[Product]) -> int:
        texts = [build_embedding_text(p) for p in products]
        vectors = await self._embed(texts)
        payloads = [ProductVectorMetadata.from_product(p, text).to_payload() for p, text in zip(products, texts)]
        ids = [self.vector_id_for(p.id) for p in products]
        await self.vector_index.upsert(self.collection, vectors, payloads, ids)
        return len(ids)

    async def sync_all(self) -> Dict[str, int]:
        """
        Re-embed and upsert every stored product.

        Any embedding or index failure aborts the run. The qdrant sync
        timestamp is stamped when at least one point was written, even if a
        later batch failed.
        """
        await self.ensure_index()
        products = await self.repository.get_all_products()
        if not products:
            logger.info("No products to sync to the vector index")
            return {"synced": 0}

        logger.info(f"Syncing {len(products)} products to vector index {self.collection}...")
        synced = 0
        try:
            for start in range(0, len(products), self.batch_size):
                synced += await self._index_products(products[start:start + self.batch_size])
        finally:
            if synced > 0:
                await self.repository.mark_synced("qdrant")

        logger.info(f"Vector index sync completed: {synced} products")
        return {"synced": synced}

    async def sync_one(self, product_id: str) -> bool:
        """Index one stored product. False if the product is not in storage."""
        product = await self.repository.get_product(product_id)
        if product is None:
            logger.info(f"Product {product_id} not found, skipping vector sync")
            return False

        await self.ensure_index()
        await self._index_products([product])
        await self.repository.mark_synced("qdrant")
        logger.info(f"Product synced to vector index: {product.name} ({product.id})")
        return True

    async def search(self, query: str, limit: int = 10) -> List[SearchResult]:
        if not query or not query.strip():
            raise ValueError("Query is required")
        limit = max(1, min(int(limit), MAX_SEARCH_LIMIT))

        await self.ensure_index()
        vector = (await self._embed([query.strip()]))[0]
        matches = await self.vector_index.query(self.collection, vector, top_k=limit)
        matches = sorted(matches, key=lambda m: m.score, reverse=True)[:limit]

        logger.debug(f"Search '{query}' returned {len(matches)} results")
        return [
            SearchResult(
                id=m.id,
                product_id=str(m.metadata.get("id") or m.id),
                score=m.score,
                metadata=m.metadata,
            )
            for m in matches
        ]

    async def stats(self) -> IndexStats:
        return await self.vector_index.describe_index(self.collection)
