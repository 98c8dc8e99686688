"""
Vector indexing of stored products for semantic search.
"""
from catalog_sync.indexing.embeddings import (
    EmbeddingsProvider,
    OpenAIEmbeddings,
    SentenceTransformerEmbeddings,
    create_embeddings_provider,
)
from catalog_sync.indexing.indexer import EmbeddingIndexer, SearchResult
from catalog_sync.indexing.metadata import ProductVectorMetadata, build_embedding_text
from catalog_sync.indexing.vector_index import (
    IndexStats,
    InMemoryVectorIndex,
    QdrantVectorIndex,
    VectorIndex,
    VectorMatch,
    create_vector_index,
)

__all__ = [
    "EmbeddingIndexer",
    "EmbeddingsProvider",
    "IndexStats",
    "InMemoryVectorIndex",
    "OpenAIEmbeddings",
    "ProductVectorMetadata",
    "QdrantVectorIndex",
    "SearchResult",
    "SentenceTransformerEmbeddings",
    "VectorIndex",
    "VectorMatch",
    "build_embedding_text",
    "create_embeddings_provider",
    "create_vector_index",
]
