"""
Text embedding providers.

The output dimension of the provider must equal the vector index dimension;
``EmbeddingIndexer`` checks this before writing.
"""
import asyncio
from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np

from catalog_sync.utils.logger import get_logger

logger = get_logger("indexing.embeddings")


class EmbeddingsProvider(ABC):
    model_name: str
    dimension: int

    @abstractmethod
    async def embed(self, texts: List[str]) -> List[List[float]]:
        """Embed ``texts`` in one call; one vector per input, in order."""

    async def resolve_dimension(self) -> int:
        """Output dimension of the model, loading it first where that is the only way to know."""
        return self.dimension


class OpenAIEmbeddings(EmbeddingsProvider):
    """
    OpenAI embeddings API (reads OPENAI_API_KEY).
    """

    def __init__(
        self,
        model_name: str = "text-embedding-3-small",
        dimension: int = 1536,
        batch_size: int = 512,
        client=None,
    ):
        self.model_name = model_name
        self.dimension = dimension
        self.batch_size = batch_size
        self._client = client

    def _get_client(self):
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI()
        return self._client

    async def embed(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        client = self._get_client()
        vectors: List[List[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start:start + self.batch_size]
            response = await client.embeddings.create(model=self.model_name, input=batch)
            ordered = sorted(response.data, key=lambda item: item.index)
            vectors.extend(list(item.embedding) for item in ordered)
        logger.debug(f"Generated {len(vectors)} embeddings with {self.model_name}")
        return vectors


class SentenceTransformerEmbeddings(EmbeddingsProvider):
    """
    Local sentence-transformers model, loaded lazily on first use.
    """

    def __init__(self, model_name: str = "all-mpnet-base-v2", dimension: Optional[int] = 768, preload_model: bool = False):
        self.model_name = model_name
        self.dimension = dimension
        self._encoder = None
        if preload_model:
            self._get_encoder()

    def _get_encoder(self):
        """Lazy load the sentence transformer model."""
        if self._encoder is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError:
                logger.error("sentence-transformers not installed")
                raise
            logger.info(f"Loading encoder: {self.model_name}")
            self._encoder = SentenceTransformer(self.model_name)
            self.dimension = self._encoder.get_sentence_embedding_dimension()
            logger.info(f"Encoder loaded: {self.model_name} (dimension={self.dimension})")
        return self._encoder

    def _encode(self, texts: List[str]) -> np.ndarray:
        encoder = self._get_encoder()
        embeddings = encoder.encode(texts, convert_to_numpy=True, normalize_embeddings=True)
        return embeddings.astype(np.float32)

    async def embed(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        embeddings = await asyncio.to_thread(self._encode, texts)
        return embeddings.tolist()

    async def resolve_dimension(self) -> int:
        await asyncio.to_thread(self._get_encoder)
        return self.dimension


def create_embeddings_provider(backend: str, model_name: str, dimension: int) -> EmbeddingsProvider:
    if backend == "openai":
        return OpenAIEmbeddings(model_name=model_name, dimension=dimension)
    if backend == "sentence_transformers":
        return SentenceTransformerEmbeddings(model_name=model_name, dimension=dimension)
    raise ValueError(f"Unknown embeddings backend: {backend}")
