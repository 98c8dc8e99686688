"""
Process-wide service container for the API.

Storage, caches and the sync coordinator are built once at startup.
Providers, embeddings and the vector index are built on first use, so a
missing credential only fails the routes that need it.
"""
from typing import Callable, Dict, Optional

from catalog_sync.core.config import CatalogSyncConfig, get_config
from catalog_sync.core.errors import ConfigError
from catalog_sync.data.prompt_loader import PromptLoader
from catalog_sync.data.storage import CatalogRepository, DocumentStore, InMemoryDocumentStore, SupabaseDocumentStore
from catalog_sync.indexing.embeddings import EmbeddingsProvider, create_embeddings_provider
from catalog_sync.indexing.indexer import EmbeddingIndexer
from catalog_sync.indexing.vector_index import VectorIndex, create_vector_index
from catalog_sync.providers import PROVIDERS, CommerceProvider, create_provider
from catalog_sync.sync.company import CompanyInfoService
from catalog_sync.sync.orchestrator import SyncCoordinator, SyncOrchestrator
from catalog_sync.utils.logger import get_logger

logger = get_logger("api.services")

ProviderFactory = Callable[[str, CatalogSyncConfig], CommerceProvider]


def create_document_store(config: CatalogSyncConfig) -> DocumentStore:
    if config.storage_backend == "memory":
        return InMemoryDocumentStore()
    if config.storage_backend == "supabase":
        return SupabaseDocumentStore(timeout=config.http_timeout)
    raise ConfigError(f"Unknown storage backend: {config.storage_backend}")


class CatalogServices:
    def __init__(
        self,
        config: CatalogSyncConfig,
        repository: CatalogRepository,
        embeddings: Optional[EmbeddingsProvider] = None,
        vector_index: Optional[VectorIndex] = None,
        provider_factory: Optional[ProviderFactory] = None,
    ):
        self.config = config
        self.repository = repository
        self.company = CompanyInfoService(repository, ttl_seconds=config.company_cache_ttl)
        self.prompts = PromptLoader(repository, config.prompts_dir, ttl_seconds=config.prompt_cache_ttl)

        self._embeddings = embeddings
        self._vector_index = vector_index
        self._provider_factory = provider_factory or create_provider
        self._providers: Dict[str, CommerceProvider] = {}
        self._indexer: Optional[EmbeddingIndexer] = None
        self._coordinator: Optional[SyncCoordinator] = None

    @classmethod
    def from_config(cls, config: Optional[CatalogSyncConfig] = None) -> "CatalogServices":
        config = config or get_config()
        logger.info(
            f"Building services (storage={config.storage_backend}, "
            f"vector_index={config.vector_backend}, embeddings={config.embeddings_backend})"
        )
        return cls(config, CatalogRepository(create_document_store(config)))

    def provider(self, name: str) -> CommerceProvider:
        if name not in PROVIDERS:
            raise ConfigError(f"Unknown commerce provider: {name}")
        if name not in self._providers:
            self._providers[name] = self._provider_factory(name, self.config)
        return self._providers[name]

    def orchestrator(self, name: str) -> SyncOrchestrator:
        return SyncOrchestrator(self.provider(name), self.repository, self.company)

    @property
    def indexer(self) -> EmbeddingIndexer:
        if self._indexer is None:
            if self._embeddings is None:
                self._embeddings = create_embeddings_provider(
                    self.config.embeddings_backend, self.config.embedding_model, self.config.embedding_dimension
                )
            if self._vector_index is None:
                self._vector_index = create_vector_index(self.config.vector_backend, timeout=self.config.http_timeout)
            self._indexer = EmbeddingIndexer(
                self.repository,
                self._embeddings,
                self._vector_index,
                collection=self.config.vector_collection,
                namespace=self.config.vector_namespace,
                metric=self.config.vector_metric,
            )
        return self._indexer

    @property
    def coordinator(self) -> SyncCoordinator:
        if self._coordinator is None:
            self._coordinator = SyncCoordinator(self.orchestrator(self.config.primary_provider))
        return self._coordinator

    async def close(self) -> None:
        if self._coordinator is not None:
            await self._coordinator.stop_periodic()
        for provider in self._providers.values():
            await provider.close()
        if self._vector_index is not None:
            await self._vector_index.close()
        await self.repository.store.close()


# Global services instance
_services: Optional[CatalogServices] = None


def get_services() -> CatalogServices:
    """Get the global services instance (FastAPI dependency)."""
    global _services
    if _services is None:
        _services = CatalogServices.from_config()
    return _services


def set_services(services: Optional[CatalogServices]) -> None:
    """Set the global services instance."""
    global _services
    _services = services
