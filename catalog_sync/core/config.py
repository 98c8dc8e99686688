"""
Configuration management for catalog_sync.

Loads settings from YAML config file and provides typed access.
Credentials are never read from YAML; they come from the environment
(see ``catalog_sync.providers``).
"""
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional
import yaml

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()


def _project_root() -> Path:
    """Return project root (parent of catalog_sync package)."""
    return Path(__file__).resolve().parent.parent.parent


DEFAULT_CONFIG_PATH = _project_root() / "config" / "default.yaml"


@dataclass
class CatalogSyncConfig:
    """Configuration for the sync and caching layer."""

    # Vector index
    vector_collection: str = "products"
    vector_namespace: str = "6ba7b810-9dad-11d1-80b4-00c04fd430c8"  # never change: ids derive from it
    vector_metric: str = "cosine"
    vector_backend: str = "memory"        # "memory" or "qdrant"

    # Embeddings
    embeddings_backend: str = "openai"    # "openai" or "sentence_transformers"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimension: int = 1536

    # Storage
    storage_backend: str = "memory"       # "memory" or "supabase"

    # Caches (seconds)
    company_cache_ttl: float = 300.0
    prompt_cache_ttl: float = 300.0

    # Commerce backends
    shopify_page_size: int = 50
    woocommerce_page_size: int = 50
    shopify_max_requests: int = 40
    shopify_window_ms: int = 1000
    woocommerce_max_requests: int = 100
    woocommerce_window_ms: int = 15 * 60 * 1000
    http_timeout: float = 30.0

    # Prompts
    prompts_dir: str = "prompts"

    # Combined sync
    primary_provider: str = "shopify"     # "shopify" or "woocommerce"
    sync_interval_minutes: float = 0.0    # 0 disables the periodic sync

    @classmethod
    def from_yaml(cls, config_path: Optional[Path] = None) -> "CatalogSyncConfig":
        """Load configuration from YAML file."""
        path = config_path or DEFAULT_CONFIG_PATH
        if not path.exists():
            return cls()

        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        vector_config = data.get('vector_index', {})
        embeddings_config = data.get('embeddings', {})
        cache_config = data.get('cache', {})
        shopify_config = data.get('shopify', {})
        woo_config = data.get('woocommerce', {})
        sync_config = data.get('sync', {})
        defaults = cls()

        return cls(
            vector_collection=vector_config.get('collection', defaults.vector_collection),
            vector_namespace=vector_config.get('namespace', defaults.vector_namespace),
            vector_metric=vector_config.get('metric', defaults.vector_metric),
            vector_backend=vector_config.get('backend', defaults.vector_backend),
            embeddings_backend=embeddings_config.get('backend', defaults.embeddings_backend),
            embedding_model=embeddings_config.get('model', defaults.embedding_model),
            embedding_dimension=embeddings_config.get('dimension', defaults.embedding_dimension),
            storage_backend=data.get('storage', {}).get('backend', defaults.storage_backend),
            company_cache_ttl=cache_config.get('company_ttl_seconds', defaults.company_cache_ttl),
            prompt_cache_ttl=cache_config.get('prompt_ttl_seconds', defaults.prompt_cache_ttl),
            shopify_page_size=shopify_config.get('page_size', defaults.shopify_page_size),
            shopify_max_requests=shopify_config.get('max_requests', defaults.shopify_max_requests),
            shopify_window_ms=shopify_config.get('window_ms', defaults.shopify_window_ms),
            woocommerce_page_size=woo_config.get('page_size', defaults.woocommerce_page_size),
            woocommerce_max_requests=woo_config.get('max_requests', defaults.woocommerce_max_requests),
            woocommerce_window_ms=woo_config.get('window_ms', defaults.woocommerce_window_ms),
            http_timeout=data.get('http', {}).get('timeout_seconds', defaults.http_timeout),
            prompts_dir=data.get('prompts', {}).get('dir', defaults.prompts_dir),
            primary_provider=sync_config.get('primary_provider', defaults.primary_provider),
            sync_interval_minutes=sync_config.get('interval_minutes', defaults.sync_interval_minutes),
        )

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# Global config instance
_config: Optional[CatalogSyncConfig] = None


def get_config() -> CatalogSyncConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = CatalogSyncConfig.from_yaml()
    return _config


def set_config(config: CatalogSyncConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
