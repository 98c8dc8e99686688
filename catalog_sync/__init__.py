"""
Catalog Sync - commerce catalog import and semantic product search

Imports products and store information from Shopify or WooCommerce into a
document store, then embeds them into a vector index for search.
"""

from catalog_sync.core.config import CatalogSyncConfig, get_config, set_config
from catalog_sync.core.errors import (
    ApiError,
    CatalogSyncError,
    ConfigError,
    MappingError,
    SyncInProgressError,
    VectorIndexError,
)

__all__ = [
    'CatalogSyncConfig',
    'get_config',
    'set_config',
    'ApiError',
    'CatalogSyncError',
    'ConfigError',
    'MappingError',
    'SyncInProgressError',
    'VectorIndexError',
]

__version__ = '0.1.0'
