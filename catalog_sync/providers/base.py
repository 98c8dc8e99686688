"""
Commerce backend capability interface.

The sync pipeline is written once against ``CommerceProvider``; pagination
and auth quirks stay inside each backend.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from catalog_sync.core.rate_limiter import RateLimiter
from catalog_sync.data.models import CompanyInfo, Product


@dataclass
class ProductPage:
    """One page of raw backend products and the token for the next page (None = last)."""
    items: List[Dict[str, Any]] = field(default_factory=list)
    next_page: Optional[Any] = None


class CommerceProvider(ABC):
    name: str = "commerce"
    # field stamped in SyncMetadata after a successful import
    sync_kind: str = "commerce"

    rate_limiter: RateLimiter

    @abstractmethod
    async def list_products(self, page: Optional[Any] = None) -> ProductPage:
        """Fetch one page. ``page=None`` requests the first page."""

    @abstractmethod
    async def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one raw product, or None if the backend does not know it."""

    @abstractmethod
    async def get_store_info(self) -> CompanyInfo:
        ...

    @abstractmethod
    def map_product(self, raw: Dict[str, Any]) -> Product:
        ...

    @abstractmethod
    async def list_remote_products(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Raw products straight from the backend, without importing."""

    @abstractmethod
    async def test_connection(self) -> bool:
        ...

    async def close(self) -> None:
        return None
