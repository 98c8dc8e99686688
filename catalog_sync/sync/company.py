"""
Cached access to the singleton company info document.
"""
from typing import Callable, Optional

from catalog_sync.core.cache import TTLCache
from catalog_sync.data.models import CompanyInfo
from catalog_sync.data.storage import CatalogRepository
from catalog_sync.utils.logger import get_logger

logger = get_logger("sync.company")


class CompanyInfoService:
    """
    Company info reads go through a short-TTL cache; every write through
    ``save`` invalidates it.
    """

    def __init__(
        self,
        repository: CatalogRepository,
        ttl_seconds: float = 300.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.repository = repository
        self.cache: TTLCache[CompanyInfo] = TTLCache("company_info", ttl_seconds, clock=clock)

    async def get_cached(self) -> Optional[CompanyInfo]:
        return await self.cache.get_or_load(self.repository.get_company_info)

    async def save(self, company: CompanyInfo) -> None:
        await self.repository.save_company_info(company)
        self.cache.invalidate()
        logger.info(f"Company information saved: {company.name}")

    def invalidate(self) -> None:
        self.cache.invalidate()
