"""
Catalog import pipeline: backend -> mapper -> storage.

``SyncOrchestrator`` is written once against ``CommerceProvider`` and
handles any backend. ``SyncCoordinator`` owns the combined company+product
sync and its single-writer guard; create one per deployment at startup.

Imports are best-effort batches: per-item failures are counted, never
rolled back, and never abort the batch.
"""
import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from catalog_sync.core.errors import SyncInProgressError
from catalog_sync.data.models import CompanyInfo, Product, utcnow
from catalog_sync.data.storage import CatalogRepository
from catalog_sync.providers.base import CommerceProvider
from catalog_sync.sync.company import CompanyInfoService
from catalog_sync.utils.logger import get_logger

logger = get_logger("sync.orchestrator")


@dataclass
class ImportResult:
    success: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"success": self.success, "errors": self.errors}


def _raw_id(raw: Any) -> str:
    return str(raw.get("id")) if isinstance(raw, dict) else "?"


class SyncOrchestrator:
    """
    Usage:
        orchestrator = SyncOrchestrator(provider, repository, company_service)
        result = await orchestrator.import_all()   # ImportResult(success, errors)
    """

    def __init__(
        self,
        provider: CommerceProvider,
        repository: CatalogRepository,
        company_service: Optional[CompanyInfoService] = None,
    ):
        self.provider = provider
        self.repository = repository
        self.company_service = company_service

    async def import_all(self) -> ImportResult:
        """
        Import every product, one page at a time.

        A failure fetching the first page propagates (the backend is
        unreachable); a failure on a later page is counted as one error and
        ends the loop. SyncMetadata is stamped only if something succeeded.
        """
        result = ImportResult()
        page_token = None
        page_number = 0

        logger.info(f"Starting product import from {self.provider.name}...")

        while True:
            page_number += 1
            try:
                page = await self.provider.list_products(page_token)
            except Exception as e:
                if page_number == 1:
                    logger.error(f"{self.provider.name} product import failed: {e}")
                    raise
                result.errors += 1
                logger.error(f"Failed to fetch {self.provider.name} products page {page_number}: {e}")
                break

            if not page.items:
                logger.info(f"No products found on page {page_number}, stopping import")
                break

            for raw in page.items:
                try:
                    product = self.provider.map_product(raw)
                    await self.repository.save_imported_product(product)
                    result.success += 1
                    logger.debug(f"Product imported: {product.name} ({product.id})")
                except Exception as e:
                    result.errors += 1
                    logger.error(f"Failed to import product {_raw_id(raw)}: {e}")

            if page.next_page is None:
                break
            page_token = page.next_page

        if result.success > 0:
            await self.repository.mark_synced(self.provider.sync_kind)

        logger.info(
            f"{self.provider.name} product import completed: "
            f"{result.success} successful, {result.errors} errors"
        )
        return result

    async def import_one(self, product_id: str) -> Optional[Product]:
        """Re-import one product; None if the backend does not have it."""
        logger.info(f"Updating product from {self.provider.name}: {product_id}")

        raw = await self.provider.get_product(product_id)
        if raw is None:
            logger.info(f"Product {product_id} not found in {self.provider.name}")
            return None

        product = self.provider.map_product(raw)
        await self.repository.save_imported_product(product)
        logger.info(f"Product updated successfully: {product.name}")
        return await self.repository.get_product(product.id)

    async def import_company_info(self) -> CompanyInfo:
        logger.info(f"Importing company information from {self.provider.name}...")
        company = await self.provider.get_store_info()
        if self.company_service is not None:
            await self.company_service.save(company)
        else:
            await self.repository.save_company_info(company)
        logger.info("Company information imported successfully")
        return company


@dataclass
class SyncStatus:
    last_product_sync: Optional[datetime] = None
    last_company_sync: Optional[datetime] = None
    product_count: int = 0
    errors: List[str] = field(default_factory=list)
    is_running: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lastProductSync": self.last_product_sync.isoformat() if self.last_product_sync else None,
            "lastCompanySync": self.last_company_sync.isoformat() if self.last_company_sync else None,
            "productCount": self.product_count,
            "errors": list(self.errors),
            "isRunning": self.is_running,
        }


class SyncCoordinator:
    """
    Runs the combined company + product sync with at most one run in flight.
    """

    def __init__(self, orchestrator: SyncOrchestrator):
        self.orchestrator = orchestrator
        self._status = SyncStatus()
        self._periodic_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._status.is_running

    async def sync_all_data(self) -> SyncStatus:
        # read-then-set with no await in between
        if self._status.is_running:
            raise SyncInProgressError()
        self._status.is_running = True
        self._status.errors = []

        try:
            logger.info("Starting full data synchronization...")

            try:
                await self.orchestrator.import_company_info()
                self._status.last_company_sync = utcnow()
            except Exception as e:
                self._status.errors.append(f"Company sync failed: {e}")
                logger.error(f"Company information sync failed: {e}")

            try:
                result = await self.orchestrator.import_all()
                self._status.last_product_sync = utcnow()
                self._status.product_count = result.success
                if result.errors > 0:
                    self._status.errors.append(f"Product sync: {result.errors} errors occurred")
            except Exception as e:
                self._status.errors.append(f"Product sync failed: {e}")
                logger.error(f"Product synchronization failed: {e}")

            logger.info("Data synchronization completed")
        finally:
            self._status.is_running = False

        return self.status()

    def status(self) -> SyncStatus:
        return replace(self._status, errors=list(self._status.errors))

    def reset_status(self) -> None:
        if self._status.is_running:
            raise SyncInProgressError("Cannot reset status while a synchronization is running")
        self._status = SyncStatus()
        logger.info("Synchronization status reset")

    def run_periodic(self, interval_minutes: float = 60) -> asyncio.Task:
        """Schedule ``sync_all_data`` every ``interval_minutes`` on the running loop."""
        if self._periodic_task is not None and not self._periodic_task.done():
            return self._periodic_task

        logger.info(f"Scheduling periodic sync every {interval_minutes} minutes")

        async def _loop():
            while True:
                await asyncio.sleep(interval_minutes * 60)
                try:
                    await self.sync_all_data()
                except SyncInProgressError:
                    logger.warning("Periodic synchronization skipped: a sync is already running")
                except Exception as e:
                    logger.error(f"Periodic synchronization failed: {e}")

        self._periodic_task = asyncio.create_task(_loop())
        return self._periodic_task

    async def stop_periodic(self) -> None:
        if self._periodic_task is None:
            return
        self._periodic_task.cancel()
        try:
            await self._periodic_task
        except asyncio.CancelledError:
            pass
        self._periodic_task = None
        logger.info("Periodic synchronization stopped")
