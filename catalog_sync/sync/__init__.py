"""
Catalog synchronization: provider imports, the combined sync guard and the
company info cache.
"""
from catalog_sync.sync.company import CompanyInfoService
from catalog_sync.sync.orchestrator import ImportResult, SyncCoordinator, SyncOrchestrator, SyncStatus

__all__ = [
    "CompanyInfoService",
    "ImportResult",
    "SyncCoordinator",
    "SyncOrchestrator",
    "SyncStatus",
]
