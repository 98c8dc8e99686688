"""
Error taxonomy for catalog_sync.

Every error carries a stable, machine-readable ``code`` so the HTTP layer
and the admin UI can branch on the failure type without parsing messages.
"""
from typing import Any, Optional


class CatalogSyncError(Exception):
    """Base class for all errors raised by this package."""

    code = "CATALOG_SYNC_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ConfigError(CatalogSyncError):
    """Missing or malformed credentials/URLs. Fatal for the affected operation."""

    code = "CONFIG_ERROR"


class ApiError(CatalogSyncError):
    """Non-2xx response from an external commerce backend."""

    code = "API_ERROR"

    def __init__(self, message: str, status: int, body: Any = None, code: Optional[str] = None):
        super().__init__(message, code)
        self.status = status
        self.body = body

    def __str__(self) -> str:
        return f"{self.message} (status={self.status})"


class MappingError(CatalogSyncError):
    """An external product record cannot be converted to the internal model."""

    code = "MAPPING_ERROR"


class VectorIndexError(CatalogSyncError):
    """Vector index create/describe/upsert/query failure."""

    code = "VECTOR_INDEX_ERROR"

    def __init__(self, message: str, details: Any = None, code: Optional[str] = None):
        super().__init__(message, code)
        self.details = details


class SyncInProgressError(CatalogSyncError):
    """A second full sync was requested while one is running."""

    code = "SYNC_IN_PROGRESS"

    def __init__(self, message: str = "Synchronization already in progress"):
        super().__init__(message)
