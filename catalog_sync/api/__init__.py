"""
API module for catalog_sync.

Provides REST API endpoints for the admin UI and the storefront assistant.
"""
from catalog_sync.api.models import (
    DescriptionExtraRequest,
    ErrorResponse,
    HealthResponse,
    ImportResponse,
    PromptRequest,
    SearchRequest,
    SearchResponse,
)

__all__ = [
    "DescriptionExtraRequest",
    "ErrorResponse",
    "HealthResponse",
    "ImportResponse",
    "PromptRequest",
    "SearchRequest",
    "SearchResponse",
]
