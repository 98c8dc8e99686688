"""
Pydantic models for catalog_sync API requests and responses.
"""
from pydantic import BaseModel, ConfigDict, Field, StrictStr
from typing import Optional, Dict, Any, List


class SearchRequest(BaseModel):
    """Request model for semantic product search."""
    query: Optional[str] = Field(default=None, description="Free-text search query")
    limit: int = Field(default=10, ge=1, le=100, description="Maximum number of results")


class DescriptionExtraRequest(BaseModel):
    """Admin-curated text appended to a product's embedding text."""
    model_config = ConfigDict(populate_by_name=True)

    description_extra: StrictStr = Field(alias="descriptionExtra")


MAX_PROMPT_LENGTH = 50000


class PromptRequest(BaseModel):
    """Request model for saving a prompt."""
    content: StrictStr = Field(max_length=MAX_PROMPT_LENGTH, description="Prompt text")


class ImportResponse(BaseModel):
    """Response model for a bulk product import."""
    message: str
    success: int = Field(description="Products imported")
    errors: int = Field(description="Products that failed to import")
    timestamp: str


class SearchResultItem(BaseModel):
    id: str = Field(description="Vector point id")
    productId: str
    score: float
    product: Dict[str, Any]


class SearchResponse(BaseModel):
    query: str
    results: List[SearchResultItem]
    count: int
    timestamp: str


class ErrorResponse(BaseModel):
    """Uniform error envelope."""
    error: str
    message: str
    code: str
    timestamp: str


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str
    service: str
    version: str
    config: Dict[str, Any]
