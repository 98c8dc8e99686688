"""
FastAPI server for catalog_sync.

Provides REST endpoints for product import, vector indexing, search,
company info and prompt management.

Usage:
    python -m catalog_sync.api.server
    # or
    uvicorn catalog_sync.api.server:app --reload --port 8000
"""
import os

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dotenv import load_dotenv
load_dotenv()

from catalog_sync import __version__
from catalog_sync.api.models import (
    DescriptionExtraRequest,
    ErrorResponse,
    HealthResponse,
    ImportResponse,
    PromptRequest,
    SearchRequest,
    SearchResponse,
)
from catalog_sync.api.services import CatalogServices, get_services
from catalog_sync.core.errors import CatalogSyncError, SyncInProgressError, VectorIndexError
from catalog_sync.data.models import utcnow
from catalog_sync.providers import PROVIDERS
from catalog_sync.utils.logger import get_logger, mask_secret

logger = get_logger("api.server")

PROVIDER_LABELS = {"shopify": "Shopify", "woocommerce": "WooCommerce"}


def _timestamp() -> str:
    return utcnow().isoformat()


def error_response(status_code: int, error: str, message: str, code: str) -> JSONResponse:
    """Build the uniform ``{error, message, code, timestamp}`` envelope."""
    body = ErrorResponse(error=error, message=message, code=code, timestamp=_timestamp())
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _failure(e: Exception, error: str, code: str, status_code: int = 500) -> JSONResponse:
    if isinstance(e, VectorIndexError) and e.details is not None:
        logger.error(f"{error}: {e} (details={e.details})")
    else:
        logger.error(f"{error}: {e}")
    return error_response(status_code, error, str(e), code)


# Initialize FastAPI app
app = FastAPI(
    title="Catalog Sync API",
    description="Commerce catalog import, vector indexing and semantic search",
    version=__version__,
)

# Enable CORS for the admin frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    return error_response(400, "Invalid request", problems, "VALIDATION_ERROR")


@app.exception_handler(CatalogSyncError)
async def catalog_sync_exception_handler(request: Request, exc: CatalogSyncError):
    status_code = 409 if isinstance(exc, SyncInProgressError) else 500
    logger.error(f"Unhandled {exc.code} on {request.url.path}: {exc}")
    return error_response(status_code, "Request failed", str(exc), exc.code)


@app.on_event("startup")
async def startup_event():
    services = get_services()
    interval = services.config.sync_interval_minutes
    if interval and interval > 0:
        try:
            services.coordinator.run_periodic(interval)
        except CatalogSyncError as e:
            logger.error(f"Periodic sync not started: {e}")


@app.on_event("shutdown")
async def shutdown_event():
    await get_services().close()


@app.get("/health", response_model=HealthResponse)
async def health(services: CatalogServices = Depends(get_services)):
    config = services.config
    return HealthResponse(
        status="healthy",
        service="catalog-sync",
        version=__version__,
        config={
            "storage": config.storage_backend,
            "vectorIndex": config.vector_backend,
            "embeddings": f"{config.embeddings_backend}:{config.embedding_model}",
            "primaryProvider": config.primary_provider,
            "shopifyToken": mask_secret(os.getenv("API_TOKEN")),
            "woocommerceKey": mask_secret(os.getenv("WOOCOMMERCE_CONSUMER_KEY")),
            "openaiKey": mask_secret(os.getenv("OPENAI_API_KEY")),
        },
    )


# ---------------------------------------------------------------------------
# Commerce providers
# ---------------------------------------------------------------------------

def create_provider_router(name: str) -> APIRouter:
    """Import/inspection routes for one commerce backend, mounted at ``/{name}``."""
    label = PROVIDER_LABELS[name]
    code_prefix = name.upper()
    router = APIRouter(prefix=f"/{name}", tags=[label])

    @router.post("/import-products", response_model=ImportResponse)
    async def import_products(services: CatalogServices = Depends(get_services)):
        try:
            result = await services.orchestrator(name).import_all()
        except Exception as e:
            return _failure(e, f"Failed to import products from {label}", f"{code_prefix}_PRODUCT_IMPORT_ERROR")
        return {
            "message": f"Products imported from {label}",
            **result.to_dict(),
            "timestamp": _timestamp(),
        }

    @router.post("/import-company")
    async def import_company(services: CatalogServices = Depends(get_services)):
        try:
            company = await services.orchestrator(name).import_company_info()
        except Exception as e:
            return _failure(e, f"Failed to import company info from {label}", f"{code_prefix}_COMPANY_IMPORT_ERROR")
        return {
            "message": f"Company information imported from {label}",
            "company": company.to_dict(),
            "timestamp": _timestamp(),
        }

    @router.put("/update-product/{product_id}")
    async def update_product(product_id: str, services: CatalogServices = Depends(get_services)):
        try:
            product = await services.orchestrator(name).import_one(product_id)
        except Exception as e:
            return _failure(e, f"Failed to update product from {label}", f"{code_prefix}_PRODUCT_UPDATE_ERROR")
        if product is None:
            return error_response(
                404, "Product not found", f"Product {product_id} not found in {label}", f"{code_prefix}_PRODUCT_NOT_FOUND"
            )
        return {
            "message": "Product updated successfully",
            "product": product.to_dict(),
            "timestamp": _timestamp(),
        }

    @router.get("/products")
    async def list_products(services: CatalogServices = Depends(get_services)):
        try:
            products = await services.repository.get_all_products()
        except Exception as e:
            return _failure(e, "Failed to fetch products", f"{code_prefix}_PRODUCTS_FETCH_ERROR")
        return {
            "products": [p.to_dict() for p in products],
            "count": len(products),
            "timestamp": _timestamp(),
        }

    @router.get("/company")
    async def get_company(services: CatalogServices = Depends(get_services)):
        return await _company_response(services)

    @router.get("/store")
    async def get_store(services: CatalogServices = Depends(get_services)):
        try:
            store = await services.provider(name).get_store_info()
        except Exception as e:
            return _failure(e, f"Failed to fetch {label} store info", f"{code_prefix}_STORE_INFO_ERROR")
        return {"store": store.to_dict(), "timestamp": _timestamp()}

    @router.get("/test")
    async def test_connection(services: CatalogServices = Depends(get_services)):
        try:
            connected = await services.provider(name).test_connection()
        except Exception as e:
            return _failure(e, f"{label} connection test failed", f"{code_prefix}_CONNECTION_ERROR")
        if not connected:
            return error_response(
                503, f"{label} connection test failed", f"Could not reach the {label} API", f"{code_prefix}_CONNECTION_ERROR"
            )
        return {"message": f"{label} connection successful", "connected": True, "timestamp": _timestamp()}

    @router.get("/remote-products")
    async def remote_products(limit: int = 50, services: CatalogServices = Depends(get_services)):
        try:
            products = await services.provider(name).list_remote_products(limit)
        except Exception as e:
            return _failure(e, f"Failed to fetch {label} products", f"{code_prefix}_REMOTE_PRODUCTS_ERROR")
        return {"products": products, "count": len(products), "timestamp": _timestamp()}

    @router.get("/rate-limit-status")
    async def rate_limit_status(services: CatalogServices = Depends(get_services)):
        try:
            status = services.provider(name).rate_limiter.status()
        except Exception as e:
            return _failure(e, f"Failed to read {label} rate limit status", f"{code_prefix}_RATE_LIMIT_STATUS_ERROR")
        return {**status, "timestamp": _timestamp()}

    return router


async def _company_response(services: CatalogServices):
    try:
        company = await services.company.get_cached()
    except Exception as e:
        return _failure(e, "Failed to fetch company info", "COMPANY_FETCH_ERROR")
    if company is None:
        return error_response(404, "Company info not found", "No company information has been imported", "COMPANY_NOT_FOUND")
    return {"company": company.to_dict(), "timestamp": _timestamp()}


for _provider_name in PROVIDERS:
    app.include_router(create_provider_router(_provider_name))


# ---------------------------------------------------------------------------
# Products and vector index
# ---------------------------------------------------------------------------

@app.post("/products/sync-to-qdrant")
async def sync_to_qdrant(services: CatalogServices = Depends(get_services)):
    try:
        result = await services.indexer.sync_all()
    except Exception as e:
        return _failure(e, "Failed to sync products to vector index", "SYNC_TO_QDRANT_ERROR")
    return {
        "message": "Products synced to vector index",
        **result,
        "timestamp": _timestamp(),
    }


@app.post("/products/search", response_model=SearchResponse)
async def search_products(request: SearchRequest, services: CatalogServices = Depends(get_services)):
    if not request.query or not request.query.strip():
        return error_response(400, "Query is required", "Provide a non-empty 'query'", "QUERY_REQUIRED")
    try:
        results = await services.indexer.search(request.query, limit=request.limit)
    except Exception as e:
        return _failure(e, "Failed to search products", "QDRANT_SEARCH_ERROR")
    return {
        "query": request.query,
        "results": [r.to_dict() for r in results],
        "count": len(results),
        "timestamp": _timestamp(),
    }


@app.get("/products/qdrant/stats")
async def qdrant_stats(services: CatalogServices = Depends(get_services)):
    try:
        stats = await services.indexer.stats()
    except Exception as e:
        return _failure(e, "Failed to get vector index stats", "QDRANT_STATS_ERROR")
    return {
        "collection": services.config.vector_collection,
        **stats.to_dict(),
        "timestamp": _timestamp(),
    }


@app.get("/products/sync/stats")
async def sync_stats(services: CatalogServices = Depends(get_services)):
    try:
        stats = await services.repository.get_sync_stats()
    except Exception as e:
        return _failure(e, "Failed to get sync stats", "SYNC_STATS_ERROR")
    return {**stats, "timestamp": _timestamp()}


@app.post("/products/{product_id}/sync-to-qdrant")
async def sync_product_to_qdrant(product_id: str, services: CatalogServices = Depends(get_services)):
    try:
        synced = await services.indexer.sync_one(product_id)
    except Exception as e:
        return _failure(e, "Failed to sync product to vector index", "SYNC_SINGLE_PRODUCT_ERROR")
    if not synced:
        return error_response(404, "Product not found", f"Product {product_id} not found", "PRODUCT_NOT_FOUND")
    return {
        "message": f"Product {product_id} synced to vector index",
        "productId": product_id,
        "timestamp": _timestamp(),
    }


@app.put("/products/{product_id}/description-extra")
async def update_description_extra(
    product_id: str,
    request: DescriptionExtraRequest,
    services: CatalogServices = Depends(get_services),
):
    try:
        await services.repository.update_description_extra(product_id, request.description_extra)
    except KeyError:
        return error_response(404, "Product not found", f"Product {product_id} not found", "PRODUCT_NOT_FOUND")
    except Exception as e:
        return _failure(e, "Failed to update descriptionExtra", "DESCRIPTION_EXTRA_UPDATE_ERROR")
    return {
        "message": "descriptionExtra updated",
        "productId": product_id,
        "descriptionExtra": request.description_extra,
        "timestamp": _timestamp(),
    }


# ---------------------------------------------------------------------------
# Combined sync and company info
# ---------------------------------------------------------------------------

@app.post("/sync/all")
async def sync_all(services: CatalogServices = Depends(get_services)):
    try:
        status = await services.coordinator.sync_all_data()
    except SyncInProgressError as e:
        return error_response(409, "Synchronization already in progress", e.message, e.code)
    except Exception as e:
        return _failure(e, "Failed to synchronize data", "SYNC_ALL_ERROR")
    return {
        "message": "Data synchronization completed",
        "status": status.to_dict(),
        "timestamp": _timestamp(),
    }


@app.get("/sync/status")
async def sync_status(services: CatalogServices = Depends(get_services)):
    try:
        status = services.coordinator.status()
    except Exception as e:
        return _failure(e, "Failed to get sync status", "SYNC_STATUS_ERROR")
    return {"status": status.to_dict(), "timestamp": _timestamp()}


@app.post("/sync/status/reset")
async def reset_sync_status(services: CatalogServices = Depends(get_services)):
    try:
        services.coordinator.reset_status()
    except SyncInProgressError as e:
        return error_response(409, "Synchronization already in progress", e.message, e.code)
    except Exception as e:
        return _failure(e, "Failed to reset sync status", "SYNC_STATUS_ERROR")
    return {"message": "Synchronization status reset", "timestamp": _timestamp()}


@app.get("/company")
async def get_company(services: CatalogServices = Depends(get_services)):
    return await _company_response(services)


@app.post("/company/import")
async def import_company(services: CatalogServices = Depends(get_services)):
    provider_name = services.config.primary_provider
    try:
        company = await services.orchestrator(provider_name).import_company_info()
    except Exception as e:
        return _failure(e, "Failed to import company info", "COMPANY_IMPORT_ERROR")
    return {
        "message": f"Company information imported from {PROVIDER_LABELS.get(provider_name, provider_name)}",
        "company": company.to_dict(),
        "timestamp": _timestamp(),
    }


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

@app.get("/prompts")
async def list_prompts(services: CatalogServices = Depends(get_services)):
    try:
        names = await services.prompts.list_prompts()
    except Exception as e:
        return _failure(e, "Failed to list prompts", "PROMPT_LIST_ERROR")
    return {"prompts": names, "count": len(names), "timestamp": _timestamp()}


@app.post("/prompts/cache/clear")
async def clear_prompt_cache(services: CatalogServices = Depends(get_services)):
    services.prompts.clear_cache()
    return {"message": "Prompt cache cleared", "timestamp": _timestamp()}


@app.get("/prompts/cache/stats")
async def prompt_cache_stats(services: CatalogServices = Depends(get_services)):
    return {**services.prompts.cache_stats(), "timestamp": _timestamp()}


@app.get("/prompts/{name}")
async def get_prompt(name: str, services: CatalogServices = Depends(get_services)):
    try:
        content = await services.prompts.load_prompt(name)
    except ValueError as e:
        return error_response(400, "Invalid prompt name", str(e), "INVALID_PROMPT_NAME")
    except FileNotFoundError:
        return error_response(404, "Prompt not found", f"Prompt {name} not found", "PROMPT_NOT_FOUND")
    except Exception as e:
        return _failure(e, "Failed to load prompt", "PROMPT_LOAD_ERROR")
    return {"name": name, "content": content, "timestamp": _timestamp()}


@app.put("/prompts/{name}")
async def save_prompt(name: str, request: PromptRequest, services: CatalogServices = Depends(get_services)):
    try:
        await services.prompts.save_prompt(name, request.content)
    except ValueError as e:
        return error_response(400, "Invalid prompt name", str(e), "INVALID_PROMPT_NAME")
    except Exception as e:
        return _failure(e, "Failed to save prompt", "PROMPT_SAVE_ERROR")
    return {"message": f"Prompt {name} saved", "name": name, "timestamp": _timestamp()}


@app.delete("/prompts/{name}")
async def delete_prompt(name: str, services: CatalogServices = Depends(get_services)):
    try:
        await services.prompts.delete_prompt(name)
    except ValueError as e:
        return error_response(400, "Invalid prompt name", str(e), "INVALID_PROMPT_NAME")
    except Exception as e:
        return _failure(e, "Failed to delete prompt", "PROMPT_DELETE_ERROR")
    return {"message": f"Prompt {name} deleted", "name": name, "timestamp": _timestamp()}


@app.post("/prompts/{name}/sync")
async def sync_prompt_from_file(name: str, services: CatalogServices = Depends(get_services)):
    try:
        await services.prompts.sync_file_to_store(name)
    except ValueError as e:
        return error_response(400, "Invalid prompt name", str(e), "INVALID_PROMPT_NAME")
    except FileNotFoundError:
        return error_response(404, "Prompt not found", f"No prompt file for {name}", "PROMPT_NOT_FOUND")
    except Exception as e:
        return _failure(e, "Failed to sync prompt", "PROMPT_SYNC_ERROR")
    return {"message": f"Prompt {name} synced from file", "name": name, "timestamp": _timestamp()}


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    logger.info(f"Starting Catalog Sync API on port {port}")
    uvicorn.run(app, host="0.0.0.0", port=port)
