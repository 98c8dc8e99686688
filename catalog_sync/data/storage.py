"""
Document storage for catalog data.

``DocumentStore`` is the strongly-consistent single-document contract the
sync layer relies on (no transactions). Two backends:

- InMemoryDocumentStore: process-local dicts (tests, local dev)
- SupabaseDocumentStore: Supabase REST API, one table per collection with
  columns ``id text primary key`` and ``data jsonb``

``CatalogRepository`` layers typed helpers for products, company info,
sync metadata and prompts on top of either backend.
"""
import asyncio
import copy
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from catalog_sync.core.errors import ConfigError
from catalog_sync.data.models import (
    COMPANY_INFO_ID,
    SYNC_FIELDS,
    SYNC_METADATA_ID,
    CompanyInfo,
    Product,
    SyncMetadata,
    utcnow,
)
from catalog_sync.utils.logger import get_logger

logger = get_logger("data.storage")

COLLECTIONS = {
    "PRODUCTS": "products",
    "COMPANY_INFO": "company_info",
    "SYNC_METADATA": "sync_metadata",
    "PROMPTS": "prompts",
}


class DocumentStore(ABC):
    """Async document store keyed by (collection, id)."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get_all(self, collection: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def create_or_replace(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Merge ``fields`` into an existing document. Raises KeyError if absent."""
        ...

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        ...

    async def close(self) -> None:
        return None


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store. Returns copies so callers cannot mutate stored state."""

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(name, {})

    async def get(self, collection, doc_id):
        doc = self._collection(collection).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def get_all(self, collection):
        return [copy.deepcopy(doc) for doc in self._collection(collection).values()]

    async def create_or_replace(self, collection, doc_id, data):
        self._collection(collection)[doc_id] = copy.deepcopy(data)

    async def update(self, collection, doc_id, fields):
        docs = self._collection(collection)
        if doc_id not in docs:
            raise KeyError(f"{collection}/{doc_id} not found")
        docs[doc_id].update(copy.deepcopy(fields))

    async def delete(self, collection, doc_id):
        self._collection(collection).pop(doc_id, None)


class SupabaseDocumentStore(DocumentStore):
    """
    Supabase REST API backend.

    Each collection maps to a table ``{table_prefix}{collection}`` with an
    ``id`` text primary key and a ``data`` jsonb column.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        table_prefix: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url or os.environ.get("SUPABASE_URL")
        self.key = key or os.environ.get("SUPABASE_KEY")

        if not self.url or not self.key:
            raise ConfigError("SUPABASE_URL and SUPABASE_KEY are required for the supabase storage backend")

        self.table_prefix = table_prefix
        self.headers = {
            "apikey": self.key,
            "Authorization": f"Bearer {self.key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        self.client = httpx.AsyncClient(
            base_url=self.url, headers=self.headers, timeout=timeout, transport=transport
        )

    def _path(self, collection: str) -> str:
        return f"/rest/v1/{self.table_prefix}{collection}"

    async def get(self, collection, doc_id):
        response = await self.client.get(
            self._path(collection),
            params={"select": "data", "id": f"eq.{doc_id}", "limit": "1"},
        )
        response.raise_for_status()
        rows = response.json()
        return rows[0]["data"] if rows else None

    async def get_all(self, collection):
        response = await self.client.get(self._path(collection), params={"select": "data"})
        response.raise_for_status()
        return [row["data"] for row in response.json()]

    async def create_or_replace(self, collection, doc_id, data):
        response = await self.client.post(
            self._path(collection),
            json={"id": doc_id, "data": data},
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )
        response.raise_for_status()

    async def update(self, collection, doc_id, fields):
        existing = await self.get(collection, doc_id)
        if existing is None:
            raise KeyError(f"{collection}/{doc_id} not found")
        existing.update(fields)
        response = await self.client.patch(
            self._path(collection),
            params={"id": f"eq.{doc_id}"},
            json={"data": existing},
        )
        response.raise_for_status()

    async def delete(self, collection, doc_id):
        response = await self.client.delete(self._path(collection), params={"id": f"eq.{doc_id}"})
        response.raise_for_status()

    async def close(self):
        await self.client.aclose()


class CatalogRepository:
    """Typed access to the catalog collections."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self._metadata_lock = asyncio.Lock()

    # Products

    async def get_product(self, product_id: str) -> Optional[Product]:
        data = await self.store.get(COLLECTIONS["PRODUCTS"], product_id)
        return Product.from_dict(data) if data else None

    async def get_all_products(self) -> List[Product]:
        docs = await self.store.get_all(COLLECTIONS["PRODUCTS"])
        return [Product.from_dict(doc) for doc in docs]

    async def save_imported_product(self, product: Product) -> None:
        """
        Write an imported product, merging over any existing document.

        Only mapped fields are overwritten; descriptionExtra and other
        admin/indexer fields of an existing document survive the re-import.
        """
        existing = await self.store.get(COLLECTIONS["PRODUCTS"], product.id)
        now = utcnow().isoformat()
        if existing:
            document = {**existing, **product.import_fields(), "updatedAt": now}
        else:
            document = {**product.to_dict(), "createdAt": now, "updatedAt": now}
            document["descriptionExtra"] = ""
        await self.store.create_or_replace(COLLECTIONS["PRODUCTS"], product.id, document)

    async def update_description_extra(self, product_id: str, description_extra: str) -> None:
        await self.store.update(
            COLLECTIONS["PRODUCTS"],
            product_id,
            {"descriptionExtra": description_extra, "updatedAt": utcnow().isoformat()},
        )

    async def delete_product(self, product_id: str) -> None:
        await self.store.delete(COLLECTIONS["PRODUCTS"], product_id)

    # Company info

    async def get_company_info(self) -> Optional[CompanyInfo]:
        data = await self.store.get(COLLECTIONS["COMPANY_INFO"], COMPANY_INFO_ID)
        return CompanyInfo.from_dict(data) if data else None

    async def save_company_info(self, company: CompanyInfo) -> None:
        await self.store.create_or_replace(COLLECTIONS["COMPANY_INFO"], company.id, company.to_dict())

    # Sync metadata

    async def get_sync_metadata(self) -> SyncMetadata:
        data = await self.store.get(COLLECTIONS["SYNC_METADATA"], SYNC_METADATA_ID)
        return SyncMetadata.from_dict(data or {})

    async def mark_synced(self, kind: str) -> SyncMetadata:
        """Stamp ``kind`` ("shopify", "woocommerce", "qdrant") as synced now."""
        if kind not in SYNC_FIELDS:
            raise ValueError(f"Unknown sync kind: {kind}")

        async with self._metadata_lock:
            now = utcnow().isoformat()
            existing = await self.store.get(COLLECTIONS["SYNC_METADATA"], SYNC_METADATA_ID) or {}
            existing.update({SYNC_FIELDS[kind]: now, "updatedAt": now})
            await self.store.create_or_replace(COLLECTIONS["SYNC_METADATA"], SYNC_METADATA_ID, existing)

        logger.info(f"Sync metadata updated: {kind}")
        return SyncMetadata.from_dict(existing)

    async def get_sync_stats(self) -> Dict[str, Any]:
        """Product count plus the last sync timestamps."""
        products = await self.store.get_all(COLLECTIONS["PRODUCTS"])
        metadata = await self.get_sync_metadata()
        return {"totalProducts": len(products), **metadata.to_dict()}

    # Prompts

    async def get_prompt(self, name: str) -> Optional[str]:
        data = await self.store.get(COLLECTIONS["PROMPTS"], name)
        if data and isinstance(data.get("content"), str):
            return data["content"]
        return None

    async def save_prompt(self, name: str, content: str) -> None:
        now = utcnow()
        await self.store.create_or_replace(
            COLLECTIONS["PROMPTS"],
            name,
            {
                "name": name,
                "content": content,
                "updatedAt": now.isoformat(),
                "version": int(now.timestamp() * 1000),
            },
        )

    async def delete_prompt(self, name: str) -> None:
        await self.store.delete(COLLECTIONS["PROMPTS"], name)

    async def list_prompts(self) -> List[str]:
        docs = await self.store.get_all(COLLECTIONS["PROMPTS"])
        return sorted(doc["name"] for doc in docs if doc.get("name"))
