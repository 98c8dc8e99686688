"""Pytest configuration for catalog_sync tests."""

import asyncio
import hashlib
import re
from typing import Any, Dict, List, Optional

import httpx
import numpy as np
import pytest

from catalog_sync.core.errors import ApiError
from catalog_sync.core.rate_limiter import RateLimiter
from catalog_sync.data.models import CompanyInfo
from catalog_sync.data.storage import CatalogRepository, InMemoryDocumentStore
from catalog_sync.indexing.embeddings import EmbeddingsProvider
from catalog_sync.indexing.indexer import EmbeddingIndexer
from catalog_sync.indexing.vector_index import InMemoryVectorIndex
from catalog_sync.mapping.product_mapper import map_shopify_product
from catalog_sync.providers.base import CommerceProvider, ProductPage


# ---------------------------------------------------------------------------
# Controllable time
# ---------------------------------------------------------------------------

class FakeClock:
    """
    Manually advanced clock. ``sleep`` takes seconds (like asyncio.sleep) and
    advances the clock by ``seconds * units_per_second`` instead of blocking.
    """

    def __init__(self, start: float = 0.0, units_per_second: float = 1.0):
        self.now = start
        self.units_per_second = units_per_second
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, amount: float) -> None:
        self.now += amount

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds * self.units_per_second


@pytest.fixture
def clock():
    """Seconds clock for caches."""
    return FakeClock(start=1_000.0)


@pytest.fixture
def ms_clock():
    """Millisecond clock for rate limiters."""
    return FakeClock(start=1_000_000.0, units_per_second=1000.0)


# ---------------------------------------------------------------------------
# Embeddings, storage and vector index
# ---------------------------------------------------------------------------

class FakeEmbeddings(EmbeddingsProvider):
    """Bag-of-words hashing embedder: texts sharing words get similar vectors."""

    def __init__(self, dimension: int = 32):
        self.model_name = "fake-embeddings"
        self.dimension = dimension
        self.calls: List[List[str]] = []

    def _vector(self, text: str) -> List[float]:
        vector = np.zeros(self.dimension, dtype=np.float32)
        for word in re.findall(r"[a-z0-9]+", text.lower()):
            bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % self.dimension
            vector[bucket] += 1.0
        norm = np.linalg.norm(vector)
        if norm > 0:
            vector /= norm
        return vector.tolist()

    async def embed(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        return [self._vector(t) for t in texts]


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def repository(store):
    return CatalogRepository(store)


@pytest.fixture
def embeddings():
    return FakeEmbeddings()


@pytest.fixture
def vector_index():
    return InMemoryVectorIndex()


@pytest.fixture
def indexer(repository, embeddings, vector_index):
    return EmbeddingIndexer(repository, embeddings, vector_index, collection="products")


# ---------------------------------------------------------------------------
# HTTP backends
# ---------------------------------------------------------------------------

class MockBackend:
    """
    Records requests and answers from a path -> handler table.

    Handlers may be an ``httpx.Response``, a JSON-able object (200), or a
    callable taking the request.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes: Dict[str, Any] = dict(routes or {})
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"errors": "Not Found"})
        if callable(route):
            return route(request)
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]


# ---------------------------------------------------------------------------
# Sample payloads
# ---------------------------------------------------------------------------

def shopify_product(product_id: int, title: str = None, price: Any = "19.99", stock: Any = 5) -> Dict[str, Any]:
    return {
        "id": product_id,
        "title": title or f"Product {product_id}",
        "body_html": f"<p>Description {product_id}</p>",
        "handle": f"product-{product_id}",
        "variants": [{"price": price, "inventory_quantity": stock}],
        "image": {"src": f"https://cdn.shopify.com/{product_id}.jpg"},
    }


def woocommerce_product(product_id: int, name: str = None, price: Any = "25.00", stock: Any = 3) -> Dict[str, Any]:
    return {
        "id": product_id,
        "name": name or f"Woo Product {product_id}",
        "description": f"Woo description {product_id}",
        "short_description": "short",
        "price": price,
        "stock_quantity": stock,
        "images": [{"src": f"https://shop.example.com/img/{product_id}.jpg"}],
        "permalink": f"https://shop.example.com/product/{product_id}",
    }


SHOPIFY_SHOP_URL = "https://test-store.myshopify.com"
SHOPIFY_API_PREFIX = "/admin/api/2024-01"

WOO_URL = "https://shop.example.com"
WOO_API_PREFIX = "/wp-json/wc/v3"


def shopify_env(monkeypatch) -> None:
    monkeypatch.setenv("WEBSHOP_URL", SHOPIFY_SHOP_URL)
    monkeypatch.setenv("API_TOKEN", "shpat_test")
    monkeypatch.delenv("SHOPIFY_API_VERSION", raising=False)


def woocommerce_env(monkeypatch) -> None:
    monkeypatch.setenv("WOOCOMMERCE_URL", WOO_URL)
    monkeypatch.setenv("WOOCOMMERCE_CONSUMER_KEY", "ck_test")
    monkeypatch.setenv("WOOCOMMERCE_CONSUMER_SECRET", "cs_test")
    monkeypatch.delenv("WOOCOMMERCE_API_VERSION", raising=False)
    monkeypatch.delenv("WOOCOMMERCE_TIMEOUT", raising=False)


def query_of(request: httpx.Request) -> Dict[str, str]:
    return dict(request.url.params)


def shopify_link_header(next_query: str) -> str:
    return f'<{SHOPIFY_SHOP_URL}{SHOPIFY_API_PREFIX}/products.json?{next_query}>; rel="next"'


# ---------------------------------------------------------------------------
# In-memory commerce backend
# ---------------------------------------------------------------------------

class FakeProvider(CommerceProvider):
    """
    Serves pre-built pages of raw Shopify-shaped products.

    ``fail_on_page`` (1-based) raises ApiError when that page is requested;
    ``gate`` (an asyncio.Event) blocks ``list_products`` until set.
    """

    def __init__(
        self,
        pages: Optional[List[List[Dict[str, Any]]]] = None,
        name: str = "shopify",
        fail_on_page: Optional[int] = None,
        company: Optional[CompanyInfo] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        self.name = name
        self.sync_kind = name
        self.pages = pages or []
        self.fail_on_page = fail_on_page
        self.company = company
        self.gate = gate
        self.rate_limiter = RateLimiter(40, 1000, name=name)
        self.list_calls = 0
        self.closed = False

    async def list_products(self, page=None):
        self.list_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        number = page or 1
        if self.fail_on_page == number:
            raise ApiError(f"page {number} unavailable", status=503)
        items = self.pages[number - 1] if number <= len(self.pages) else []
        next_page = number + 1 if number < len(self.pages) else None
        return ProductPage(items=list(items), next_page=next_page)

    async def get_product(self, product_id):
        for page in self.pages:
            for raw in page:
                if str(raw.get("id")) == str(product_id):
                    return raw
        return None

    async def get_store_info(self):
        if self.company is None:
            raise ApiError("No shop information found", status=200)
        return self.company

    def map_product(self, raw):
        return map_shopify_product(raw, "test-store.myshopify.com")

    async def list_remote_products(self, limit=50):
        return [raw for page in self.pages for raw in page][:limit]

    async def test_connection(self):
        return True

    async def close(self):
        self.closed = True
