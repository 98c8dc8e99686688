"""
Tests for the Shopify backend: config validation, Link-header pagination,
store info and error handling. HTTP is served by httpx.MockTransport.
"""

import httpx
import pytest

from catalog_sync.core.errors import ApiError, ConfigError
from catalog_sync.core.rate_limiter import RateLimiter
from catalog_sync.providers.shopify import ShopifyClient, ShopifyConfig, ShopifyProvider, extract_next_page_info
from conftest import (
    SHOPIFY_API_PREFIX,
    SHOPIFY_SHOP_URL,
    MockBackend,
    shopify_env,
    shopify_link_header,
    shopify_product,
)

PRODUCTS_PATH = f"{SHOPIFY_API_PREFIX}/products.json"


def make_provider(backend: MockBackend, page_size: int = 2) -> ShopifyProvider:
    client = ShopifyClient(
        ShopifyConfig(SHOPIFY_SHOP_URL, "shpat_test"),
        rate_limiter=RateLimiter(100, 1000, name="shopify"),
        transport=backend.transport,
    )
    return ShopifyProvider(client, page_size=page_size)


class TestShopifyConfig:
    def test_from_env(self, monkeypatch):
        shopify_env(monkeypatch)
        config = ShopifyConfig.from_env().validate()
        assert config.shop_host == "test-store.myshopify.com"
        assert config.api_url == "https://test-store.myshopify.com/admin/api/2024-01"

    def test_missing_credentials(self):
        with pytest.raises(ConfigError) as exc:
            ShopifyConfig(None, None).validate()
        assert "WEBSHOP_URL" in str(exc.value)
        assert "API_TOKEN" in str(exc.value)

    def test_rejects_non_shopify_host(self):
        with pytest.raises(ConfigError):
            ShopifyConfig("https://example.com", "token").validate()

    def test_client_validates_on_construction(self):
        with pytest.raises(ConfigError):
            ShopifyClient(ShopifyConfig("https://example.com", "token"))


class TestLinkHeader:
    def test_next_link(self):
        assert extract_next_page_info(shopify_link_header("limit=2&page_info=abc")) == "limit=2&page_info=abc"

    def test_previous_and_next(self):
        header = (
            '<https://s.myshopify.com/admin/api/2024-01/products.json?page_info=prev>; rel="previous", '
            '<https://s.myshopify.com/admin/api/2024-01/products.json?page_info=next>; rel="next"'
        )
        assert extract_next_page_info(header) == "page_info=next"

    def test_last_page(self):
        assert extract_next_page_info(None) is None
        assert extract_next_page_info('<https://s.myshopify.com/products.json?page_info=p>; rel="previous"') is None


class TestListProducts:
    @pytest.mark.asyncio
    async def test_follows_cursor_pagination(self):
        def products(request: httpx.Request) -> httpx.Response:
            if request.url.params.get("page_info") == "abc":
                return httpx.Response(200, json={"products": [shopify_product(3)]})
            return httpx.Response(
                200,
                json={"products": [shopify_product(1), shopify_product(2)]},
                headers={"Link": shopify_link_header("limit=2&page_info=abc")},
            )

        backend = MockBackend({PRODUCTS_PATH: products})
        provider = make_provider(backend)

        first = await provider.list_products()
        second = await provider.list_products(first.next_page)

        assert [p["id"] for p in first.items] == [1, 2]
        assert first.next_page == "limit=2&page_info=abc"
        assert [p["id"] for p in second.items] == [3]
        assert second.next_page is None
        assert backend.requests[0].url.params["limit"] == "2"
        assert backend.requests[1].url.params["page_info"] == "abc"

    @pytest.mark.asyncio
    async def test_sends_access_token_and_counts_requests(self):
        backend = MockBackend({PRODUCTS_PATH: {"products": []}})
        provider = make_provider(backend)

        await provider.list_products()

        assert backend.requests[0].headers["X-Shopify-Access-Token"] == "shpat_test"
        assert provider.rate_limiter.request_count == 1


class TestGetProduct:
    @pytest.mark.asyncio
    async def test_found(self):
        backend = MockBackend({f"{SHOPIFY_API_PREFIX}/products/5.json": {"product": shopify_product(5)}})
        raw = await make_provider(backend).get_product("5")
        assert raw["id"] == 5

    @pytest.mark.asyncio
    async def test_not_found_returns_none(self):
        backend = MockBackend()
        assert await make_provider(backend).get_product("404") is None

    @pytest.mark.asyncio
    async def test_server_error_raises_api_error(self):
        backend = MockBackend({
            f"{SHOPIFY_API_PREFIX}/products/5.json": httpx.Response(500, json={"errors": "boom"}),
        })
        with pytest.raises(ApiError) as exc:
            await make_provider(backend).get_product("5")
        assert exc.value.status == 500
        assert exc.value.body == {"errors": "boom"}

    @pytest.mark.asyncio
    async def test_transport_failure_is_wrapped(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend = MockBackend({f"{SHOPIFY_API_PREFIX}/products/5.json": refuse})
        with pytest.raises(ApiError) as exc:
            await make_provider(backend).get_product("5")
        assert exc.value.status == 0


class TestStoreInfo:
    @pytest.mark.asyncio
    async def test_maps_shop_and_policies(self):
        backend = MockBackend({
            f"{SHOPIFY_API_PREFIX}/shop.json": {
                "shop": {"name": "Test Store", "email": "hi@test.com", "phone": "123", "city": "Oslo"},
            },
            f"{SHOPIFY_API_PREFIX}/policies.json": {
                "policies": [{"title": "Refunds", "body": "30 days"}, {"title": "Privacy", "body": "We care"}],
            },
        })

        company = await make_provider(backend).get_store_info()

        assert company.name == "Test Store"
        assert company.policies == ["30 days", "We care"]
        assert company.contact_info["email"] == "hi@test.com"
        assert company.contact_info["address"]["city"] == "Oslo"

    @pytest.mark.asyncio
    async def test_missing_shop_raises(self):
        backend = MockBackend({f"{SHOPIFY_API_PREFIX}/shop.json": {}})
        with pytest.raises(ApiError):
            await make_provider(backend).get_store_info()


class TestConnection:
    @pytest.mark.asyncio
    async def test_success(self):
        backend = MockBackend({f"{SHOPIFY_API_PREFIX}/shop.json": {"shop": {"name": "S", "domain": "s.com"}}})
        assert await make_provider(backend).test_connection() is True

    @pytest.mark.asyncio
    async def test_unauthorized(self):
        backend = MockBackend({f"{SHOPIFY_API_PREFIX}/shop.json": httpx.Response(401, text="Unauthorized")})
        assert await make_provider(backend).test_connection() is False

    @pytest.mark.asyncio
    async def test_remote_products_and_mapping(self):
        backend = MockBackend({PRODUCTS_PATH: {"products": [shopify_product(1)]}})
        provider = make_provider(backend)

        raw = await provider.list_remote_products(limit=10)
        product = provider.map_product(raw[0])

        assert backend.requests[0].url.params["limit"] == "10"
        assert product.product_url == "https://test-store.myshopify.com/products/product-1"
