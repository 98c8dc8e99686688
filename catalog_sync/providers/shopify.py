"""
Shopify REST Admin API backend.

Pagination is cursor based: the ``Link`` response header carries a
``rel="next"`` URL whose query string becomes the next page's endpoint
suffix. Environment:

- WEBSHOP_URL          https://your-store.myshopify.com
- API_TOKEN            Admin API access token
- SHOPIFY_API_VERSION  defaults to 2024-01
"""
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from catalog_sync.core.errors import ApiError, ConfigError
from catalog_sync.core.rate_limiter import RateLimiter, shopify_rate_limiter
from catalog_sync.data.models import CompanyInfo, Product, utcnow
from catalog_sync.mapping.product_mapper import map_shopify_product
from catalog_sync.providers.base import CommerceProvider, ProductPage
from catalog_sync.providers.http_client import ExternalCommerceClient
from catalog_sync.utils.logger import get_logger, mask_secret

logger = get_logger("providers.shopify")

_NEXT_LINK_RE = re.compile(r'<[^>]*\?([^>]*)>;\s*rel="next"')


def extract_next_page_info(link_header: Optional[str]) -> Optional[str]:
    """Return the query string of the ``rel="next"`` link, or None on the last page."""
    if not link_header:
        return None
    match = _NEXT_LINK_RE.search(link_header)
    if not match:
        return None
    return match.group(1) or None


@dataclass
class ShopifyConfig:
    shop_url: Optional[str]
    access_token: Optional[str]
    api_version: str = "2024-01"

    @classmethod
    def from_env(cls) -> "ShopifyConfig":
        return cls(
            shop_url=os.environ.get("WEBSHOP_URL"),
            access_token=os.environ.get("API_TOKEN"),
            api_version=os.environ.get("SHOPIFY_API_VERSION") or "2024-01",
        )

    @property
    def shop_host(self) -> str:
        return re.sub(r"^https?://", "", self.shop_url or "").rstrip("/")

    @property
    def api_url(self) -> str:
        return f"https://{self.shop_host}/admin/api/{self.api_version}"

    def validate(self) -> "ShopifyConfig":
        logger.debug(
            f"Shopify config: shop_url={self.shop_url}, access_token={mask_secret(self.access_token)}, "
            f"api_version={self.api_version}"
        )
        errors = []
        if not self.shop_url:
            errors.append("WEBSHOP_URL is required")
        if not self.access_token:
            errors.append("API_TOKEN is required")
        if errors:
            raise ConfigError(f"Shopify configuration errors: {', '.join(errors)}")

        if ".myshopify.com" not in self.shop_url:
            raise ConfigError(
                "WEBSHOP_URL must be a valid Shopify store URL (e.g., https://your-store.myshopify.com)"
            )
        return self


class ShopifyClient(ExternalCommerceClient):
    provider_label = "Shopify"

    def __init__(
        self,
        config: ShopifyConfig,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        config.validate()
        super().__init__(
            base_url=config.api_url,
            rate_limiter=rate_limiter or shopify_rate_limiter(),
            headers={"X-Shopify-Access-Token": config.access_token},
            timeout=timeout,
            transport=transport,
        )
        self.config = config


class ShopifyProvider(CommerceProvider):
    """
    Shopify backend.

    Usage:
        provider = ShopifyProvider.from_env()
        page = await provider.list_products()
        while page.next_page:
            page = await provider.list_products(page.next_page)
    """

    name = "shopify"
    sync_kind = "shopify"

    def __init__(self, client: ShopifyClient, page_size: int = 50):
        self.client = client
        self.config = client.config
        self.rate_limiter = client.rate_limiter
        self.page_size = page_size

    @classmethod
    def from_env(cls, page_size: int = 50, **client_kwargs) -> "ShopifyProvider":
        return cls(ShopifyClient(ShopifyConfig.from_env(), **client_kwargs), page_size=page_size)

    async def list_products(self, page: Optional[str] = None) -> ProductPage:
        endpoint = f"/products.json?{page}" if page else f"/products.json?limit={self.page_size}"
        data, headers = await self.client.request_with_headers(endpoint)
        return ProductPage(
            items=data.get("products") or [],
            next_page=extract_next_page_info(headers.get("link")),
        )

    async def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        try:
            data = await self.client.request(f"/products/{product_id}.json")
        except ApiError as e:
            if e.status == 404:
                return None
            raise
        return data.get("product")

    async def get_store_info(self) -> CompanyInfo:
        shop_data = await self.client.request("/shop.json")
        shop = shop_data.get("shop")
        if not shop:
            raise ApiError("No shop information found", status=200, body=shop_data)

        policies_data = await self.client.request("/policies.json")
        policies = [p.get("body", "") for p in policies_data.get("policies") or []]

        return CompanyInfo(
            name=shop.get("name") or "",
            description=shop.get("description") or "",
            policies=policies,
            contact_info={
                "email": shop.get("email"),
                "phone": shop.get("phone"),
                "address": {
                    "address1": shop.get("address1"),
                    "address2": shop.get("address2"),
                    "city": shop.get("city"),
                    "province": shop.get("province"),
                    "country": shop.get("country"),
                    "zip": shop.get("zip"),
                },
            },
            updated_at=utcnow(),
        )

    def map_product(self, raw: Dict[str, Any]) -> Product:
        return map_shopify_product(raw, self.config.shop_host)

    async def list_remote_products(self, limit: int = 50) -> List[Dict[str, Any]]:
        data = await self.client.request(f"/products.json?limit={limit}")
        return data.get("products") or []

    async def test_connection(self) -> bool:
        try:
            data = await self.client.request("/shop.json")
        except ApiError as e:
            logger.error(f"Shopify connection test failed: {e}")
            return False
        shop = data.get("shop") or {}
        logger.info(f"Shopify connection test successful: {shop.get('name')} ({shop.get('domain')})")
        return True

    async def close(self) -> None:
        await self.client.close()
