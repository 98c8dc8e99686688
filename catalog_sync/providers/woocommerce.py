"""
WooCommerce REST API (v3) backend.

Requests are authenticated with OAuth 1.0a parameters in the query string.
Pagination is page-number based: ``page=N&per_page=P``; a short or empty
page is the last one. Environment:

- WOOCOMMERCE_URL              https://your-store.com
- WOOCOMMERCE_CONSUMER_KEY     ck_...
- WOOCOMMERCE_CONSUMER_SECRET  cs_...
- WOOCOMMERCE_API_VERSION      defaults to wc/v3
- WOOCOMMERCE_VERIFY_SSL       "false" disables certificate checks
- WOOCOMMERCE_TIMEOUT          milliseconds, defaults to 30000
"""
import base64
import hashlib
import hmac
import os
import secrets
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qsl, quote, urlparse, urlsplit

import httpx

from catalog_sync.core.errors import ApiError, ConfigError
from catalog_sync.core.rate_limiter import RateLimiter, woocommerce_rate_limiter
from catalog_sync.data.models import CompanyInfo, Product, utcnow
from catalog_sync.mapping.product_mapper import map_woocommerce_product
from catalog_sync.providers.base import CommerceProvider, ProductPage
from catalog_sync.providers.http_client import ExternalCommerceClient
from catalog_sync.utils.logger import get_logger, mask_secret

logger = get_logger("providers.woocommerce")

CONNECTION_TEST_ENDPOINTS = ["/products?per_page=1", "/settings", "/system_status"]


@dataclass
class WooCommerceConfig:
    url: str
    consumer_key: str
    consumer_secret: str
    api_version: str = "wc/v3"
    verify_ssl: bool = True
    timeout_ms: int = 30000

    @classmethod
    def from_env(cls) -> "WooCommerceConfig":
        timeout = os.environ.get("WOOCOMMERCE_TIMEOUT") or "30000"
        try:
            timeout_ms = int(timeout)
        except ValueError:
            raise ConfigError(f"WOOCOMMERCE_TIMEOUT must be an integer (milliseconds), got {timeout!r}")
        return cls(
            url=os.environ.get("WOOCOMMERCE_URL", ""),
            consumer_key=os.environ.get("WOOCOMMERCE_CONSUMER_KEY", ""),
            consumer_secret=os.environ.get("WOOCOMMERCE_CONSUMER_SECRET", ""),
            api_version=os.environ.get("WOOCOMMERCE_API_VERSION") or "wc/v3",
            verify_ssl=os.environ.get("WOOCOMMERCE_VERIFY_SSL") != "false",
            timeout_ms=timeout_ms,
        )

    @property
    def api_url(self) -> str:
        return f"{self.url.rstrip('/')}/wp-json/{self.api_version}"

    def validate(self) -> "WooCommerceConfig":
        logger.debug(
            f"WooCommerce config: url={self.url}, consumer_key={mask_secret(self.consumer_key)}, "
            f"consumer_secret={mask_secret(self.consumer_secret)}, api_version={self.api_version}, "
            f"verify_ssl={self.verify_ssl}, timeout_ms={self.timeout_ms}"
        )
        errors = []
        if not self.url:
            errors.append("WOOCOMMERCE_URL is required")
        if not self.consumer_key:
            errors.append("WOOCOMMERCE_CONSUMER_KEY is required")
        if not self.consumer_secret:
            errors.append("WOOCOMMERCE_CONSUMER_SECRET is required")
        if errors:
            raise ConfigError(f"WooCommerce configuration errors: {', '.join(errors)}")

        parsed = urlparse(self.url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigError("WOOCOMMERCE_URL must be a valid URL (e.g., https://your-store.com)")
        if not self.consumer_key.startswith("ck_"):
            raise ConfigError('WOOCOMMERCE_CONSUMER_KEY must start with "ck_"')
        if not self.consumer_secret.startswith("cs_"):
            raise ConfigError('WOOCOMMERCE_CONSUMER_SECRET must start with "cs_"')
        return self


def _percent_encode(value: str) -> str:
    return quote(str(value), safe="~-._")


def oauth_signature(method: str, base_url: str, params: Dict[str, str], consumer_secret: str) -> str:
    """HMAC-SHA1 OAuth 1.0a signature (one-legged, empty token secret)."""
    normalized = "&".join(
        f"{_percent_encode(k)}={_percent_encode(v)}" for k, v in sorted(params.items())
    )
    base_string = "&".join([method.upper(), _percent_encode(base_url), _percent_encode(normalized)])
    digest = hmac.new(f"{consumer_secret}&".encode(), base_string.encode(), hashlib.sha1).digest()
    return base64.b64encode(digest).decode()


class WooCommerceClient(ExternalCommerceClient):
    provider_label = "WooCommerce"

    def __init__(
        self,
        config: WooCommerceConfig,
        rate_limiter: Optional[RateLimiter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        config.validate()
        super().__init__(
            base_url=config.api_url,
            rate_limiter=rate_limiter or woocommerce_rate_limiter(),
            headers={"User-Agent": "CatalogSync-WooCommerce-Integration/1.0"},
            timeout=config.timeout_ms / 1000.0,
            verify=config.verify_ssl,
            transport=transport,
        )
        self.config = config

    def prepare_request(
        self, method: str, endpoint: str, params: Optional[Dict[str, Any]]
    ) -> Tuple[str, Dict[str, Any]]:
        split = urlsplit(endpoint)
        base_url = f"{self.base_url}{split.path}"

        query: Dict[str, str] = dict(parse_qsl(split.query, keep_blank_values=True))
        for key, value in (params or {}).items():
            query[key] = str(value)

        query.update({
            "oauth_consumer_key": self.config.consumer_key,
            "oauth_nonce": secrets.token_hex(16),
            "oauth_signature_method": "HMAC-SHA1",
            "oauth_timestamp": str(int(time.time())),
            "oauth_version": "1.0",
        })
        query["oauth_signature"] = oauth_signature(method, base_url, query, self.config.consumer_secret)
        return base_url, query


class WooCommerceProvider(CommerceProvider):
    name = "woocommerce"
    sync_kind = "woocommerce"

    def __init__(self, client: WooCommerceClient, page_size: int = 50):
        self.client = client
        self.config = client.config
        self.rate_limiter = client.rate_limiter
        self.page_size = page_size

    @classmethod
    def from_env(cls, page_size: int = 50, **client_kwargs) -> "WooCommerceProvider":
        return cls(WooCommerceClient(WooCommerceConfig.from_env(), **client_kwargs), page_size=page_size)

    async def list_products(self, page: Optional[int] = None) -> ProductPage:
        page_number = page or 1
        data = await self.client.request(f"/products?page={page_number}&per_page={self.page_size}")
        items = data if isinstance(data, list) else []
        logger.info(f"WooCommerce API response for page {page_number}: {len(items)} products")

        # a short page is the last one
        next_page = page_number + 1 if len(items) >= self.page_size else None
        return ProductPage(items=items, next_page=next_page)

    async def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        try:
            data = await self.client.request(f"/products/{product_id}")
        except ApiError as e:
            if e.status == 404:
                return None
            raise
        return data or None

    async def get_store_info(self) -> CompanyInfo:
        # The settings endpoints need elevated permissions; describe the store from configuration.
        return CompanyInfo(
            name="WooCommerce Store",
            description="WooCommerce store connected via API",
            policies=[],
            contact_info={
                "email": "",
                "phone": "",
                "website": self.config.url,
                "address": {
                    "address1": "",
                    "address2": "",
                    "city": "",
                    "province": "",
                    "country": "",
                    "zip": "",
                },
                "currency": "USD",
                "timezone": "UTC",
                "language": "en",
            },
            updated_at=utcnow(),
        )

    def map_product(self, raw: Dict[str, Any]) -> Product:
        return map_woocommerce_product(raw)

    async def list_remote_products(self, limit: int = 50) -> List[Dict[str, Any]]:
        data = await self.client.request(f"/products?per_page={limit}")
        return data if isinstance(data, list) else []

    async def test_connection(self) -> bool:
        for endpoint in CONNECTION_TEST_ENDPOINTS:
            try:
                await self.client.request(endpoint)
            except ApiError:
                logger.debug(f"Endpoint {endpoint} failed, trying next...")
                continue
            logger.info(f"WooCommerce connection test successful via {endpoint}")
            return True

        logger.error("WooCommerce connection test failed: all endpoints failed")
        return False

    async def close(self) -> None:
        await self.client.close()
