"""
Commerce backends.

Each backend implements ``CommerceProvider`` and owns its own rate limiter,
auth and pagination.
"""
from catalog_sync.core.config import CatalogSyncConfig
from catalog_sync.core.rate_limiter import shopify_rate_limiter, woocommerce_rate_limiter
from catalog_sync.providers.base import CommerceProvider, ProductPage
from catalog_sync.providers.shopify import ShopifyClient, ShopifyConfig, ShopifyProvider
from catalog_sync.providers.woocommerce import WooCommerceClient, WooCommerceConfig, WooCommerceProvider

PROVIDERS = ("shopify", "woocommerce")


def create_provider(name: str, config: CatalogSyncConfig) -> CommerceProvider:
    """Build a provider from environment credentials; raises ConfigError when they are invalid."""
    if name == "shopify":
        limiter = shopify_rate_limiter(config.shopify_max_requests, config.shopify_window_ms)
        client = ShopifyClient(ShopifyConfig.from_env(), rate_limiter=limiter, timeout=config.http_timeout)
        return ShopifyProvider(client, page_size=config.shopify_page_size)
    if name == "woocommerce":
        limiter = woocommerce_rate_limiter(config.woocommerce_max_requests, config.woocommerce_window_ms)
        client = WooCommerceClient(WooCommerceConfig.from_env(), rate_limiter=limiter)
        return WooCommerceProvider(client, page_size=config.woocommerce_page_size)
    raise ValueError(f"Unknown commerce provider: {name}")


__all__ = [
    "CommerceProvider",
    "ProductPage",
    "ShopifyClient",
    "ShopifyConfig",
    "ShopifyProvider",
    "WooCommerceClient",
    "WooCommerceConfig",
    "WooCommerceProvider",
    "PROVIDERS",
    "create_provider",
]
