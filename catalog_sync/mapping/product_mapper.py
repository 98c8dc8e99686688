"""
Map external commerce product payloads onto the internal ``Product``.

Numeric fields are parsed defensively: a missing, negative or non-finite
price/stock becomes 0 with a warning so one bad field does not sink an
import. A price that is present but not a number at all is rejected with
``MappingError`` instead of being coerced to 0, so the record is counted as
an import error and the rest of the page still imports.

``description_extra`` is never populated here.
"""
import math
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from catalog_sync.core.errors import MappingError
from catalog_sync.data.models import Product
from catalog_sync.utils.logger import get_logger

logger = get_logger("mapping.product_mapper")

SOURCES = ("shopify", "woocommerce")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_price(value: Any, product_id: str = "?") -> float:
    """Parse a price. Missing/negative/non-finite -> 0.0; garbage -> MappingError."""
    if _is_blank(value):
        return 0.0
    if isinstance(value, bool):
        raise MappingError(f"Invalid price for product {product_id}: {value!r}")
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise MappingError(f"Invalid price for product {product_id}: {value!r}")

    if not math.isfinite(price) or price < 0:
        logger.warning(f"Invalid price for product {product_id}: {value!r}, using 0")
        return 0.0
    return price


def parse_stock(value: Any, product_id: str = "?") -> int:
    """Parse a stock quantity. Anything unusable -> 0 with a warning."""
    if _is_blank(value):
        return 0
    try:
        if isinstance(value, bool):
            raise ValueError("boolean stock")
        if isinstance(value, int):
            stock = value
        else:
            number = float(value)
            if not math.isfinite(number):
                raise ValueError("non-finite stock")
            stock = int(number)
    except (TypeError, ValueError):
        logger.warning(f"Invalid stock for product {product_id}: {value!r}, using 0")
        return 0

    if stock < 0:
        logger.warning(f"Invalid stock for product {product_id}: {value!r}, using 0")
        return 0
    return stock


def is_valid_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_image_url(url: Any, product_id: str = "?") -> str:
    """Return ``url`` if it is an absolute http(s) URL, else ''."""
    if _is_blank(url):
        return ""
    url = str(url).strip()
    if not is_valid_url(url):
        logger.warning(f"Invalid image URL for product {product_id}: {url}")
        return ""
    return url


def _require_identity(raw: Dict[str, Any], name_field: str, source: str) -> tuple:
    if not isinstance(raw, dict):
        raise MappingError(f"{source} product payload must be an object, got {type(raw).__name__}")
    raw_id = raw.get("id")
    if _is_blank(raw_id):
        raise MappingError(f"{source} product is missing its id")
    product_id = str(raw_id)
    name = raw.get(name_field)
    if _is_blank(name):
        raise MappingError(f"{source} product {product_id} is missing its name")
    return product_id, str(name)


def map_shopify_product(raw: Dict[str, Any], shop_host: Optional[str] = None) -> Product:
    product_id, name = _require_identity(raw, "title", "Shopify")

    variants = raw.get("variants") or []
    first_variant = variants[0] if variants and isinstance(variants[0], dict) else {}
    image = raw.get("image") or {}

    handle = raw.get("handle")
    product_url = f"https://{shop_host}/products/{handle}" if shop_host and handle else ""

    return Product(
        id=product_id,
        name=name,
        description=raw.get("body_html") or "",
        price=parse_price(first_variant.get("price"), product_id),
        stock=parse_stock(first_variant.get("inventory_quantity"), product_id),
        image_url=validate_image_url(image.get("src") if isinstance(image, dict) else None, product_id),
        product_url=product_url,
    )


def map_woocommerce_product(raw: Dict[str, Any]) -> Product:
    product_id, name = _require_identity(raw, "name", "WooCommerce")

    images = raw.get("images") or []
    first_image = images[0] if images and isinstance(images[0], dict) else {}

    permalink = raw.get("permalink") or ""
    if permalink and not is_valid_url(permalink):
        logger.warning(f"Invalid product URL for product {product_id}: {permalink}")
        permalink = ""

    # short_description is intentionally not mapped into description_extra
    return Product(
        id=product_id,
        name=name,
        description=raw.get("description") or "",
        price=parse_price(raw.get("price"), product_id),
        stock=parse_stock(raw.get("stock_quantity"), product_id),
        image_url=validate_image_url(first_image.get("src"), product_id),
        product_url=permalink,
    )


def map_external_to_internal(raw: Dict[str, Any], source: str, store_host: Optional[str] = None) -> Product:
    """Dispatch on ``source`` ("shopify" or "woocommerce")."""
    if source == "shopify":
        return map_shopify_product(raw, store_host)
    if source == "woocommerce":
        return map_woocommerce_product(raw)
    raise MappingError(f"Unknown product source: {source}")
