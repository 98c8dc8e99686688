"""
Versioned payload schema stored alongside each product vector.

Coercion happens once, here, so the vector index only ever receives
JSON-safe strings and numbers.
"""
import math
from dataclasses import dataclass
from typing import Any, Dict

from catalog_sync.data.models import Product

METADATA_SCHEMA_VERSION = 1


def build_embedding_text(product: Product) -> str:
    return f"{product.name} {product.description} {product.description_extra}".strip()


def _as_str(value: Any) -> str:
    return "" if value is None else str(value)


def _as_float(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _as_int(value: Any) -> int:
    return int(_as_float(value))


@dataclass(frozen=True)
class ProductVectorMetadata:
    id: str
    name: str
    description: str
    description_extra: str
    price: float
    stock: int
    image_url: str
    product_url: str
    text: str
    schema_version: int = METADATA_SCHEMA_VERSION

    @classmethod
    def from_product(cls, product: Product, text: str = None) -> "ProductVectorMetadata":
        return cls(
            id=_as_str(product.id),
            name=_as_str(product.name),
            description=_as_str(product.description),
            description_extra=_as_str(product.description_extra),
            price=_as_float(product.price),
            stock=_as_int(product.stock),
            image_url=_as_str(product.image_url),
            product_url=_as_str(product.product_url),
            text=_as_str(text if text is not None else build_embedding_text(product)),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "descriptionExtra": self.description_extra,
            "price": self.price,
            "stock": self.stock,
            "imageUrl": self.image_url,
            "productUrl": self.product_url,
            "text": self.text,
            "schemaVersion": self.schema_version,
        }
