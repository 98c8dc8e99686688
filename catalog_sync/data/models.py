"""
Internal catalog entities.

Documents are stored with camelCase keys so existing collections written by
the admin UI remain readable.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Product:
    """A catalog product. ``id`` is the source system's id and never changes."""
    id: str
    name: str
    description: str = ""
    description_extra: str = ""   # admin-curated, never written by import
    price: float = 0.0
    stock: int = 0
    image_url: str = ""
    product_url: str = ""
    embeddings: Optional[List[float]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "descriptionExtra": self.description_extra,
            "price": self.price,
            "stock": self.stock,
            "imageUrl": self.image_url,
            "productUrl": self.product_url,
        }
        if self.embeddings is not None:
            data["embeddings"] = list(self.embeddings)
        return data

    def import_fields(self) -> Dict[str, Any]:
        """Fields an import is allowed to write (everything but descriptionExtra)."""
        data = self.to_dict()
        data.pop("descriptionExtra")
        data.pop("embeddings", None)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            description=data.get("description") or "",
            description_extra=data.get("descriptionExtra") or "",
            price=data.get("price") or 0.0,
            stock=data.get("stock") or 0,
            image_url=data.get("imageUrl") or "",
            product_url=data.get("productUrl") or "",
            embeddings=data.get("embeddings") or None,
        )


COMPANY_INFO_ID = "company"


@dataclass
class CompanyInfo:
    """Singleton store description, overwritten wholesale on each import."""
    name: str
    description: str = ""
    policies: List[str] = field(default_factory=list)
    contact_info: Dict[str, Any] = field(default_factory=dict)
    updated_at: datetime = field(default_factory=utcnow)
    id: str = COMPANY_INFO_ID

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "policies": list(self.policies),
            "contactInfo": dict(self.contact_info),
            "updatedAt": _format_datetime(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompanyInfo":
        return cls(
            id=data.get("id", COMPANY_INFO_ID),
            name=data.get("name") or "",
            description=data.get("description") or "",
            policies=list(data.get("policies") or []),
            contact_info=dict(data.get("contactInfo") or {}),
            updated_at=_parse_datetime(data.get("updatedAt")) or utcnow(),
        )


SYNC_METADATA_ID = "sync_timestamps"

# sync kind -> document field
SYNC_FIELDS = {
    "shopify": "lastShopifySync",
    "woocommerce": "lastWooCommerceSync",
    "qdrant": "lastQdrantSync",
}


@dataclass
class SyncMetadata:
    last_shopify_sync: Optional[datetime] = None
    last_woocommerce_sync: Optional[datetime] = None
    last_qdrant_sync: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lastShopifySync": _format_datetime(self.last_shopify_sync),
            "lastWooCommerceSync": _format_datetime(self.last_woocommerce_sync),
            "lastQdrantSync": _format_datetime(self.last_qdrant_sync),
            "updatedAt": _format_datetime(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncMetadata":
        return cls(
            last_shopify_sync=_parse_datetime(data.get("lastShopifySync")),
            last_woocommerce_sync=_parse_datetime(data.get("lastWooCommerceSync")),
            last_qdrant_sync=_parse_datetime(data.get("lastQdrantSync")),
            updated_at=_parse_datetime(data.get("updatedAt")),
        )
