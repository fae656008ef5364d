"""Catalog data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping

from feedwire.errors import ConfigurationError, ValidationError
from feedwire.utils.urls import is_valid_feed_slug

DEFAULT_CATEGORY = "Uncategorized"


class Platform(str, Enum):
    META = "meta"
    GOOGLE = "google"
    TIKTOK = "tiktok"
    PINTEREST = "pinterest"
    SNAPCHAT = "snapchat"
    MICROSOFT = "microsoft"
    TWITTER = "twitter"
    LINKEDIN = "linkedin"
    GENERIC = "generic"

    @classmethod
    def parse(cls, value: Any) -> "Platform":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigurationError(f"Unknown feed platform: {value!r}", platform=str(value)) from None


class FeedFormat(str, Enum):
    XML = "xml"
    CSV = "csv"
    JSON = "json"

    @classmethod
    def parse(cls, value: Any) -> "FeedFormat":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigurationError(f"Unknown feed format: {value!r}", format=str(value)) from None


class Availability(str, Enum):
    IN_STOCK = "in stock"
    OUT_OF_STOCK = "out of stock"


RECOMMENDED_CACHE_SECONDS = {
    Platform.META: 3600,
    Platform.GOOGLE: 86400,
    Platform.TIKTOK: 21600,
    Platform.SNAPCHAT: 21600,
}
DEFAULT_CACHE_SECONDS = 3600


def recommended_cache_duration(platform: Platform | str) -> int:
    return RECOMMENDED_CACHE_SECONDS.get(Platform.parse(platform), DEFAULT_CACHE_SECONDS)


def parse_price(value: Any) -> Decimal | None:
    if value in (None, ""):
        return None
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite():
        return None
    return price


@dataclass(slots=True)
class ProductImage:
    image_url: str
    sort_order: int = 0


@dataclass(slots=True)
class CategoryLink:
    category_id: str
    name: str


@dataclass(slots=True)
class VariantRecord:
    id: str
    product_id: str
    name: str | None
    sku: str | None = None
    price: Any = None
    description: str | None = None
    inventory_quantity: int | None = None


@dataclass(slots=True)
class ProductRecord:
    id: str
    name: str | None
    slug: str
    price: Any
    description: str | None = None
    short_description: str | None = None
    sku: str | None = None
    inventory_quantity: int | None = 0
    tags: list[str] = field(default_factory=list)
    created_at: Any = None
    images: list[ProductImage] = field(default_factory=list)
    categories: list[CategoryLink] = field(default_factory=list)
    variants: list[VariantRecord] = field(default_factory=list)


@dataclass(slots=True)
class StoreContext:
    base_url: str
    storage_url: str
    currency: str
    brand: str


@dataclass(frozen=True, slots=True)
class CanonicalCatalogEntry:
    id: str
    title: str
    description: str
    price: Decimal
    currency: str
    availability: Availability
    brand: str
    category: str
    image_url: str
    product_url: str
    inventory: int
    sku: str | None = None
    additional_images: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    condition: str = "new"

    @property
    def in_stock(self) -> bool:
        return self.availability is Availability.IN_STOCK


@dataclass(slots=True)
class FeedConfig:
    """A named export target: one platform rendered in one format."""

    id: str
    name: str
    platform: Platform
    format: FeedFormat
    slug: str
    is_active: bool = True
    category_filter: frozenset[str] = frozenset()
    include_variants: bool = True
    cache_duration: int | None = None
    last_generated_at: datetime | None = None
    last_error: str | None = None
    generation_count: int = 0

    def __post_init__(self) -> None:
        self.platform = Platform.parse(self.platform)
        self.format = FeedFormat.parse(self.format)
        if not is_valid_feed_slug(self.slug):
            raise ValidationError(
                "Slug must be 3-50 lowercase letters, digits or hyphens and not start or end with a hyphen",
                field="slug",
                value=self.slug,
            )
        self.category_filter = frozenset(str(item) for item in (self.category_filter or ()))
        if self.cache_duration is None:
            self.cache_duration = recommended_cache_duration(self.platform)

    @classmethod
    def from_row(cls, row: Mapping[str, Any], category_filter: Any = ()) -> "FeedConfig":
        return cls(
            id=str(row["id"]),
            name=row["name"],
            platform=row["platform"],
            format=row["format"],
            slug=row["feed_url_slug"],
            is_active=bool(row["is_active"]),
            category_filter=category_filter,
            include_variants=bool(row["include_variants"]),
            cache_duration=row["cache_duration"],
            last_generated_at=row.get("last_generated_at"),
            last_error=row.get("last_error"),
            generation_count=row.get("generation_count") or 0,
        )


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    product_id: str
    field: str
    message: str
    severity: str = "error"

    def to_dict(self) -> dict[str, str]:
        return {
            "product_id": self.product_id,
            "field": self.field,
            "message": self.message,
            "severity": self.severity,
        }
