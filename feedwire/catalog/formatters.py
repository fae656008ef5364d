"""Platform formatters.

Each advertising platform gets one pure function that maps canonical
entries to that platform's field schema. ``FORMATTERS`` must cover every
``Platform`` member; the check runs at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Iterable

from feedwire.catalog.models import CanonicalCatalogEntry, Platform
from feedwire.errors import ConfigurationError

PlatformRecord = dict[str, Any]
Formatter = Callable[[CanonicalCatalogEntry], PlatformRecord]

ELLIPSIS = "..."


@dataclass(frozen=True, slots=True)
class FieldLimits:
    title: int | None = None
    description: int | None = None
    brand: int | None = None
    tag: int | None = None
    additional_images: int | None = None


# FEED_META_TITLE_MAX / FEED_META_DESCRIPTION_MAX override the 150/5000 defaults.
META_LIMITS = FieldLimits(
    title=int(os.environ.get("FEED_META_TITLE_MAX", 150)),
    description=int(os.environ.get("FEED_META_DESCRIPTION_MAX", 5000)),
    brand=100,
    tag=110,
    additional_images=10,
)
GOOGLE_LIMITS = FieldLimits(title=150, description=5000, additional_images=10)
PINTEREST_LIMITS = FieldLimits(additional_images=5)

PLATFORM_LIMITS: dict[Platform, FieldLimits] = {
    Platform.META: META_LIMITS,
    Platform.GOOGLE: GOOGLE_LIMITS,
    Platform.PINTEREST: PINTEREST_LIMITS,
}

IMAGE_DELIMITERS = {
    Platform.META: ",",
    Platform.GOOGLE: ",",
    Platform.PINTEREST: ",",
}


def limits_for(platform: Platform | str) -> FieldLimits:
    return PLATFORM_LIMITS.get(Platform.parse(platform), FieldLimits())


def truncate(value: str | None, max_length: int | None) -> str:
    """Cut ``value`` to ``max_length`` characters, reserving room for an ellipsis."""
    if not value:
        return ""
    if max_length is None or len(value) <= max_length:
        return value
    if max_length <= len(ELLIPSIS):
        return value[:max_length]
    return value[: max_length - len(ELLIPSIS)] + ELLIPSIS


def format_amount(price: Decimal) -> str:
    """``1200`` for whole amounts, ``12.50`` otherwise."""
    if price == price.to_integral_value():
        return str(price.quantize(Decimal(1)))
    return str(price.quantize(Decimal("0.01")))


def price_text(entry: CanonicalCatalogEntry) -> str:
    return f"{format_amount(entry.price)} {entry.currency}"


def price_number(entry: CanonicalCatalogEntry) -> int | float:
    if entry.price == entry.price.to_integral_value():
        return int(entry.price)
    return float(entry.price)


def _images(entry: CanonicalCatalogEntry, platform: Platform) -> str:
    limit = limits_for(platform).additional_images
    images = entry.additional_images[:limit] if limit is not None else entry.additional_images
    return IMAGE_DELIMITERS[platform].join(images)


def _drop_empty(record: PlatformRecord) -> PlatformRecord:
    return {key: value for key, value in record.items() if value is not None and value != "" and value != []}


def format_meta(entry: CanonicalCatalogEntry) -> PlatformRecord:
    limits = META_LIMITS
    record: PlatformRecord = {
        "id": entry.id,
        "title": truncate(entry.title, limits.title),
        "description": truncate(entry.description, limits.description),
        "availability": entry.availability.value,
        "condition": entry.condition,
        "price": price_text(entry),
        "link": entry.product_url,
        "image_link": entry.image_url,
        "brand": truncate(entry.brand, limits.brand),
        "google_product_category": entry.category,
        "fb_product_category": entry.category,
        "quantity_to_sell_on_facebook": entry.inventory,
        "additional_image_link": _images(entry, Platform.META),
    }
    for index, tag in enumerate(entry.tags[:2]):
        record[f"product_tags[{index}]"] = truncate(tag, limits.tag)
    return _drop_empty(record)


def format_google(entry: CanonicalCatalogEntry) -> PlatformRecord:
    return {
        "id": entry.id,
        "title": truncate(entry.title, GOOGLE_LIMITS.title),
        "description": truncate(entry.description, GOOGLE_LIMITS.description),
        "link": entry.product_url,
        "image_link": entry.image_url,
        "additional_image_link": _images(entry, Platform.GOOGLE),
        "availability": entry.availability.value,
        "price": price_text(entry),
        "brand": entry.brand,
        "condition": entry.condition,
        "google_product_category": entry.category,
        "product_type": entry.category,
        "identifier_exists": "TRUE" if entry.sku else "FALSE",
        "mpn": entry.sku or "",
        "shipping_weight": "1 kg",
    }


def format_tiktok(entry: CanonicalCatalogEntry) -> PlatformRecord:
    return {
        "sku_id": entry.id,
        "title": entry.title,
        "description": entry.description,
        "availability": "IN_STOCK" if entry.in_stock else "OUT_OF_STOCK",
        "condition": "NEW",
        "price": price_number(entry),
        "link": entry.product_url,
        "image_link": entry.image_url,
        "brand": entry.brand,
        "inventory": entry.inventory,
    }


def format_pinterest(entry: CanonicalCatalogEntry) -> PlatformRecord:
    return {
        "id": entry.id,
        "title": entry.title,
        "description": entry.description,
        "link": entry.product_url,
        "image_link": entry.image_url,
        "additional_image_link": _images(entry, Platform.PINTEREST),
        "availability": entry.availability.value,
        "price": price_text(entry),
        "brand": entry.brand,
        "product_type": entry.category,
        "condition": entry.condition,
    }


def format_snapchat(entry: CanonicalCatalogEntry) -> PlatformRecord:
    return {
        "id": entry.id,
        "title": entry.title,
        "description": entry.description,
        "availability": entry.availability.value,
        "condition": entry.condition,
        "price": price_number(entry),
        "link": entry.product_url,
        "image_link": entry.image_url,
        "brand": entry.brand,
        "item_group_id": entry.category,
    }


def format_microsoft(entry: CanonicalCatalogEntry) -> PlatformRecord:
    return {
        "id": entry.id,
        "title": entry.title,
        "description": entry.description,
        "link": entry.product_url,
        "image_link": entry.image_url,
        "availability": entry.availability.value,
        "price": price_text(entry),
        "brand": entry.brand,
        "condition": entry.condition,
        "product_category": entry.category,
    }


def format_twitter(entry: CanonicalCatalogEntry) -> PlatformRecord:
    return {
        "id": entry.id,
        "title": entry.title,
        "description": entry.description,
        "availability": "available" if entry.in_stock else "unavailable",
        "price": price_number(entry),
        "currency": entry.currency,
        "link": entry.product_url,
        "image_url": entry.image_url,
        "brand": entry.brand,
    }


def format_linkedin(entry: CanonicalCatalogEntry) -> PlatformRecord:
    return {
        "product_id": entry.id,
        "name": entry.title,
        "description": entry.description,
        "url": entry.product_url,
        "image_url": entry.image_url,
        "price": price_number(entry),
        "currency": entry.currency,
        "availability": entry.availability.value,
        "category": entry.category,
    }


def format_generic(entry: CanonicalCatalogEntry) -> PlatformRecord:
    return {
        "id": entry.id,
        "title": entry.title,
        "description": entry.description,
        "price": price_number(entry),
        "currency": entry.currency,
        "availability": entry.availability.value,
        "condition": entry.condition,
        "brand": entry.brand,
        "category": entry.category,
        "image_url": entry.image_url,
        "additional_images": list(entry.additional_images),
        "product_url": entry.product_url,
        "sku": entry.sku,
        "inventory": entry.inventory,
        "tags": list(entry.tags),
    }


FORMATTERS: dict[Platform, Formatter] = {
    Platform.META: format_meta,
    Platform.GOOGLE: format_google,
    Platform.TIKTOK: format_tiktok,
    Platform.PINTEREST: format_pinterest,
    Platform.SNAPCHAT: format_snapchat,
    Platform.MICROSOFT: format_microsoft,
    Platform.TWITTER: format_twitter,
    Platform.LINKEDIN: format_linkedin,
    Platform.GENERIC: format_generic,
}


def _check_registry(registry: dict[Platform, Formatter]) -> None:
    missing = [platform.value for platform in Platform if platform not in registry]
    if missing:
        raise ConfigurationError(f"No formatter registered for: {', '.join(missing)}")


_check_registry(FORMATTERS)


def get_formatter(platform: Platform | str) -> Formatter:
    return FORMATTERS[Platform.parse(platform)]


def format_records(platform: Platform | str, entries: Iterable[CanonicalCatalogEntry]) -> list[PlatformRecord]:
    formatter = get_formatter(platform)
    return [formatter(entry) for entry in entries]


def title_field(platform: Platform | str) -> str:
    """Name of the field that carries the entry title for ``platform``."""
    return "name" if Platform.parse(platform) is Platform.LINKEDIN else "title"


def id_field(platform: Platform | str) -> str:
    platform = Platform.parse(platform)
    if platform is Platform.TIKTOK:
        return "sku_id"
    if platform is Platform.LINKEDIN:
        return "product_id"
    return "id"
