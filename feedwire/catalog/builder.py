"""Canonical catalog construction.

Joins product, variant, image and category records into one
``CanonicalCatalogEntry`` per sellable unit. Nothing here knows about
advertising platforms.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Iterable

from feedwire.catalog.models import (
    DEFAULT_CATEGORY,
    Availability,
    CanonicalCatalogEntry,
    ProductRecord,
    StoreContext,
    VariantRecord,
    parse_price,
)
from feedwire.utils.dates import to_utc
from feedwire.utils.urls import ensure_absolute_url, product_url

logger = logging.getLogger(__name__)


class SkipRecord(ValueError):
    """A source record that cannot become a catalog entry."""


def build_catalog(
    products: Iterable[ProductRecord],
    store: StoreContext,
    *,
    include_variants: bool = True,
    category_filter: Iterable[str] | None = None,
) -> list[CanonicalCatalogEntry]:
    wanted = {str(item) for item in category_filter or ()}
    entries: list[CanonicalCatalogEntry] = []
    seen_ids: set[str] = set()
    skipped = 0

    for product in _newest_first(products):
        if wanted and not any(link.category_id in wanted for link in product.categories):
            continue
        try:
            candidates = _product_entries(product, store, include_variants)
        except SkipRecord as exc:
            skipped += 1
            logger.warning("Skipping product %s: %s", product.id, exc)
            continue
        for entry, fallback_id in candidates:
            entry = _unique(entry, fallback_id, seen_ids)
            if entry is None:
                skipped += 1
                continue
            seen_ids.add(entry.id)
            entries.append(entry)

    logger.info("Built %s catalog entries (%s skipped)", len(entries), skipped)
    return entries


def _newest_first(products: Iterable[ProductRecord]) -> list[ProductRecord]:
    dated: list[tuple[datetime, ProductRecord]] = []
    undated: list[ProductRecord] = []
    for product in products:
        created = _created_utc(product)
        if created is None:
            undated.append(product)
        else:
            dated.append((created, product))
    dated.sort(key=lambda pair: pair[0], reverse=True)
    return [product for _, product in dated] + undated


def _created_utc(product: ProductRecord) -> datetime | None:
    if product.created_at is None:
        return None
    try:
        return to_utc(product.created_at)
    except ValueError:
        logger.warning("Product %s has unreadable created_at %r", product.id, product.created_at)
        return None


def _product_entries(
    product: ProductRecord, store: StoreContext, include_variants: bool
) -> list[tuple[CanonicalCatalogEntry, str]]:
    name = (product.name or "").strip()
    if not name:
        raise SkipRecord("missing name")
    if not product.slug:
        raise SkipRecord("missing slug")

    images = sorted(product.images, key=lambda img: img.sort_order)
    image_urls = [ensure_absolute_url(img.image_url, store.storage_url) for img in images if img.image_url]
    shared = {
        "currency": store.currency,
        "brand": store.brand,
        "category": product.categories[0].name if product.categories else DEFAULT_CATEGORY,
        "image_url": image_urls[0] if image_urls else "",
        "additional_images": tuple(image_urls[1:]),
        "product_url": product_url(store.base_url, product.slug),
        "tags": tuple(str(tag) for tag in product.tags or () if tag not in (None, "")),
    }
    product_description = product.description or product.short_description or ""

    if include_variants and product.variants:
        results = []
        for variant in product.variants:
            try:
                results.append(_variant_entry(product, variant, name, product_description, shared))
            except SkipRecord as exc:
                logger.warning("Skipping variant %s of product %s: %s", variant.id, product.id, exc)
        return results

    price = parse_price(product.price)
    if price is None:
        raise SkipRecord(f"invalid price {product.price!r}")
    inventory = _inventory(product.inventory_quantity)
    entry = CanonicalCatalogEntry(
        id=product.sku or str(product.id),
        title=name,
        description=product_description,
        price=price,
        availability=_availability(inventory),
        inventory=inventory,
        sku=product.sku or None,
        **shared,
    )
    return [(entry, str(product.id))]


def _variant_entry(
    product: ProductRecord,
    variant: VariantRecord,
    product_name: str,
    product_description: str,
    shared: dict,
) -> tuple[CanonicalCatalogEntry, str]:
    variant_name = (variant.name or "").strip()
    if not variant_name:
        raise SkipRecord("missing name")
    price = parse_price(variant.price)
    if price is None:
        price = parse_price(product.price)
    if price is None:
        raise SkipRecord(f"invalid price {variant.price!r}")
    quantity = variant.inventory_quantity
    if quantity is None:
        quantity = product.inventory_quantity
    inventory = _inventory(quantity)
    sku = variant.sku or product.sku or None
    entry = CanonicalCatalogEntry(
        id=variant.sku or str(variant.id),
        title=f"{product_name} - {variant_name}",
        description=variant.description or product_description,
        price=price,
        availability=_availability(inventory),
        inventory=inventory,
        sku=sku,
        **shared,
    )
    return entry, str(variant.id)


def _unique(
    entry: CanonicalCatalogEntry, fallback_id: str, seen_ids: set[str]
) -> CanonicalCatalogEntry | None:
    if entry.id not in seen_ids:
        return entry
    if fallback_id not in seen_ids:
        logger.warning("Duplicate catalog id %s; using record id %s", entry.id, fallback_id)
        return replace(entry, id=fallback_id)
    logger.warning("Duplicate catalog id %s and record id %s; entry dropped", entry.id, fallback_id)
    return None


def _inventory(value: object) -> int:
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError):
        return 0


def _availability(inventory: int) -> Availability:
    return Availability.IN_STOCK if inventory > 0 else Availability.OUT_OF_STOCK
