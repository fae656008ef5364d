"""Loading raw catalog records from the storefront database."""

from __future__ import annotations

import os
from collections import defaultdict

from sqlalchemy.engine import Engine
from sqlalchemy.sql import text

from feedwire.catalog.models import CategoryLink, ProductImage, ProductRecord, StoreContext, VariantRecord
from feedwire.db.session import load_json

STORE_BASE_URL = os.environ.get("STORE_BASE_URL", "http://localhost:8080")
STORAGE_PUBLIC_URL = os.environ.get("STORAGE_PUBLIC_URL")
STORE_CURRENCY = os.environ.get("STORE_CURRENCY", "PKR")
STORE_NAME = os.environ.get("STORE_NAME", "Storefront")


def load_store_context(engine: Engine, *, base_url: str | None = None) -> StoreContext:
    with engine.connect() as conn:
        settings = conn.execute(
            text("SELECT store_name, currency FROM settings ORDER BY id LIMIT 1")
        ).mappings().first()
    base = (base_url or STORE_BASE_URL).rstrip("/")
    return StoreContext(
        base_url=base,
        storage_url=STORAGE_PUBLIC_URL or f"{base}/storage/v1/object/public",
        currency=((settings or {}).get("currency") or STORE_CURRENCY).upper(),
        brand=(settings or {}).get("store_name") or STORE_NAME,
    )


def load_catalog_source(engine: Engine, *, include_variants: bool = True) -> list[ProductRecord]:
    """Active products with their images, category links and active variants."""
    with engine.connect() as conn:
        product_rows = conn.execute(
            text(
                """
                SELECT id, name, slug, description, short_description, price, sku,
                       inventory_quantity, tags, created_at
                FROM products
                WHERE is_active = :active
                ORDER BY created_at DESC, id
                """
            ),
            {"active": True},
        ).mappings().all()
        image_rows = conn.execute(
            text(
                """
                SELECT pi.product_id, pi.image_url, pi.sort_order
                FROM product_images pi
                JOIN products p ON p.id = pi.product_id
                WHERE p.is_active = :active
                ORDER BY pi.product_id, pi.sort_order, pi.id
                """
            ),
            {"active": True},
        ).mappings().all()
        category_rows = conn.execute(
            text(
                """
                SELECT pc.product_id, pc.category_id, c.name
                FROM product_categories pc
                JOIN categories c ON c.id = pc.category_id
                ORDER BY pc.product_id, pc.id
                """
            )
        ).mappings().all()
        variant_rows = []
        if include_variants:
            variant_rows = conn.execute(
                text(
                    """
                    SELECT id, product_id, name, sku, price, description, inventory_quantity
                    FROM product_variants
                    WHERE is_active = :active
                    ORDER BY product_id, created_at, id
                    """
                ),
                {"active": True},
            ).mappings().all()

    images: dict[str, list[ProductImage]] = defaultdict(list)
    for row in image_rows:
        images[str(row["product_id"])].append(ProductImage(row["image_url"], row["sort_order"] or 0))
    categories: dict[str, list[CategoryLink]] = defaultdict(list)
    for row in category_rows:
        categories[str(row["product_id"])].append(CategoryLink(str(row["category_id"]), row["name"]))
    variants: dict[str, list[VariantRecord]] = defaultdict(list)
    for row in variant_rows:
        variants[str(row["product_id"])].append(
            VariantRecord(
                id=str(row["id"]),
                product_id=str(row["product_id"]),
                name=row["name"],
                sku=row["sku"],
                price=row["price"],
                description=row["description"],
                inventory_quantity=row["inventory_quantity"],
            )
        )

    products: list[ProductRecord] = []
    for row in product_rows:
        product_id = str(row["id"])
        products.append(
            ProductRecord(
                id=product_id,
                name=row["name"],
                slug=row["slug"],
                price=row["price"],
                description=row["description"],
                short_description=row["short_description"],
                sku=row["sku"],
                inventory_quantity=row["inventory_quantity"],
                tags=list(load_json(row["tags"], default=[]) or []),
                created_at=row["created_at"],
                images=images.get(product_id, []),
                categories=categories.get(product_id, []),
                variants=variants.get(product_id, []),
            )
        )
    return products
