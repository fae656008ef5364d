from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, MetaData, Numeric, Table, Text, create_engine
from sqlalchemy.pool import StaticPool

from feedwire.catalog.models import StoreContext

metadata = MetaData()

settings = Table(
    "settings",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("store_name", Text),
    Column("currency", Text),
)

categories = Table(
    "categories",
    metadata,
    Column("id", Text, primary_key=True),
    Column("name", Text, nullable=False),
)

products = Table(
    "products",
    metadata,
    Column("id", Text, primary_key=True),
    Column("name", Text),
    Column("slug", Text, nullable=False),
    Column("description", Text),
    Column("short_description", Text),
    Column("price", Numeric(12, 2)),
    Column("sku", Text),
    Column("inventory_quantity", Integer, default=0),
    Column("tags", JSON, default=list),
    Column("is_active", Boolean, default=True),
    Column("created_at", DateTime),
)

product_images = Table(
    "product_images",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("product_id", Text, ForeignKey("products.id")),
    Column("image_url", Text, nullable=False),
    Column("sort_order", Integer, default=0),
)

product_categories = Table(
    "product_categories",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("product_id", Text, ForeignKey("products.id")),
    Column("category_id", Text, ForeignKey("categories.id")),
)

product_variants = Table(
    "product_variants",
    metadata,
    Column("id", Text, primary_key=True),
    Column("product_id", Text, ForeignKey("products.id")),
    Column("name", Text),
    Column("sku", Text),
    Column("price", Numeric(12, 2)),
    Column("description", Text),
    Column("inventory_quantity", Integer),
    Column("is_active", Boolean, default=True),
    Column("created_at", DateTime),
)

catalog_feeds = Table(
    "catalog_feeds",
    metadata,
    Column("id", Text, primary_key=True),
    Column("name", Text, nullable=False),
    Column("platform", Text, nullable=False),
    Column("format", Text, nullable=False),
    Column("feed_url_slug", Text, nullable=False, unique=True),
    Column("is_active", Boolean, default=True),
    Column("category_filter", JSON, default=list),
    Column("include_variants", Boolean, default=True),
    Column("cache_duration", Integer),
    Column("last_generated_at", DateTime),
    Column("last_error", Text),
    Column("generation_count", Integer, default=0),
)

catalog_feed_history = Table(
    "catalog_feed_history",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("feed_id", Text, ForeignKey("catalog_feeds.id")),
    Column("status", Text, nullable=False),
    Column("product_count", Integer, default=0),
    Column("validation_errors", JSON),
    Column("generation_time_ms", Integer),
    Column("file_size_bytes", Integer),
    Column("error_message", Text),
    Column("created_at", DateTime),
)

pixel_events = Table(
    "pixel_events",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("pixel_id", Text, nullable=False),
    Column("event_type", Text, nullable=False),
    Column("event_value", Numeric(12, 2)),
    Column("currency", Text),
    Column("product_id", Text),
    Column("order_id", Text),
    Column("user_id", Text),
    Column("session_id", Text),
    Column("metadata", JSON),
    Column("created_at", DateTime),
)

BASE_URL = "https://shop.example.com"

ASHWAGANDHA_DESCRIPTION = (
    "Organic ashwagandha root extract capsules for daily stress support, 60 count bottle."
)


@pytest.fixture()
def engine():
    # one shared connection so executor threads see the same in-memory database
    engine = create_engine(
        "sqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def store():
    return StoreContext(
        base_url=BASE_URL,
        storage_url=f"{BASE_URL}/storage/v1/object/public",
        currency="PKR",
        brand="Herbal House",
    )


@pytest.fixture()
def seeded_engine(engine):
    created = datetime(2024, 5, 1, tzinfo=timezone.utc)
    with engine.begin() as conn:
        conn.execute(settings.insert(), {"store_name": "Herbal House", "currency": "PKR"})
        conn.execute(categories.insert(), [
            {"id": "cat-supplements", "name": "Supplements"},
            {"id": "cat-teas", "name": "Teas"},
        ])
        conn.execute(products.insert(), [
            {
                "id": "prod-ash",
                "name": "Ashwagandha Capsules",
                "slug": "ashwagandha-capsules",
                "description": ASHWAGANDHA_DESCRIPTION,
                "price": 1200,
                "sku": "ASH-100",
                "inventory_quantity": 10,
                "tags": ["adaptogen", "vegan"],
                "is_active": True,
                "created_at": created,
            },
            {
                "id": "prod-retired",
                "name": "Retired Blend",
                "slug": "retired-blend",
                "description": "No longer sold.",
                "price": 500,
                "sku": "RET-1",
                "inventory_quantity": 3,
                "tags": [],
                "is_active": False,
                "created_at": created - timedelta(days=30),
            },
        ])
        conn.execute(product_images.insert(), [
            {"product_id": "prod-ash", "image_url": "products/ash-front.jpg", "sort_order": 0},
            {"product_id": "prod-ash", "image_url": "https://cdn.example.com/ash-back.jpg", "sort_order": 1},
        ])
        conn.execute(product_categories.insert(), [
            {"product_id": "prod-ash", "category_id": "cat-supplements"},
        ])
        conn.execute(catalog_feeds.insert(), [
            {
                "id": "feed-meta",
                "name": "Meta catalog",
                "platform": "meta",
                "format": "json",
                "feed_url_slug": "meta-daily",
                "is_active": True,
                "category_filter": [],
                "include_variants": True,
                "cache_duration": 3600,
                "generation_count": 0,
            },
            {
                "id": "feed-google",
                "name": "Google Merchant Center",
                "platform": "google",
                "format": "xml",
                "feed_url_slug": "google-merchant",
                "is_active": True,
                "category_filter": [],
                "include_variants": True,
                "cache_duration": None,
                "generation_count": 0,
            },
            {
                "id": "feed-old",
                "name": "Old Pinterest feed",
                "platform": "pinterest",
                "format": "csv",
                "feed_url_slug": "old-feed",
                "is_active": False,
                "category_filter": [],
                "include_variants": False,
                "cache_duration": 3600,
                "generation_count": 0,
            },
        ])
    return engine
