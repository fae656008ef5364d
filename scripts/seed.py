"""Seed database with store settings and the default feed configurations."""

from __future__ import annotations

import json

from dotenv import load_dotenv
from sqlalchemy import text

from feedwire.catalog import load_feed_configs
from feedwire.catalog.source import STORE_CURRENCY, STORE_NAME
from feedwire.db.session import create_engine_from_env


def main() -> None:
    load_dotenv()
    engine = create_engine_from_env()
    feeds = load_feed_configs()
    with engine.begin() as conn:
        existing = conn.execute(text("SELECT COUNT(*) FROM settings")).scalar_one()
        if not existing:
            conn.execute(
                text("INSERT INTO settings (store_name, currency) VALUES (:store_name, :currency)"),
                {"store_name": STORE_NAME, "currency": STORE_CURRENCY},
            )
        for feed in feeds:
            conn.execute(
                text(
                    """
                    INSERT INTO catalog_feeds (
                        id, name, platform, format, feed_url_slug, is_active,
                        category_filter, include_variants, cache_duration
                    )
                    VALUES (
                        :id, :name, :platform, :format, :slug, :is_active,
                        CAST(:category_filter AS JSONB), :include_variants, :cache_duration
                    )
                    ON CONFLICT (feed_url_slug) DO UPDATE SET
                        name = EXCLUDED.name,
                        platform = EXCLUDED.platform,
                        format = EXCLUDED.format,
                        include_variants = EXCLUDED.include_variants,
                        cache_duration = EXCLUDED.cache_duration,
                        updated_at = now()
                    """
                ),
                {
                    "id": feed.id,
                    "name": feed.name,
                    "platform": feed.platform.value,
                    "format": feed.format.value,
                    "slug": feed.slug,
                    "is_active": feed.is_active,
                    "category_filter": json.dumps(sorted(feed.category_filter)),
                    "include_variants": feed.include_variants,
                    "cache_duration": feed.cache_duration,
                },
            )
    print(f"Seed complete: {len(feeds)} feeds")


if __name__ == "__main__":
    main()
