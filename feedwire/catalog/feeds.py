"""Feed generation service.

Looks up a feed configuration by slug, runs the catalog through the
builder, the platform formatter and the serializer, and keeps an
append-only audit trail in ``catalog_feed_history``.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from sqlalchemy.engine import Engine
from sqlalchemy.sql import text

from feedwire.catalog.builder import build_catalog
from feedwire.catalog.formatters import format_records
from feedwire.catalog.models import FeedConfig, ValidationIssue
from feedwire.catalog.serializers import content_type, serialize
from feedwire.catalog.source import load_catalog_source, load_store_context
from feedwire.catalog.validation import has_errors, validate_entries
from feedwire.db.session import dump_json, json_param, load_json
from feedwire.errors import FeedGenerationError, FeedNotFound
from feedwire.utils.dates import elapsed_ms, utc_now
from feedwire.utils.urls import is_valid_feed_slug

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_PARTIAL = "partial"
STATUS_FAILED = "failed"

HISTORY_LIMIT = 50

FEED_COLUMNS = """
    id, name, platform, format, feed_url_slug, is_active, category_filter,
    include_variants, cache_duration, last_generated_at, last_error, generation_count
"""


@dataclass(slots=True)
class FeedDocument:
    slug: str
    body: str
    content_type: str
    cache_seconds: int
    product_count: int
    generation_time_ms: int
    status: str = STATUS_SUCCESS
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def size_bytes(self) -> int:
        return len(self.body.encode("utf-8"))

    @property
    def etag(self) -> str:
        return '"' + hashlib.sha1(self.body.encode("utf-8")).hexdigest() + '"'

    @property
    def cache_control(self) -> str:
        return f"public, max-age={self.cache_seconds}"


class FeedRepository:
    """SQL access for feed configurations and their generation history."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def get_active_row(self, slug: str) -> dict[str, Any] | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                text(
                    f"SELECT {FEED_COLUMNS} FROM catalog_feeds "
                    "WHERE feed_url_slug = :slug AND is_active = :active"
                ),
                {"slug": slug, "active": True},
            ).mappings().first()
        return dict(row) if row else None

    def get_by_slug(self, slug: str) -> dict[str, Any] | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                text(f"SELECT {FEED_COLUMNS} FROM catalog_feeds WHERE feed_url_slug = :slug"),
                {"slug": slug},
            ).mappings().first()
        return dict(row) if row else None

    def record_generation(
        self,
        feed_id: str,
        *,
        status: str,
        product_count: int,
        issues: list[ValidationIssue],
        generation_time_ms: int,
        file_size_bytes: int | None,
        error_message: str | None = None,
    ) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    f"""
                    INSERT INTO catalog_feed_history (
                        feed_id, status, product_count, validation_errors,
                        generation_time_ms, file_size_bytes, error_message, created_at
                    )
                    VALUES (
                        :feed_id, :status, :product_count, {json_param(conn, "validation_errors")},
                        :generation_time_ms, :file_size_bytes, :error_message, :created_at
                    )
                    """
                ),
                {
                    "feed_id": feed_id,
                    "status": status,
                    "product_count": product_count,
                    "validation_errors": dump_json([issue.to_dict() for issue in issues]),
                    "generation_time_ms": generation_time_ms,
                    "file_size_bytes": file_size_bytes,
                    "error_message": error_message,
                    "created_at": utc_now(),
                },
            )

    def mark_generated(self, feed_id: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    """
                    UPDATE catalog_feeds
                    SET last_generated_at = :now,
                        generation_count = COALESCE(generation_count, 0) + 1,
                        last_error = NULL
                    WHERE id = :id
                    """
                ),
                {"now": utc_now(), "id": feed_id},
            )

    def mark_failed(self, feed_id: str, message: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                text("UPDATE catalog_feeds SET last_error = :message WHERE id = :id"),
                {"message": message[:1000], "id": feed_id},
            )

    def history(self, feed_id: str, limit: int = HISTORY_LIMIT) -> list[dict[str, Any]]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                text(
                    """
                    SELECT id, feed_id, status, product_count, validation_errors,
                           generation_time_ms, file_size_bytes, error_message, created_at
                    FROM catalog_feed_history
                    WHERE feed_id = :feed_id
                    ORDER BY created_at DESC, id DESC
                    LIMIT :limit
                    """
                ),
                {"feed_id": feed_id, "limit": limit},
            ).mappings().all()
        history = []
        for row in rows:
            item = dict(row)
            item["validation_errors"] = load_json(item["validation_errors"], default=[])
            history.append(item)
        return history


def feed_config_from_row(row: Mapping[str, Any]) -> FeedConfig:
    return FeedConfig.from_row(row, category_filter=load_json(row.get("category_filter"), default=[]) or [])


class FeedGenerationService:
    def __init__(
        self,
        engine: Engine,
        *,
        repository: FeedRepository | None = None,
        base_url: str | None = None,
        source_loader: Callable[..., list] = load_catalog_source,
        store_loader: Callable[..., Any] = load_store_context,
    ) -> None:
        self.engine = engine
        self.repository = repository or FeedRepository(engine)
        self.base_url = base_url
        self._source_loader = source_loader
        self._store_loader = store_loader

    def generate(self, slug: str) -> FeedDocument:
        if not is_valid_feed_slug(slug):
            raise FeedNotFound(slug)
        row = self.repository.get_active_row(slug)
        if row is None:
            raise FeedNotFound(slug)
        feed_id = str(row["id"])

        started = time.perf_counter()
        product_count = 0
        try:
            config = feed_config_from_row(row)
            store = self._store_loader(self.engine, base_url=self.base_url)
            products = self._source_loader(self.engine, include_variants=config.include_variants)
            entries = build_catalog(
                products,
                store,
                include_variants=config.include_variants,
                category_filter=config.category_filter,
            )
            product_count = len(entries)
            issues = validate_entries(config.platform, entries)
            records = format_records(config.platform, entries)
            body = serialize(config.format, records, platform=config.platform, channel_link=store.base_url)
        except Exception as exc:
            duration = elapsed_ms(started, time.perf_counter())
            logger.exception("Feed %s generation failed after %sms", slug, duration)
            message = f"{type(exc).__name__}: {exc}"
            self._best_effort(
                "record failure",
                self.repository.record_generation,
                feed_id,
                status=STATUS_FAILED,
                product_count=product_count,
                issues=[],
                generation_time_ms=duration,
                file_size_bytes=None,
                error_message=message,
            )
            self._best_effort("store last error", self.repository.mark_failed, feed_id, message)
            raise FeedGenerationError(slug, exc) from exc

        document = FeedDocument(
            slug=slug,
            body=body,
            content_type=content_type(config.format),
            cache_seconds=int(config.cache_duration),
            product_count=product_count,
            generation_time_ms=elapsed_ms(started, time.perf_counter()),
            status=STATUS_PARTIAL if has_errors(issues) else STATUS_SUCCESS,
            issues=issues,
        )
        logger.info(
            "Generated feed %s (%s/%s): %s products, %s bytes, %sms, %s issues",
            slug,
            config.platform.value,
            config.format.value,
            document.product_count,
            document.size_bytes,
            document.generation_time_ms,
            len(issues),
        )
        self._best_effort(
            "record generation",
            self.repository.record_generation,
            feed_id,
            status=document.status,
            product_count=document.product_count,
            issues=issues,
            generation_time_ms=document.generation_time_ms,
            file_size_bytes=document.size_bytes,
        )
        self._best_effort("update feed counters", self.repository.mark_generated, feed_id)
        return document

    def history(self, slug: str, limit: int = HISTORY_LIMIT) -> list[dict[str, Any]]:
        row = self.repository.get_by_slug(slug) if is_valid_feed_slug(slug) else None
        if row is None:
            raise FeedNotFound(slug)
        return self.repository.history(str(row["id"]), limit=limit)

    @staticmethod
    def _best_effort(action: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        try:
            func(*args, **kwargs)
        except Exception as exc:
            logger.warning("Could not %s: %s", action, exc)


def feed_history(engine: Engine, slug: str, limit: int = HISTORY_LIMIT) -> list[dict[str, Any]]:
    """Audit rows for ``slug``, newest first. Inactive feeds keep their history."""
    return FeedGenerationService(engine).history(slug, limit=limit)
