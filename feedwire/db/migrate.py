"""Apply schema.sql and check that the feed and pixel tables exist."""

from __future__ import annotations

import logging
import pathlib
import sys
from typing import Iterator

from dotenv import load_dotenv
from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from feedwire.db.session import create_engine_from_env

logger = logging.getLogger(__name__)

SCHEMA_PATH = pathlib.Path(__file__).with_name("schema.sql")

REQUIRED_TABLES = (
    "settings",
    "categories",
    "products",
    "product_images",
    "product_categories",
    "product_variants",
    "catalog_feeds",
    "catalog_feed_history",
    "pixel_events",
)


def run_migrations(engine: Engine, schema_path: pathlib.Path = SCHEMA_PATH) -> int:
    statements = list(split_statements(schema_path.read_text()))
    with engine.begin() as conn:
        for stmt in statements:
            conn.execute(text(stmt))
    logger.info("Applied %s schema statements from %s", len(statements), schema_path.name)
    return len(statements)


def split_statements(sql: str) -> Iterator[str]:
    """Yield ``;``-terminated statements, skipping blank and ``--`` comment lines."""
    buffer: list[str] = []
    for line in sql.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("--"):
            continue
        buffer.append(line)
        if stripped.endswith(";"):
            yield "\n".join(buffer)
            buffer.clear()
    if buffer:
        yield "\n".join(buffer)


def missing_tables(engine: Engine) -> list[str]:
    existing = set(inspect(engine).get_table_names())
    return [name for name in REQUIRED_TABLES if name not in existing]


def main() -> None:
    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    engine = create_engine_from_env()
    try:
        run_migrations(engine)
    except SQLAlchemyError as exc:
        print(f"Migration failed: {exc}", file=sys.stderr)
        sys.exit(2)
    missing = missing_tables(engine)
    if missing:
        print(f"Tables still missing after migration: {', '.join(missing)}", file=sys.stderr)
        sys.exit(3)


if __name__ == "__main__":
    main()
