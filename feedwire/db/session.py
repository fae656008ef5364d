"""Database session helpers."""

from __future__ import annotations

import json
import os
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine

DEFAULT_DATABASE_URL = "postgresql://user:pass@db:5432/storefront"


def create_engine_from_env() -> Engine:
    """Create an engine using the DATABASE_URL environment variable."""
    url = os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)
    return create_engine(url, pool_pre_ping=True, future=True)


def json_param(conn: Connection, name: str) -> str:
    """Bind placeholder for a JSON value, cast to JSONB outside SQLite."""
    if conn.dialect.name == "sqlite":
        return f":{name}"
    return f"CAST(:{name} AS JSONB)"


def dump_json(value: Any) -> str:
    return json.dumps(value, default=str)


def load_json(value: Any, default: Any = None) -> Any:
    """Decode a JSON column that SQLite hands back as text."""
    if value is None:
        return default
    if isinstance(value, (bytes, str)):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return default
    return value
