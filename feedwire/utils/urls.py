"""URL and slug helpers for feed output."""

from __future__ import annotations

import re

FEED_SLUG_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{1,48}[a-z0-9])$")
_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SEP_RE = re.compile(r"[\s_-]+")


def is_absolute(url: str) -> bool:
    return url.startswith("http://") or url.startswith("https://")


def ensure_absolute_url(url: str | None, base_url: str) -> str:
    """Return ``url`` unchanged if absolute, otherwise joined onto ``base_url``."""
    if not url:
        return ""
    if is_absolute(url):
        return url
    return f"{base_url.rstrip('/')}/{url.lstrip('/')}"


def product_url(base_url: str, slug: str) -> str:
    return f"{base_url.rstrip('/')}/product/{slug}"


def is_valid_feed_slug(slug: str | None) -> bool:
    return bool(slug) and FEED_SLUG_RE.fullmatch(slug) is not None


def generate_slug(text: str) -> str:
    slug = _SLUG_STRIP_RE.sub("", text.lower().strip())
    slug = _SLUG_SEP_RE.sub("-", slug)
    return slug.strip("-")
