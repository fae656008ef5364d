"""Feed readiness checks recorded alongside each generation."""

from __future__ import annotations

from typing import Iterable

from feedwire.catalog.formatters import META_LIMITS
from feedwire.catalog.models import CanonicalCatalogEntry, Platform, ValidationIssue

GOOGLE_MIN_DESCRIPTION = 50


def validate_entry(platform: Platform | str, entry: CanonicalCatalogEntry) -> list[ValidationIssue]:
    platform = Platform.parse(platform)
    issues: list[ValidationIssue] = []

    def add(field: str, message: str, severity: str = "error") -> None:
        issues.append(ValidationIssue(entry.id, field, message, severity))

    if not entry.title.strip():
        add("title", "Product name is required")
    if entry.price <= 0:
        add("price", "Valid price is required")
    if not entry.image_url:
        add("image_url", "Product image is required")
    if not entry.product_url:
        add("product_url", "Product URL is required")

    if platform is Platform.GOOGLE:
        if len(entry.description) < GOOGLE_MIN_DESCRIPTION:
            add(
                "description",
                f"Google requires description with at least {GOOGLE_MIN_DESCRIPTION} characters",
                "warning",
            )
        if not entry.sku:
            add("sku", "Google recommends SKU/MPN for better performance", "warning")
    elif platform is Platform.META:
        if not entry.description:
            add("description", "Meta requires product description")
        if META_LIMITS.title is not None and len(entry.title) > META_LIMITS.title:
            add("title", f"Meta limits title to {META_LIMITS.title} characters", "warning")
    elif platform is Platform.TIKTOK:
        if not entry.brand.strip():
            add("brand", "TikTok requires brand")
    return issues


def validate_entries(platform: Platform | str, entries: Iterable[CanonicalCatalogEntry]) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for entry in entries:
        issues.extend(validate_entry(platform, entry))
    return issues


def has_errors(issues: Iterable[ValidationIssue]) -> bool:
    return any(issue.severity == "error" for issue in issues)
