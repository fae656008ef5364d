"""Tracked pixel event schema."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from feedwire.utils.dates import utc_now


class EventType(str, Enum):
    PAGE_VIEW = "page_view"
    VIEW_CONTENT = "view_content"
    ADD_TO_CART = "add_to_cart"
    INITIATE_CHECKOUT = "initiate_checkout"
    PURCHASE = "purchase"
    SEARCH = "search"
    CUSTOM = "custom"


class TrackedEvent(BaseModel):
    """One behavioral signal bound for a configured pixel."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    pixel_id: str = Field(min_length=1, max_length=255)
    event_type: EventType
    event_value: Decimal | None = Field(default=None, ge=0)
    currency: str = Field(default="USD", pattern=r"^[A-Za-z]{3}$")
    product_id: str | None = None
    order_id: str | None = Field(default=None, validate_default=True)
    user_id: str | None = None
    session_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @field_validator("product_id", "order_id", "user_id", "session_id", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if value == "":
            return None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("order_id")
    @classmethod
    def _purchase_needs_order(cls, value: str | None, info: ValidationInfo) -> str | None:
        if info.data.get("event_type") is EventType.PURCHASE and not value:
            raise ValueError("order_id is required for purchase events")
        return value

    def to_row(self) -> dict[str, Any]:
        return {
            "pixel_id": self.pixel_id,
            "event_type": self.event_type.value,
            "event_value": str(self.event_value) if self.event_value is not None else None,
            "currency": self.currency,
            "product_id": self.product_id,
            "order_id": self.order_id,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "metadata": self.metadata,
            "created_at": self.created_at,
        }

    def wire_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
