"""Error taxonomy shared by the feed and tracking paths."""

from __future__ import annotations

from typing import Any


class FeedwireError(Exception):
    """Base class for errors raised by the engine."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            **{key: value for key, value in self.context.items() if value is not None},
        }


class ConfigurationError(FeedwireError):
    """Unknown platform or format, or an incomplete registry."""


class ValidationError(FeedwireError):
    """Malformed input rejected before it is processed."""

    def __init__(self, message: str, *, field: str | None = None, **context: Any) -> None:
        super().__init__(message, field=field, **context)
        self.field = field


class NotFoundError(FeedwireError):
    pass


class FeedNotFound(NotFoundError):
    def __init__(self, slug: str) -> None:
        super().__init__("Feed not found or inactive", slug=slug)
        self.slug = slug


class GenerationError(FeedwireError):
    pass


class FeedGenerationError(GenerationError):
    def __init__(self, slug: str, original: BaseException) -> None:
        super().__init__("Feed generation failed", slug=slug, cause=type(original).__name__)
        self.slug = slug
        self.original = original


class TransientIOError(FeedwireError):
    """Durable write failed; the caller is expected to retry."""
