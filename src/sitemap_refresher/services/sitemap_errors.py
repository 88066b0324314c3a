"""Exception hierarchy for sitemap generation and publication."""

from __future__ import annotations


class SitemapGenerationError(Exception):
    """Raised when fetching or publishing a shard fails for an entity."""

    def __init__(
        self,
        message: str,
        *,
        entity: str | None = None,
        shard_index: int | None = None,
    ) -> None:
        self.message = message
        self.entity = entity
        self.shard_index = shard_index
        super().__init__(message)


class SitemapGenerationCancelledError(SitemapGenerationError):
    """Raised when a cancellation request is observed between shards."""


class SitemapProtocolError(Exception):
    """Base exception for output that would violate the sitemap protocol."""


class SitemapLimitExceededError(SitemapProtocolError):
    """Raised when a urlset or index would exceed the 50,000 entry limit."""

    def __init__(self, message: str, *, count: int, limit: int) -> None:
        self.count = count
        self.limit = limit
        super().__init__(message)


class SitemapIndexIntegrityError(SitemapProtocolError):
    """Raised when published shard indices are not contiguous from zero."""


__all__ = [
    "SitemapGenerationCancelledError",
    "SitemapGenerationError",
    "SitemapIndexIntegrityError",
    "SitemapLimitExceededError",
    "SitemapProtocolError",
]
