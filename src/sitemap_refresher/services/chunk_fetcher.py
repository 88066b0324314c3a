"""Offset-paginated row fetching for sitemap shards."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Final, Protocol

from sqlalchemy import Select, select

from sitemap_refresher.models import Story, StoryVisibility, Tag, User

if TYPE_CHECKING:
    from sitemap_refresher.database import SessionScopeFactory

CHUNK_SIZE: Final[int] = 50_000


class ChunkFetcher(Protocol):
    async def fetch(self, *, limit: int, offset: int) -> Sequence[Any]: ...


def story_rows_statement() -> Select[Any]:
    """Published public stories by non-private, active authors, most read first."""

    return (
        select(User.username, Story.slug, Story.published_at, Story.edited_at)
        .join(User, Story.user_id == User.id)
        .where(
            Story.published_at.is_not(None),
            Story.visibility == int(StoryVisibility.PUBLIC),
            Story.deleted_at.is_(None),
            User.is_private.is_(False),
            User.deactivated_at.is_(None),
            User.deleted_at.is_(None),
        )
        .order_by(Story.read_count.desc(), Story.id.asc())
    )


def user_rows_statement() -> Select[Any]:
    """Public, active users, most followed first."""

    return (
        select(User.username, User.avatar_id, User.banner_id)
        .where(
            User.is_private.is_(False),
            User.deactivated_at.is_(None),
            User.deleted_at.is_(None),
        )
        .order_by(User.follower_count.desc(), User.id.asc())
    )


def tag_rows_statement() -> Select[Any]:
    return select(Tag.name).order_by(Tag.follower_count.desc(), Tag.id.asc())


class SqlChunkFetcher:
    """Run one bounded ``LIMIT/OFFSET`` query per shard."""

    def __init__(
        self,
        statement: Select[Any],
        *,
        session_factory: SessionScopeFactory,
    ) -> None:
        self._statement = statement
        self._session_factory = session_factory

    async def fetch(self, *, limit: int, offset: int) -> Sequence[Any]:
        if limit <= 0:
            raise ValueError("Chunk limit must be greater than zero")
        if offset < 0:
            raise ValueError("Chunk offset must not be negative")

        async with self._session_factory() as session:
            result = await session.execute(
                self._statement.limit(limit).offset(offset)
            )
            return result.all()


__all__ = [
    "CHUNK_SIZE",
    "ChunkFetcher",
    "SqlChunkFetcher",
    "story_rows_statement",
    "tag_rows_statement",
    "user_rows_statement",
]
