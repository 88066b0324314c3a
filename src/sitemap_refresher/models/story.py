"""Story ORM model (read-only view used by sitemap generation)."""

from __future__ import annotations

from datetime import datetime
from enum import IntEnum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sitemap_refresher.models.base import Base, BigIntegerPK

if TYPE_CHECKING:
    from sitemap_refresher.models.user import User


class StoryVisibility(IntEnum):
    """Visibility levels stored on stories."""

    UNLISTED = 1
    PUBLIC = 2


class Story(Base):
    """Story written by a user and served at ``/{username}/{slug}``."""

    __tablename__ = "stories"
    __table_args__ = (
        Index("ix_stories_user_id", "user_id"),
        Index("ix_stories_read_count", "read_count"),
    )

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    slug: Mapped[str] = mapped_column(String(320), nullable=False)
    visibility: Mapped[int] = mapped_column(
        Integer, default=int(StoryVisibility.PUBLIC), nullable=False
    )
    read_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    edited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    user: Mapped[User] = relationship(back_populates="stories")


__all__ = ["Story", "StoryVisibility"]
