"""Tag ORM model."""

from __future__ import annotations

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from sitemap_refresher.models.base import Base, BigIntegerPK


class Tag(Base):
    """Topic tag with a public page at ``/tag/{name}``."""

    __tablename__ = "tags"
    __table_args__ = (Index("ix_tags_follower_count", "follower_count"),)

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    follower_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


__all__ = ["Tag"]
