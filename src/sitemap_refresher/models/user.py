"""User ORM model (read-only view used by sitemap generation)."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sitemap_refresher.models.base import Base, BigIntegerPK

if TYPE_CHECKING:
    from sitemap_refresher.models.story import Story


class User(Base):
    """Registered user with a public profile page."""

    __tablename__ = "users"
    __table_args__ = (Index("ix_users_follower_count", "follower_count"),)

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(24), unique=True, nullable=False)
    is_private: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    avatar_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))
    banner_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True))
    follower_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    deactivated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    stories: Mapped[list[Story]] = relationship(back_populates="user")


__all__ = ["User"]
