"""ORM model exports."""

from sitemap_refresher.models.base import Base
from sitemap_refresher.models.story import Story, StoryVisibility
from sitemap_refresher.models.tag import Tag
from sitemap_refresher.models.user import User

__all__ = [
    "Base",
    "Story",
    "StoryVisibility",
    "Tag",
    "User",
]
