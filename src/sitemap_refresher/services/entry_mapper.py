"""Row to sitemap URL entry mapping for each entity type."""

from __future__ import annotations

import calendar
import logging
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Final, Protocol
from urllib.parse import quote
from uuid import UUID

from sitemap_refresher.services.sitemap_xml import (
    ChangeFrequency,
    SitemapImage,
    UrlEntry,
)

ENTITY_URL_PRIORITY: Final[float] = 0.4
RECENT_EDIT_WINDOW: Final[timedelta] = timedelta(weeks=1)
STALE_EDIT_WINDOW_MONTHS: Final[int] = 6

_mapper_logger = logging.getLogger("sitemap_refresher.entry_mapper")


class ImageSize(str, Enum):
    """CDN rendition widths used for profile images."""

    W320 = "w@320"
    W960 = "w@960"


class StoryRow(Protocol):
    username: str
    slug: str
    published_at: datetime | None
    edited_at: datetime | None


class UserRow(Protocol):
    username: str
    avatar_id: UUID | None
    banner_id: UUID | None


class TagRow(Protocol):
    name: str


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _months_before(value: datetime, months: int) -> datetime:
    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def change_frequency_for(
    timestamp: datetime | None, *, now: datetime
) -> ChangeFrequency:
    """Bucket a story by how recently it was edited or published."""

    if timestamp is None:
        return ChangeFrequency.YEARLY

    timestamp = _as_utc(timestamp)
    now = _as_utc(now)
    if timestamp >= now - RECENT_EDIT_WINDOW:
        return ChangeFrequency.WEEKLY
    if timestamp >= _months_before(now, STALE_EDIT_WINDOW_MONTHS):
        return ChangeFrequency.MONTHLY
    return ChangeFrequency.YEARLY


def _join_url(base_url: str, *segments: str) -> str | None:
    if any(not segment for segment in segments):
        return None
    path = "/".join(quote(segment, safe="") for segment in segments)
    return f"{base_url.rstrip('/')}/{path}"


def cdn_image_url(cdn_server_url: str, key: UUID | str, size: ImageSize) -> str:
    return f"{cdn_server_url.rstrip('/')}/{size.value}/{key}"


def _build_entry(
    location: str | None,
    *,
    change_frequency: ChangeFrequency,
    last_modified: datetime | None = None,
    images: tuple[SitemapImage, ...] = (),
) -> UrlEntry | None:
    if location is None:
        _mapper_logger.warning("sitemap_entry_skipped", extra={"reason": "empty_path"})
        return None

    try:
        return UrlEntry(
            location=location,
            change_frequency=change_frequency,
            priority=ENTITY_URL_PRIORITY,
            last_modified=last_modified,
            images=images,
        )
    except ValueError as exc:
        _mapper_logger.warning(
            "sitemap_entry_skipped",
            extra={"location": location, "reason": str(exc)},
        )
        return None


def map_story_row(
    row: StoryRow, *, web_server_url: str, now: datetime
) -> UrlEntry | None:
    """Map a story row to ``{web}/{username}/{slug}``."""

    return _build_entry(
        _join_url(web_server_url, row.username, row.slug),
        change_frequency=change_frequency_for(
            row.edited_at or row.published_at, now=now
        ),
        last_modified=row.edited_at,
    )


def map_user_row(
    row: UserRow, *, web_server_url: str, cdn_server_url: str
) -> UrlEntry | None:
    """Map a user row to a profile URL with avatar and banner images."""

    try:
        images: list[SitemapImage] = []
        if row.avatar_id is not None:
            images.append(
                SitemapImage(cdn_image_url(cdn_server_url, row.avatar_id, ImageSize.W320))
            )
        if row.banner_id is not None:
            images.append(
                SitemapImage(cdn_image_url(cdn_server_url, row.banner_id, ImageSize.W960))
            )
    except ValueError as exc:
        _mapper_logger.warning(
            "sitemap_entry_skipped",
            extra={"username": row.username, "reason": str(exc)},
        )
        return None

    return _build_entry(
        _join_url(web_server_url, row.username),
        change_frequency=ChangeFrequency.MONTHLY,
        images=tuple(images),
    )


def map_tag_row(row: TagRow, *, web_server_url: str) -> UrlEntry | None:
    return _build_entry(
        _join_url(web_server_url, "tag", row.name),
        change_frequency=ChangeFrequency.MONTHLY,
    )


__all__ = [
    "ENTITY_URL_PRIORITY",
    "ImageSize",
    "StoryRow",
    "TagRow",
    "UserRow",
    "cdn_image_url",
    "change_frequency_for",
    "map_story_row",
    "map_tag_row",
    "map_user_row",
]
