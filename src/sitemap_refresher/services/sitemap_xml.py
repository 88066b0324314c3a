"""Sitemap protocol types and urlset/sitemapindex XML assembly."""

from __future__ import annotations

import gzip
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Final
from urllib.parse import urlsplit

from lxml import etree  # type: ignore[import-untyped]

from sitemap_refresher.services.sitemap_errors import SitemapLimitExceededError

SITEMAP_NAMESPACE: Final[str] = "http://www.sitemaps.org/schemas/sitemap/0.9"
IMAGE_NAMESPACE: Final[str] = "http://www.google.com/schemas/sitemap-image/1.1"
MAX_URLSET_ENTRIES: Final[int] = 50_000
MAX_INDEX_ENTRIES: Final[int] = 50_000
MAX_IMAGES_PER_URL: Final[int] = 1_000
DEFAULT_COMPRESSION_LEVEL: Final[int] = 9


class ChangeFrequency(str, Enum):
    """Allowed ``<changefreq>`` values."""

    ALWAYS = "always"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    NEVER = "never"


def is_valid_http_url(url: str) -> bool:
    parsed_url = urlsplit(url)
    return parsed_url.scheme in {"http", "https"} and bool(parsed_url.netloc)


@dataclass(slots=True, frozen=True)
class SitemapImage:
    """Image reference attached to a URL entry."""

    location: str

    def __post_init__(self) -> None:
        if not is_valid_http_url(self.location):
            raise ValueError(f"Invalid image location {self.location!r}")


@dataclass(slots=True, frozen=True)
class UrlEntry:
    """One crawlable URL with its sitemap metadata."""

    location: str
    change_frequency: ChangeFrequency
    priority: float
    last_modified: datetime | None = None
    images: tuple[SitemapImage, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not is_valid_http_url(self.location):
            raise ValueError(f"Invalid URL location {self.location!r}")
        if not 0.0 <= self.priority <= 1.0:
            raise ValueError(f"Priority {self.priority} is outside 0.0-1.0")
        if len(self.images) > MAX_IMAGES_PER_URL:
            raise ValueError(
                f"{len(self.images)} images exceed the {MAX_IMAGES_PER_URL} limit"
            )


@dataclass(slots=True, frozen=True)
class SitemapIndexEntry:
    """Reference to one published sitemap shard."""

    location: str
    last_modified: datetime | None = None


def _sitemap_tag(name: str) -> str:
    return f"{{{SITEMAP_NAMESPACE}}}{name}"


def _image_tag(name: str) -> str:
    return f"{{{IMAGE_NAMESPACE}}}{name}"


def format_w3c_datetime(value: datetime) -> str:
    """Render a timestamp in W3C datetime format, assuming UTC when naive."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="seconds")


def _ensure_within_limit(count: int, *, limit: int, document: str) -> None:
    if count <= limit:
        return
    raise SitemapLimitExceededError(
        f"{document} holds {count} entries; the sitemap protocol allows {limit}",
        count=count,
        limit=limit,
    )


def _serialize(root: etree._Element) -> bytes:
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8")


def build_urlset_xml(entries: Sequence[UrlEntry]) -> bytes:
    """Serialize URL entries into a ``<urlset>`` document."""

    _ensure_within_limit(len(entries), limit=MAX_URLSET_ENTRIES, document="urlset")

    urlset = etree.Element(
        _sitemap_tag("urlset"),
        nsmap={None: SITEMAP_NAMESPACE, "image": IMAGE_NAMESPACE},
    )
    for entry in entries:
        url_element = etree.SubElement(urlset, _sitemap_tag("url"))
        etree.SubElement(url_element, _sitemap_tag("loc")).text = entry.location
        if entry.last_modified is not None:
            etree.SubElement(url_element, _sitemap_tag("lastmod")).text = (
                format_w3c_datetime(entry.last_modified)
            )
        etree.SubElement(url_element, _sitemap_tag("changefreq")).text = (
            entry.change_frequency.value
        )
        etree.SubElement(url_element, _sitemap_tag("priority")).text = (
            f"{entry.priority:.1f}"
        )
        for image in entry.images:
            image_element = etree.SubElement(url_element, _image_tag("image"))
            etree.SubElement(image_element, _image_tag("loc")).text = image.location

    return _serialize(urlset)


def build_sitemap_index_xml(entries: Sequence[SitemapIndexEntry]) -> bytes:
    """Serialize shard references into a ``<sitemapindex>`` document."""

    _ensure_within_limit(
        len(entries), limit=MAX_INDEX_ENTRIES, document="sitemapindex"
    )

    sitemap_index = etree.Element(
        _sitemap_tag("sitemapindex"), nsmap={None: SITEMAP_NAMESPACE}
    )
    for entry in entries:
        sitemap_element = etree.SubElement(sitemap_index, _sitemap_tag("sitemap"))
        etree.SubElement(sitemap_element, _sitemap_tag("loc")).text = entry.location
        if entry.last_modified is not None:
            etree.SubElement(sitemap_element, _sitemap_tag("lastmod")).text = (
                format_w3c_datetime(entry.last_modified)
            )

    return _serialize(sitemap_index)


def gzip_compress(
    payload: bytes, *, compresslevel: int = DEFAULT_COMPRESSION_LEVEL
) -> bytes:
    """Gzip a document with a fixed mtime so equal input gives equal bytes."""

    return gzip.compress(payload, compresslevel=compresslevel, mtime=0)


__all__ = [
    "ChangeFrequency",
    "DEFAULT_COMPRESSION_LEVEL",
    "IMAGE_NAMESPACE",
    "MAX_IMAGES_PER_URL",
    "MAX_INDEX_ENTRIES",
    "MAX_URLSET_ENTRIES",
    "SITEMAP_NAMESPACE",
    "SitemapImage",
    "SitemapIndexEntry",
    "UrlEntry",
    "build_sitemap_index_xml",
    "build_urlset_xml",
    "format_w3c_datetime",
    "gzip_compress",
    "is_valid_http_url",
]
