"""Serialize, compress, and publish sitemap documents."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

from sitemap_refresher.services.object_store import ObjectStore
from sitemap_refresher.services.sitemap_xml import (
    DEFAULT_COMPRESSION_LEVEL,
    SitemapIndexEntry,
    UrlEntry,
    build_sitemap_index_xml,
    build_urlset_xml,
    gzip_compress,
)

SITEMAP_CONTENT_TYPE: Final[str] = "application/xml"
SITEMAP_CONTENT_ENCODING: Final[str] = "gzip"

_writer_logger = logging.getLogger("sitemap_refresher.shard_writer")


@dataclass(slots=True, frozen=True)
class PublishedShard:
    """Object written to the sitemap bucket."""

    key: str
    entry_count: int
    uncompressed_bytes: int
    compressed_bytes: int


def content_disposition_for(key: str) -> str:
    return f'attachment; filename="{key}"'


class ShardWriter:
    """Publish gzip-compressed urlset and index documents to one bucket."""

    def __init__(
        self,
        object_store: ObjectStore,
        *,
        bucket: str,
        compresslevel: int = DEFAULT_COMPRESSION_LEVEL,
    ) -> None:
        self._object_store = object_store
        self._bucket = bucket
        self._compresslevel = compresslevel

    @property
    def bucket(self) -> str:
        return self._bucket

    async def write(self, key: str, entries: Sequence[UrlEntry]) -> PublishedShard:
        if not entries:
            raise ValueError(f"Refusing to publish empty sitemap shard {key}")

        return await self._publish(key, build_urlset_xml(entries), len(entries))

    async def write_index(
        self, key: str, entries: Sequence[SitemapIndexEntry]
    ) -> PublishedShard:
        return await self._publish(key, build_sitemap_index_xml(entries), len(entries))

    async def _publish(
        self, key: str, document: bytes, entry_count: int
    ) -> PublishedShard:
        compressed = gzip_compress(document, compresslevel=self._compresslevel)
        await self._object_store.put_object(
            self._bucket,
            key,
            compressed,
            content_type=SITEMAP_CONTENT_TYPE,
            content_encoding=SITEMAP_CONTENT_ENCODING,
            content_disposition=content_disposition_for(key),
        )
        shard = PublishedShard(
            key=key,
            entry_count=entry_count,
            uncompressed_bytes=len(document),
            compressed_bytes=len(compressed),
        )
        _writer_logger.debug(
            "sitemap_file_published",
            extra={
                "key": key,
                "entry_count": entry_count,
                "uncompressed_bytes": shard.uncompressed_bytes,
                "compressed_bytes": shard.compressed_bytes,
            },
        )
        return shard


__all__ = [
    "PublishedShard",
    "SITEMAP_CONTENT_ENCODING",
    "SITEMAP_CONTENT_TYPE",
    "ShardWriter",
    "content_disposition_for",
]
