"""Tests for sitemap document publishing."""

from __future__ import annotations

from typing import Any

import pytest
from lxml import etree  # type: ignore[import-untyped]

from sitemap_refresher.services.shard_writer import (
    SITEMAP_CONTENT_ENCODING,
    SITEMAP_CONTENT_TYPE,
    ShardWriter,
    content_disposition_for,
)
from sitemap_refresher.services.sitemap_xml import (
    SITEMAP_NAMESPACE,
    ChangeFrequency,
    SitemapIndexEntry,
    UrlEntry,
)

BUCKET = "sitemaps-test"


def _entries(count: int) -> list[UrlEntry]:
    return [
        UrlEntry(
            location=f"https://storiny.test/tag/tag-{index}",
            change_frequency=ChangeFrequency.MONTHLY,
            priority=0.4,
        )
        for index in range(count)
    ]


@pytest.mark.asyncio
async def test_write_publishes_gzip_document_with_headers(object_store: Any) -> None:
    writer = ShardWriter(object_store, bucket=BUCKET, compresslevel=1)

    shard = await writer.write("tags-0.xml", _entries(3))

    stored = object_store.objects(BUCKET)["tags-0.xml"]
    assert stored.content_type == SITEMAP_CONTENT_TYPE == "application/xml"
    assert stored.content_encoding == SITEMAP_CONTENT_ENCODING == "gzip"
    assert stored.content_disposition == 'attachment; filename="tags-0.xml"'
    assert shard.key == "tags-0.xml"
    assert shard.entry_count == 3
    assert shard.compressed_bytes == len(stored.body)
    assert shard.uncompressed_bytes == len(stored.document)

    root = etree.fromstring(stored.document)
    assert len(root.findall(f"{{{SITEMAP_NAMESPACE}}}url")) == 3


@pytest.mark.asyncio
async def test_write_refuses_empty_shard(object_store: Any) -> None:
    writer = ShardWriter(object_store, bucket=BUCKET)

    with pytest.raises(ValueError, match="empty"):
        await writer.write("tags-0.xml", [])

    assert object_store.put_keys == []


@pytest.mark.asyncio
async def test_write_index_publishes_sitemapindex(object_store: Any) -> None:
    writer = ShardWriter(object_store, bucket=BUCKET, compresslevel=1)

    await writer.write_index(
        "index.xml",
        [SitemapIndexEntry("https://sitemaps.storiny.test/presets.xml")],
    )

    stored = object_store.objects(BUCKET)["index.xml"]
    root = etree.fromstring(stored.document)
    assert root.tag == f"{{{SITEMAP_NAMESPACE}}}sitemapindex"
    assert stored.content_disposition == content_disposition_for("index.xml")
