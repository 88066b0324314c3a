"""Shared fixtures: settings and an in-memory object store."""

from __future__ import annotations

import gzip
import os
from dataclasses import dataclass

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.sqlite")

from sitemap_refresher.config import Settings
from sitemap_refresher.services.object_store import ObjectStoreError


@dataclass(slots=True, frozen=True)
class StoredObject:
    body: bytes
    content_type: str
    content_encoding: str
    content_disposition: str

    @property
    def document(self) -> bytes:
        return gzip.decompress(self.body)


class InMemoryObjectStore:
    """Object store double that keeps uploads in a dict per bucket."""

    def __init__(self) -> None:
        self.buckets: dict[str, dict[str, StoredObject]] = {}
        self.put_keys: list[str] = []
        self.fail_on_keys: set[str] = set()
        self.fail_on_delete = False

    def objects(self, bucket: str) -> dict[str, StoredObject]:
        return self.buckets.setdefault(bucket, {})

    async def delete_by_prefix(self, bucket: str, prefix: str | None = None) -> int:
        if self.fail_on_delete:
            raise ObjectStoreError(
                "delete failed", operation="delete_objects", bucket=bucket
            )
        stored = self.objects(bucket)
        doomed = [key for key in stored if prefix is None or key.startswith(prefix)]
        for key in doomed:
            del stored[key]
        return len(doomed)

    async def put_object(
        self,
        bucket: str,
        key: str,
        body: bytes,
        *,
        content_type: str,
        content_encoding: str,
        content_disposition: str,
    ) -> None:
        if key in self.fail_on_keys:
            raise ObjectStoreError(
                f"upload of {key} failed",
                operation="put_object",
                bucket=bucket,
                key=key,
            )
        self.put_keys.append(key)
        self.objects(bucket)[key] = StoredObject(
            body=body,
            content_type=content_type,
            content_encoding=content_encoding,
            content_disposition=content_disposition,
        )


@pytest.fixture
def object_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite+aiosqlite:///./test.sqlite",
        WEB_SERVER_URL="https://storiny.test/",
        CDN_SERVER_URL="https://cdn.storiny.test",
        SITEMAPS_SERVER_URL="https://sitemaps.storiny.test",
        SITEMAPS_BUCKET="sitemaps-test",
        SITEMAP_GZIP_COMPRESSION_LEVEL=1,
        SITEMAP_REFRESH_INTERVAL_SECONDS=None,
    )
