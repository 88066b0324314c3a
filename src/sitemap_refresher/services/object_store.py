"""S3-compatible object store client used to publish sitemap files."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, Any, Final, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

if TYPE_CHECKING:
    from sitemap_refresher.config import Settings

DELETE_BATCH_SIZE: Final[int] = 1_000

_store_logger = logging.getLogger("sitemap_refresher.object_store")


class ObjectStoreError(Exception):
    """Raised when an object store request fails."""

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        bucket: str,
        key: str | None = None,
    ) -> None:
        self.message = message
        self.operation = operation
        self.bucket = bucket
        self.key = key
        super().__init__(message)


class ObjectStore(Protocol):
    async def delete_by_prefix(self, bucket: str, prefix: str | None = None) -> int: ...

    async def put_object(
        self,
        bucket: str,
        key: str,
        body: bytes,
        *,
        content_type: str,
        content_encoding: str,
        content_disposition: str,
    ) -> None: ...


def _batched(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class S3ObjectStore:
    """Thin wrapper over a boto3 S3 client with async entry points."""

    def __init__(self, client: Any) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> S3ObjectStore:
        secret_access_key = (
            settings.S3_SECRET_ACCESS_KEY.get_secret_value()
            if settings.S3_SECRET_ACCESS_KEY is not None
            else None
        )
        client = boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL,
            region_name=settings.S3_REGION,
            aws_access_key_id=settings.S3_ACCESS_KEY_ID,
            aws_secret_access_key=secret_access_key,
        )
        return cls(client)

    def _list_keys_sync(self, bucket: str, prefix: str | None) -> Iterator[list[str]]:
        paginator = self._client.get_paginator("list_objects_v2")
        paginate_kwargs: dict[str, str] = {"Bucket": bucket}
        if prefix:
            paginate_kwargs["Prefix"] = prefix

        for page in paginator.paginate(**paginate_kwargs):
            yield [item["Key"] for item in page.get("Contents", [])]

    def delete_by_prefix_sync(self, bucket: str, prefix: str | None = None) -> int:
        deleted_count = 0
        try:
            for page_keys in self._list_keys_sync(bucket, prefix):
                for batch in _batched(page_keys, DELETE_BATCH_SIZE):
                    response = self._client.delete_objects(
                        Bucket=bucket,
                        Delete={
                            "Objects": [{"Key": key} for key in batch],
                            "Quiet": True,
                        },
                    )
                    errors = response.get("Errors") or []
                    if errors:
                        raise ObjectStoreError(
                            f"Failed to delete {len(errors)} object(s) from {bucket}",
                            operation="delete_objects",
                            bucket=bucket,
                            key=errors[0].get("Key"),
                        )
                    deleted_count += len(batch)
        except (BotoCoreError, ClientError) as exc:
            raise ObjectStoreError(
                f"Failed to delete objects from {bucket}: {exc}",
                operation="delete_objects",
                bucket=bucket,
            ) from exc

        _store_logger.debug(
            "object_store_prefix_deleted",
            extra={"bucket": bucket, "prefix": prefix, "deleted_objects": deleted_count},
        )
        return deleted_count

    def put_object_sync(
        self,
        bucket: str,
        key: str,
        body: bytes,
        *,
        content_type: str,
        content_encoding: str,
        content_disposition: str,
    ) -> None:
        try:
            self._client.put_object(
                Bucket=bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
                ContentEncoding=content_encoding,
                ContentDisposition=content_disposition,
            )
        except (BotoCoreError, ClientError) as exc:
            raise ObjectStoreError(
                f"Failed to upload {key} to {bucket}: {exc}",
                operation="put_object",
                bucket=bucket,
                key=key,
            ) from exc

    async def delete_by_prefix(self, bucket: str, prefix: str | None = None) -> int:
        return await asyncio.to_thread(self.delete_by_prefix_sync, bucket, prefix)

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
        await asyncio.to_thread(
            self.put_object_sync,
            bucket,
            key,
            body,
            content_type=content_type,
            content_encoding=content_encoding,
            content_disposition=content_disposition,
        )


__all__ = [
    "DELETE_BATCH_SIZE",
    "ObjectStore",
    "ObjectStoreError",
    "S3ObjectStore",
]
