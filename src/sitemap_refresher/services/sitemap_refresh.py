"""Full sitemap regeneration: delete, generate concurrently, publish index."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import partial
from time import perf_counter
from typing import TYPE_CHECKING, Any, Final

from sitemap_refresher.config import Settings
from sitemap_refresher.services.chunk_fetcher import (
    CHUNK_SIZE,
    SqlChunkFetcher,
    story_rows_statement,
    tag_rows_statement,
    user_rows_statement,
)
from sitemap_refresher.services.entity_generator import (
    STORY_MAX_SHARDS,
    TAG_MAX_SHARDS,
    USER_MAX_SHARDS,
    EntityDefinition,
    EntityGenerationResult,
    EntitySitemapGenerator,
    GenerationResult,
    SitemapEntity,
)
from sitemap_refresher.services.entry_mapper import (
    map_story_row,
    map_tag_row,
    map_user_row,
)
from sitemap_refresher.services.object_store import ObjectStore, ObjectStoreError
from sitemap_refresher.services.presets import generate_preset_sitemap
from sitemap_refresher.services.shard_writer import ShardWriter
from sitemap_refresher.services.sitemap_errors import (
    SitemapGenerationCancelledError,
    SitemapGenerationError,
    SitemapIndexIntegrityError,
)
from sitemap_refresher.services.sitemap_xml import SitemapIndexEntry

if TYPE_CHECKING:
    from sitemap_refresher.database import SessionScopeFactory

INDEX_KEY: Final[str] = "index.xml"
INDEX_ENTITY_ORDER: Final[tuple[SitemapEntity, ...]] = (
    SitemapEntity.PRESETS,
    SitemapEntity.STORIES,
    SitemapEntity.USERS,
    SitemapEntity.TAGS,
)
DEFAULT_MAX_SHARDS: Final[Mapping[SitemapEntity, int]] = {
    SitemapEntity.STORIES: STORY_MAX_SHARDS,
    SitemapEntity.USERS: USER_MAX_SHARDS,
    SitemapEntity.TAGS: TAG_MAX_SHARDS,
}

Clock = Callable[[], datetime]

_refresh_logger = logging.getLogger("sitemap_refresher.refresh")


@dataclass(slots=True, frozen=True)
class SitemapRefreshReport:
    """Aggregate outcome of one full regeneration."""

    file_count: int
    url_count: int
    deleted_objects: int
    entities: tuple[EntityGenerationResult, ...]
    index_key: str
    generated_at: datetime
    duration_ms: float

    def entity_result(self, entity: SitemapEntity) -> EntityGenerationResult:
        for result in self.entities:
            if result.entity is entity:
                return result
        raise LookupError(f"No result recorded for {entity.value}")

    def as_dict(self) -> dict[str, Any]:
        return {
            "file_count": self.file_count,
            "url_count": self.url_count,
            "deleted_objects": self.deleted_objects,
            "index_key": self.index_key,
            "generated_at": self.generated_at.isoformat(),
            "duration_ms": self.duration_ms,
            "entities": {
                result.entity.value: {
                    "file_count": result.shard_count,
                    "url_count": result.url_count,
                    "ceiling_reached": result.ceiling_reached,
                }
                for result in self.entities
            },
        }


def _utc_now() -> datetime:
    return datetime.now(UTC)


def build_index_entries(
    results: Iterable[EntityGenerationResult],
    *,
    sitemaps_server_url: str,
    last_modified: datetime,
) -> list[SitemapIndexEntry]:
    """Reference every published shard in presets, stories, users, tags order."""

    results_by_entity = {result.entity: result for result in results}
    base_url = sitemaps_server_url.rstrip("/")
    entries: list[SitemapIndexEntry] = []

    for entity in INDEX_ENTITY_ORDER:
        result = results_by_entity.get(entity)
        if result is None:
            raise SitemapIndexIntegrityError(f"Missing {entity.value} sitemap result")
        if result.shard_indices != tuple(range(result.shard_count)):
            raise SitemapIndexIntegrityError(
                f"{entity.value} shard indices are not contiguous from 0: "
                f"{list(result.shard_indices)}"
            )
        entries.extend(
            SitemapIndexEntry(location=f"{base_url}/{key}", last_modified=last_modified)
            for key in result.shard_keys
        )

    return entries


class SitemapRefreshService:
    """Regenerate and publish every sitemap shard plus the index file."""

    def __init__(
        self,
        *,
        settings: Settings,
        object_store: ObjectStore,
        session_factory: SessionScopeFactory | None = None,
        chunk_size: int = CHUNK_SIZE,
        max_shards: Mapping[SitemapEntity, int] | None = None,
        clock: Clock | None = None,
    ) -> None:
        if session_factory is None:
            from sitemap_refresher.database import session_scope

            session_factory = session_scope

        self._settings = settings
        self._object_store = object_store
        self._session_factory = session_factory
        self._chunk_size = chunk_size
        self._max_shards = {**DEFAULT_MAX_SHARDS, **(max_shards or {})}
        self._clock = clock or _utc_now
        self._shard_writer = ShardWriter(
            object_store,
            bucket=settings.SITEMAPS_BUCKET,
            compresslevel=settings.SITEMAP_GZIP_COMPRESSION_LEVEL,
        )

    def build_entity_definitions(self, *, now: datetime) -> tuple[EntityDefinition, ...]:
        settings = self._settings
        return (
            EntityDefinition(
                entity=SitemapEntity.STORIES,
                fetcher=SqlChunkFetcher(
                    story_rows_statement(), session_factory=self._session_factory
                ),
                map_row=partial(
                    map_story_row, web_server_url=settings.WEB_SERVER_URL, now=now
                ),
                max_shards=self._max_shards[SitemapEntity.STORIES],
            ),
            EntityDefinition(
                entity=SitemapEntity.USERS,
                fetcher=SqlChunkFetcher(
                    user_rows_statement(), session_factory=self._session_factory
                ),
                map_row=partial(
                    map_user_row,
                    web_server_url=settings.WEB_SERVER_URL,
                    cdn_server_url=settings.CDN_SERVER_URL,
                ),
                max_shards=self._max_shards[SitemapEntity.USERS],
            ),
            EntityDefinition(
                entity=SitemapEntity.TAGS,
                fetcher=SqlChunkFetcher(
                    tag_rows_statement(), session_factory=self._session_factory
                ),
                map_row=partial(map_tag_row, web_server_url=settings.WEB_SERVER_URL),
                max_shards=self._max_shards[SitemapEntity.TAGS],
            ),
        )

    async def refresh(
        self, *, cancel_event: asyncio.Event | None = None
    ) -> SitemapRefreshReport:
        started_at = perf_counter()
        generated_at = self._clock()
        bucket = self._settings.SITEMAPS_BUCKET
        _refresh_logger.info("sitemap_refresh_started", extra={"bucket": bucket})

        try:
            deleted_objects = await self._object_store.delete_by_prefix(bucket)
        except ObjectStoreError as exc:
            raise SitemapGenerationError(
                f"Failed to delete previous sitemap files: {exc}"
            ) from exc
        _refresh_logger.debug(
            "sitemap_previous_files_deleted",
            extra={"bucket": bucket, "deleted_objects": deleted_objects},
        )

        generators = [
            EntitySitemapGenerator(
                definition, self._shard_writer, chunk_size=self._chunk_size
            )
            for definition in self.build_entity_definitions(now=generated_at)
        ]
        tasks = [
            asyncio.create_task(
                generate_preset_sitemap(
                    self._shard_writer, web_server_url=self._settings.WEB_SERVER_URL
                )
            ),
            *(
                asyncio.create_task(generator.generate(cancel_event=cancel_event))
                for generator in generators
            ),
        ]
        try:
            results: tuple[EntityGenerationResult, ...] = tuple(
                await asyncio.gather(*tasks)
            )
        except Exception:
            # Sibling generators run to completion; their shards stay published.
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        totals = GenerationResult.total(result.totals for result in results)
        for result in results:
            _refresh_logger.debug(
                "sitemap_entity_summary",
                extra={
                    "entity": result.entity.value,
                    "file_count": result.shard_count,
                    "url_count": result.url_count,
                },
            )

        index_entries = build_index_entries(
            results,
            sitemaps_server_url=self._settings.SITEMAPS_SERVER_URL,
            last_modified=generated_at,
        )

        if cancel_event is not None and cancel_event.is_set():
            raise SitemapGenerationCancelledError(
                "Sitemap refresh cancelled before publishing the index"
            )

        try:
            await self._shard_writer.write_index(INDEX_KEY, index_entries)
        except ObjectStoreError as exc:
            raise SitemapGenerationError(
                f"Failed to publish {INDEX_KEY}: {exc}"
            ) from exc

        report = SitemapRefreshReport(
            file_count=totals.shard_count + 1,
            url_count=totals.url_count,
            deleted_objects=deleted_objects,
            entities=results,
            index_key=INDEX_KEY,
            generated_at=generated_at,
            duration_ms=round((perf_counter() - started_at) * 1000, 2),
        )
        _refresh_logger.info(
            "sitemap_refresh_completed",
            extra={
                "file_count": report.file_count,
                "url_count": report.url_count,
                "index_entries": len(index_entries),
                "duration_ms": report.duration_ms,
            },
        )
        return report


__all__ = [
    "DEFAULT_MAX_SHARDS",
    "INDEX_ENTITY_ORDER",
    "INDEX_KEY",
    "SitemapRefreshReport",
    "SitemapRefreshService",
    "build_index_entries",
]
