"""Chunked, ceiling-bounded sitemap shard generation for one entity type."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from time import perf_counter
from typing import Any, Final

from sitemap_refresher.services.chunk_fetcher import CHUNK_SIZE, ChunkFetcher
from sitemap_refresher.services.shard_writer import ShardWriter
from sitemap_refresher.services.sitemap_errors import (
    SitemapGenerationCancelledError,
    SitemapGenerationError,
    SitemapProtocolError,
)
from sitemap_refresher.services.sitemap_xml import UrlEntry

# 15,000 shards x 50,000 entries covers 750M stories or users, 10,000 shards
# covers 500M tags. Going past these needs more than one sitemap index.
STORY_MAX_SHARDS: Final[int] = 15_000
USER_MAX_SHARDS: Final[int] = 15_000
TAG_MAX_SHARDS: Final[int] = 10_000

RowMapper = Callable[[Any], UrlEntry | None]

_generator_logger = logging.getLogger("sitemap_refresher.generator")


class SitemapEntity(str, Enum):
    """Entity families published to the sitemap bucket."""

    PRESETS = "presets"
    STORIES = "stories"
    USERS = "users"
    TAGS = "tags"

    def shard_key(self, shard_index: int) -> str:
        if self is SitemapEntity.PRESETS:
            return "presets.xml"
        return f"{self.value}-{shard_index}.xml"


@dataclass(slots=True, frozen=True)
class GenerationResult:
    """Shard and URL counters; addition is field-wise."""

    shard_count: int = 0
    url_count: int = 0

    def __add__(self, other: object) -> GenerationResult:
        if not isinstance(other, GenerationResult):
            return NotImplemented
        return GenerationResult(
            shard_count=self.shard_count + other.shard_count,
            url_count=self.url_count + other.url_count,
        )

    @classmethod
    def total(cls, results: Iterable[GenerationResult]) -> GenerationResult:
        return sum(results, cls())


@dataclass(slots=True, frozen=True)
class EntityGenerationResult:
    """Published shard indices and URL count for one entity type."""

    entity: SitemapEntity
    shard_indices: tuple[int, ...] = ()
    url_count: int = 0
    ceiling_reached: bool = False

    @property
    def shard_count(self) -> int:
        return len(self.shard_indices)

    @property
    def shard_keys(self) -> tuple[str, ...]:
        return tuple(self.entity.shard_key(index) for index in self.shard_indices)

    @property
    def totals(self) -> GenerationResult:
        return GenerationResult(shard_count=self.shard_count, url_count=self.url_count)


@dataclass(slots=True, frozen=True)
class EntityDefinition:
    """Row source, row mapper, and shard ceiling for one entity type."""

    entity: SitemapEntity
    fetcher: ChunkFetcher
    map_row: RowMapper
    max_shards: int


class EntitySitemapGenerator:
    """Fetch, map, and publish one entity type shard by shard.

    Each step fetches ``chunk_size + 1`` rows; the extra row only signals
    that another page exists and is never published. Shards are written in
    strictly increasing index order and generation stops when a page has no
    overflow row or when ``max_shards`` is reached.
    """

    def __init__(
        self,
        definition: EntityDefinition,
        shard_writer: ShardWriter,
        *,
        chunk_size: int = CHUNK_SIZE,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("Chunk size must be greater than zero")
        if definition.max_shards < 0:
            raise ValueError("Maximum shard count must not be negative")

        self._definition = definition
        self._shard_writer = shard_writer
        self._chunk_size = chunk_size

    @property
    def entity(self) -> SitemapEntity:
        return self._definition.entity

    async def generate(
        self, *, cancel_event: asyncio.Event | None = None
    ) -> EntityGenerationResult:
        entity = self._definition.entity
        started_at = perf_counter()
        shard_indices: list[int] = []
        url_count = 0
        ceiling_reached = False
        page_index = 0

        while True:
            # A page whose rows all fail to map publishes nothing, so shard
            # keys follow the published count rather than the page offset.
            # Pages are bounded by the ceiling too, which caps query count.
            shard_index = len(shard_indices)
            if cancel_event is not None and cancel_event.is_set():
                raise SitemapGenerationCancelledError(
                    f"{entity.value} sitemap generation cancelled",
                    entity=entity.value,
                    shard_index=shard_index,
                )

            if page_index >= self._definition.max_shards:
                ceiling_reached = True
                _generator_logger.warning(
                    "sitemap_shard_ceiling_reached",
                    extra={
                        "entity": entity.value,
                        "max_shards": self._definition.max_shards,
                    },
                )
                break

            entries, has_more = await self._collect_entries(page_index, shard_index)
            if entries:
                await self._publish(shard_index, entries)
                shard_indices.append(shard_index)
                url_count += len(entries)

            if not has_more:
                break
            page_index += 1

        result = EntityGenerationResult(
            entity=entity,
            shard_indices=tuple(shard_indices),
            url_count=url_count,
            ceiling_reached=ceiling_reached,
        )
        _generator_logger.info(
            "sitemap_entity_generated",
            extra={
                "entity": entity.value,
                "shard_count": result.shard_count,
                "url_count": result.url_count,
                "ceiling_reached": ceiling_reached,
                "duration_ms": round((perf_counter() - started_at) * 1000, 2),
            },
        )
        return result

    async def _collect_entries(
        self, page_index: int, shard_index: int
    ) -> tuple[list[UrlEntry], bool]:
        entity = self._definition.entity
        offset = page_index * self._chunk_size
        try:
            rows: Sequence[Any] = await self._definition.fetcher.fetch(
                limit=self._chunk_size + 1, offset=offset
            )
        except Exception as exc:
            raise SitemapGenerationError(
                f"Failed to fetch {entity.value} rows at offset {offset}: {exc}",
                entity=entity.value,
                shard_index=shard_index,
            ) from exc

        has_more = len(rows) > self._chunk_size
        _generator_logger.debug(
            "sitemap_chunk_fetched",
            extra={
                "entity": entity.value,
                "page_index": page_index,
                "row_count": len(rows),
                "has_more": has_more,
            },
        )
        if has_more:
            rows = rows[: self._chunk_size]

        entries: list[UrlEntry] = []
        for row in rows:
            entry = self._definition.map_row(row)
            if entry is not None:
                entries.append(entry)

        return entries, has_more

    async def _publish(self, shard_index: int, entries: list[UrlEntry]) -> None:
        entity = self._definition.entity
        key = entity.shard_key(shard_index)
        try:
            await self._shard_writer.write(key, entries)
        except SitemapProtocolError:
            raise
        except Exception as exc:
            raise SitemapGenerationError(
                f"Failed to publish {key}: {exc}",
                entity=entity.value,
                shard_index=shard_index,
            ) from exc


__all__ = [
    "EntityDefinition",
    "EntityGenerationResult",
    "EntitySitemapGenerator",
    "GenerationResult",
    "RowMapper",
    "STORY_MAX_SHARDS",
    "SitemapEntity",
    "TAG_MAX_SHARDS",
    "USER_MAX_SHARDS",
]
