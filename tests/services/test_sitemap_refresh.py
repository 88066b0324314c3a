"""Tests for full sitemap regeneration against SQLite and an in-memory store."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any
from uuid import uuid4

import pytest
from lxml import etree  # type: ignore[import-untyped]
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from sitemap_refresher.config import Settings
from sitemap_refresher.database import SessionScopeFactory
from sitemap_refresher.models import Base, Story, Tag, User
from sitemap_refresher.services.entity_generator import (
    EntityGenerationResult,
    GenerationResult,
    SitemapEntity,
)
from sitemap_refresher.services.object_store import ObjectStoreError
from sitemap_refresher.services.presets import PRESET_PAGES
from sitemap_refresher.services.sitemap_errors import (
    SitemapGenerationCancelledError,
    SitemapGenerationError,
    SitemapIndexIntegrityError,
    SitemapLimitExceededError,
)
from sitemap_refresher.services.sitemap_refresh import (
    INDEX_KEY,
    SitemapRefreshService,
    build_index_entries,
)
from sitemap_refresher.services.sitemap_xml import SITEMAP_NAMESPACE

GENERATED_AT = datetime(2026, 10, 19, 3, 0, tzinfo=UTC)
SITEMAPS_URL = "https://sitemaps.storiny.test"


@asynccontextmanager
async def _seeded_scope(
    database_path: Path, *, entity_count: int = 5
) -> AsyncIterator[SessionScopeFactory]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{database_path}")
    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )

    @asynccontextmanager
    async def scoped_session() -> AsyncIterator[AsyncSession]:
        session = session_factory()
        try:
            yield session
        finally:
            await session.close()

    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)

    async with session_factory() as session:
        for index in range(entity_count):
            user = User(
                username=f"writer{index}",
                follower_count=index,
                avatar_id=uuid4(),
            )
            session.add(user)
            session.add(
                Story(
                    user=user,
                    slug=f"story-{index}",
                    read_count=index,
                    published_at=GENERATED_AT - timedelta(days=index),
                )
            )
            session.add(Tag(name=f"tag{index}", follower_count=index))
        await session.commit()

    try:
        yield scoped_session
    finally:
        await engine.dispose()


def _service(
    settings: Settings,
    object_store: Any,
    scope: SessionScopeFactory,
    **kwargs: Any,
) -> SitemapRefreshService:
    return SitemapRefreshService(
        settings=settings,
        object_store=object_store,
        session_factory=scope,
        clock=lambda: GENERATED_AT,
        **kwargs,
    )


def _index_locations(object_store: Any, bucket: str) -> list[str]:
    root = etree.fromstring(object_store.objects(bucket)[INDEX_KEY].document)
    return [
        element.text for element in root.iter(f"{{{SITEMAP_NAMESPACE}}}loc")
    ]


@pytest.mark.asyncio
async def test_refresh_publishes_one_shard_per_entity_and_index(
    tmp_path: Path, settings: Settings, object_store: Any
) -> None:
    bucket = settings.SITEMAPS_BUCKET
    async with _seeded_scope(tmp_path / "refresh.sqlite") as scope:
        report = await _service(settings, object_store, scope).refresh()

    assert report.file_count == 5
    assert report.url_count == len(PRESET_PAGES) + 15
    assert report.generated_at == GENERATED_AT
    assert sorted(object_store.objects(bucket)) == [
        "index.xml",
        "presets.xml",
        "stories-0.xml",
        "tags-0.xml",
        "users-0.xml",
    ]
    assert object_store.put_keys[-1] == INDEX_KEY
    assert _index_locations(object_store, bucket) == [
        f"{SITEMAPS_URL}/presets.xml",
        f"{SITEMAPS_URL}/stories-0.xml",
        f"{SITEMAPS_URL}/users-0.xml",
        f"{SITEMAPS_URL}/tags-0.xml",
    ]
    assert report.entity_result(SitemapEntity.STORIES).url_count == 5
    assert report.as_dict()["entities"]["users"] == {
        "file_count": 1,
        "url_count": 5,
        "ceiling_reached": False,
    }


@pytest.mark.asyncio
async def test_refresh_removes_objects_from_previous_run(
    tmp_path: Path, settings: Settings, object_store: Any
) -> None:
    bucket = settings.SITEMAPS_BUCKET
    object_store.objects(bucket)["stories-7.xml"] = object()
    object_store.objects(bucket)["stale.txt"] = object()

    async with _seeded_scope(tmp_path / "stale.sqlite") as scope:
        report = await _service(settings, object_store, scope).refresh()

    assert report.deleted_objects == 2
    assert "stories-7.xml" not in object_store.objects(bucket)
    assert "stale.txt" not in object_store.objects(bucket)


@pytest.mark.asyncio
async def test_refresh_splits_entities_into_contiguous_shards(
    tmp_path: Path, settings: Settings, object_store: Any
) -> None:
    bucket = settings.SITEMAPS_BUCKET
    async with _seeded_scope(tmp_path / "chunks.sqlite") as scope:
        report = await _service(settings, object_store, scope, chunk_size=2).refresh()

    assert report.entity_result(SitemapEntity.TAGS).shard_keys == (
        "tags-0.xml",
        "tags-1.xml",
        "tags-2.xml",
    )
    assert report.file_count == 1 + 3 * 3 + 1
    locations = _index_locations(object_store, bucket)
    assert len(locations) == report.file_count - 1
    assert locations[1:4] == [
        f"{SITEMAPS_URL}/stories-0.xml",
        f"{SITEMAPS_URL}/stories-1.xml",
        f"{SITEMAPS_URL}/stories-2.xml",
    ]


@pytest.mark.asyncio
async def test_refresh_respects_configured_shard_ceiling(
    tmp_path: Path, settings: Settings, object_store: Any
) -> None:
    async with _seeded_scope(tmp_path / "ceiling.sqlite") as scope:
        report = await _service(
            settings,
            object_store,
            scope,
            chunk_size=2,
            max_shards={SitemapEntity.USERS: 1},
        ).refresh()

    users = report.entity_result(SitemapEntity.USERS)
    assert users.shard_keys == ("users-0.xml",)
    assert users.url_count == 2
    assert users.ceiling_reached is True


@pytest.mark.asyncio
async def test_refresh_with_empty_tables_publishes_presets_only(
    tmp_path: Path, settings: Settings, object_store: Any
) -> None:
    async with _seeded_scope(tmp_path / "empty.sqlite", entity_count=0) as scope:
        report = await _service(settings, object_store, scope).refresh()

    assert report.file_count == 2
    assert report.url_count == len(PRESET_PAGES)
    assert _index_locations(object_store, settings.SITEMAPS_BUCKET) == [
        f"{SITEMAPS_URL}/presets.xml"
    ]


@pytest.mark.asyncio
async def test_refresh_failure_does_not_publish_index(
    tmp_path: Path, settings: Settings, object_store: Any
) -> None:
    object_store.fail_on_keys.add("users-0.xml")

    async with _seeded_scope(tmp_path / "failure.sqlite") as scope:
        with pytest.raises(SitemapGenerationError) as exc_info:
            await _service(settings, object_store, scope).refresh()

    assert exc_info.value.entity == "users"
    assert INDEX_KEY not in object_store.put_keys
    assert {"presets.xml", "stories-0.xml", "tags-0.xml"} <= set(object_store.put_keys)


@pytest.mark.asyncio
async def test_refresh_wraps_delete_failure(
    tmp_path: Path, settings: Settings, object_store: Any
) -> None:
    object_store.fail_on_delete = True

    async with _seeded_scope(tmp_path / "delete.sqlite") as scope:
        with pytest.raises(SitemapGenerationError) as exc_info:
            await _service(settings, object_store, scope).refresh()

    assert isinstance(exc_info.value.__cause__, ObjectStoreError)
    assert object_store.put_keys == []


@pytest.mark.asyncio
async def test_refresh_observes_cancel_event(
    tmp_path: Path, settings: Settings, object_store: Any
) -> None:
    cancel_event = asyncio.Event()
    cancel_event.set()

    async with _seeded_scope(tmp_path / "cancel.sqlite") as scope:
        with pytest.raises(SitemapGenerationCancelledError):
            await _service(settings, object_store, scope).refresh(
                cancel_event=cancel_event
            )

    assert INDEX_KEY not in object_store.put_keys


def test_build_index_entries_orders_entities_and_stamps_lastmod() -> None:
    results = [
        EntityGenerationResult(SitemapEntity.TAGS, (0,), 3),
        EntityGenerationResult(SitemapEntity.USERS, (), 0),
        EntityGenerationResult(SitemapEntity.STORIES, (0, 1), 7),
        EntityGenerationResult(SitemapEntity.PRESETS, (0,), 9),
    ]

    entries = build_index_entries(
        results, sitemaps_server_url=f"{SITEMAPS_URL}/", last_modified=GENERATED_AT
    )

    assert [entry.location for entry in entries] == [
        f"{SITEMAPS_URL}/presets.xml",
        f"{SITEMAPS_URL}/stories-0.xml",
        f"{SITEMAPS_URL}/stories-1.xml",
        f"{SITEMAPS_URL}/tags-0.xml",
    ]
    assert {entry.last_modified for entry in entries} == {GENERATED_AT}
    assert GenerationResult.total(result.totals for result in results) == (
        GenerationResult(shard_count=4, url_count=19)
    )


def test_build_index_entries_rejects_gaps_and_missing_entities() -> None:
    complete = [
        EntityGenerationResult(SitemapEntity.PRESETS, (0,), 9),
        EntityGenerationResult(SitemapEntity.STORIES, (0, 2), 4),
        EntityGenerationResult(SitemapEntity.USERS, (), 0),
        EntityGenerationResult(SitemapEntity.TAGS, (), 0),
    ]

    with pytest.raises(SitemapIndexIntegrityError, match="stories"):
        build_index_entries(
            complete, sitemaps_server_url=SITEMAPS_URL, last_modified=GENERATED_AT
        )
    with pytest.raises(SitemapIndexIntegrityError, match="tags"):
        build_index_entries(
            complete[:1], sitemaps_server_url=SITEMAPS_URL, last_modified=GENERATED_AT
        )


@pytest.mark.asyncio
async def test_refresh_refuses_index_over_protocol_limit(
    tmp_path: Path, settings: Settings, object_store: Any, monkeypatch: Any
) -> None:
    monkeypatch.setattr(
        "sitemap_refresher.services.sitemap_xml.MAX_INDEX_ENTRIES", 3
    )

    async with _seeded_scope(tmp_path / "limit.sqlite") as scope:
        with pytest.raises(SitemapLimitExceededError):
            await _service(settings, object_store, scope, chunk_size=2).refresh()

    assert INDEX_KEY not in object_store.put_keys
