"""Service layer for sitemap generation and publication."""

from sitemap_refresher.services.chunk_fetcher import (
    CHUNK_SIZE,
    ChunkFetcher,
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
    change_frequency_for,
    map_story_row,
    map_tag_row,
    map_user_row,
)
from sitemap_refresher.services.object_store import (
    ObjectStore,
    ObjectStoreError,
    S3ObjectStore,
)
from sitemap_refresher.services.presets import PRESET_PAGES, generate_preset_sitemap
from sitemap_refresher.services.shard_writer import PublishedShard, ShardWriter
from sitemap_refresher.services.sitemap_errors import (
    SitemapGenerationCancelledError,
    SitemapGenerationError,
    SitemapIndexIntegrityError,
    SitemapLimitExceededError,
    SitemapProtocolError,
)
from sitemap_refresher.services.sitemap_refresh import (
    INDEX_KEY,
    SitemapRefreshReport,
    SitemapRefreshService,
    build_index_entries,
)
from sitemap_refresher.services.sitemap_xml import (
    ChangeFrequency,
    SitemapImage,
    SitemapIndexEntry,
    UrlEntry,
    build_sitemap_index_xml,
    build_urlset_xml,
    gzip_compress,
)

__all__ = [
    "CHUNK_SIZE",
    "ChangeFrequency",
    "ChunkFetcher",
    "EntityDefinition",
    "EntityGenerationResult",
    "EntitySitemapGenerator",
    "GenerationResult",
    "INDEX_KEY",
    "ObjectStore",
    "ObjectStoreError",
    "PRESET_PAGES",
    "PublishedShard",
    "S3ObjectStore",
    "STORY_MAX_SHARDS",
    "ShardWriter",
    "SitemapEntity",
    "SitemapGenerationCancelledError",
    "SitemapGenerationError",
    "SitemapImage",
    "SitemapIndexEntry",
    "SitemapIndexIntegrityError",
    "SitemapLimitExceededError",
    "SitemapProtocolError",
    "SitemapRefreshReport",
    "SitemapRefreshService",
    "SqlChunkFetcher",
    "TAG_MAX_SHARDS",
    "USER_MAX_SHARDS",
    "UrlEntry",
    "build_index_entries",
    "build_sitemap_index_xml",
    "build_urlset_xml",
    "change_frequency_for",
    "generate_preset_sitemap",
    "gzip_compress",
    "map_story_row",
    "map_tag_row",
    "map_user_row",
]
