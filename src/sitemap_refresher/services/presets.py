"""Fixed set of static pages published as ``presets.xml``."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final

from sitemap_refresher.services.entity_generator import (
    EntityGenerationResult,
    SitemapEntity,
)
from sitemap_refresher.services.shard_writer import ShardWriter
from sitemap_refresher.services.sitemap_errors import (
    SitemapGenerationError,
    SitemapProtocolError,
)
from sitemap_refresher.services.sitemap_xml import ChangeFrequency, UrlEntry

_presets_logger = logging.getLogger("sitemap_refresher.presets")


@dataclass(slots=True, frozen=True)
class PresetPage:
    path: str
    change_frequency: ChangeFrequency
    priority: float


PRESET_PAGES: Final[tuple[PresetPage, ...]] = (
    PresetPage("", ChangeFrequency.DAILY, 1.0),
    PresetPage("explore", ChangeFrequency.DAILY, 0.8),
    PresetPage("about", ChangeFrequency.MONTHLY, 0.6),
    PresetPage("membership", ChangeFrequency.MONTHLY, 0.6),
    PresetPage("brand", ChangeFrequency.YEARLY, 0.3),
    PresetPage("guidelines", ChangeFrequency.YEARLY, 0.3),
    PresetPage("privacy", ChangeFrequency.YEARLY, 0.3),
    PresetPage("terms", ChangeFrequency.YEARLY, 0.3),
    PresetPage("cookie-policy", ChangeFrequency.YEARLY, 0.3),
)


def build_preset_entries(
    web_server_url: str, pages: tuple[PresetPage, ...] = PRESET_PAGES
) -> list[UrlEntry]:
    base_url = web_server_url.rstrip("/")
    return [
        UrlEntry(
            location=f"{base_url}/{page.path}" if page.path else f"{base_url}/",
            change_frequency=page.change_frequency,
            priority=page.priority,
        )
        for page in pages
    ]


async def generate_preset_sitemap(
    shard_writer: ShardWriter,
    *,
    web_server_url: str,
    pages: tuple[PresetPage, ...] = PRESET_PAGES,
) -> EntityGenerationResult:
    """Publish the single presets shard."""

    entries = build_preset_entries(web_server_url, pages)
    key = SitemapEntity.PRESETS.shard_key(0)
    try:
        await shard_writer.write(key, entries)
    except SitemapProtocolError:
        raise
    except Exception as exc:
        raise SitemapGenerationError(
            f"Failed to publish {key}: {exc}",
            entity=SitemapEntity.PRESETS.value,
            shard_index=0,
        ) from exc

    _presets_logger.info(
        "sitemap_entity_generated",
        extra={
            "entity": SitemapEntity.PRESETS.value,
            "shard_count": 1,
            "url_count": len(entries),
        },
    )
    return EntityGenerationResult(
        entity=SitemapEntity.PRESETS,
        shard_indices=(0,),
        url_count=len(entries),
    )


__all__ = [
    "PRESET_PAGES",
    "PresetPage",
    "build_preset_entries",
    "generate_preset_sitemap",
]
