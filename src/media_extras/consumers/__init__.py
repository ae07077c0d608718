"""Metadata consumers -- plugins that decide which extra files a show gets.

A consumer only describes desired output (documents, image sources, paths);
the reconciliation engine does all disk work. Dispatch is a stable
iteration over a ConsumerRegistry, never a lookup by type name.

Submodules:
    kodi -- Kodi/XBMC layout: tvshow.nfo, poster/banner/fanart.jpg,
            seasonNN-*.jpg, per-episode .nfo and -thumb.jpg
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from loguru import logger

from ..errors import ConfigError
from ..models import (
    ExtraFileRecord,
    ImageFileResult,
    LibraryItem,
    MediaFile,
    MetadataFileResult,
)

if TYPE_CHECKING:
    from pathlib import Path

    from ..config import ExtrasConfig

log = logger.bind(stage="consumers")


class MetadataConsumer:
    """Base consumer. Subclasses set ``name`` and override what they produce."""

    name: str = ""

    def item_metadata(self, item: LibraryItem) -> MetadataFileResult | None:
        return None

    def item_images(self, item: LibraryItem) -> list[ImageFileResult]:
        return []

    def grouping_images(
        self, item: LibraryItem, grouping_key: int
    ) -> list[ImageFileResult]:
        return []

    def media_file_metadata(
        self, item: LibraryItem, media_file: MediaFile
    ) -> MetadataFileResult | None:
        return None

    def media_file_images(
        self, item: LibraryItem, media_file: MediaFile
    ) -> list[ImageFileResult]:
        return []

    def relocated_path(
        self, item: LibraryItem, media_file: MediaFile, record: ExtraFileRecord
    ) -> str:
        """Relative path a media-file record should have after media_file moved."""
        return record.relative_path

    def recognize_existing_file(
        self, item: LibraryItem, path: Path
    ) -> ExtraFileRecord | None:
        """Draft record if path follows this consumer's naming, else None."""
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"


class ConsumerRegistry:
    """Ordered set of consumers plus the names that are enabled.

    ``enabled=None`` enables every registered consumer.
    """

    def __init__(
        self,
        consumers: Iterable[MetadataConsumer],
        enabled: Iterable[str] | None = None,
    ) -> None:
        self._consumers: list[MetadataConsumer] = []
        seen: set[str] = set()
        for consumer in consumers:
            if not consumer.name:
                raise ConfigError(f"Consumer {consumer!r} has no name")
            if consumer.name in seen:
                raise ConfigError(f"Duplicate consumer name: {consumer.name}")
            seen.add(consumer.name)
            self._consumers.append(consumer)

        if enabled is None:
            self._enabled = set(seen)
        else:
            self._enabled = set(enabled)
            unknown = self._enabled - seen
            if unknown:
                raise ConfigError(f"Unknown consumers enabled: {', '.join(sorted(unknown))}")

        log.debug(
            f"Registry: available={[c.name for c in self._consumers]} "
            f"enabled={sorted(self._enabled)}"
        )

    def available(self) -> list[MetadataConsumer]:
        return list(self._consumers)

    def enabled(self) -> list[MetadataConsumer]:
        return [c for c in self._consumers if c.name in self._enabled]

    def is_enabled(self, name: str) -> bool:
        return name in self._enabled


def build_registry(config: ExtrasConfig) -> ConsumerRegistry:
    """Registry of the built-in consumers, enabled per configuration."""
    from .kodi import KodiConsumer

    return ConsumerRegistry([KodiConsumer()], enabled=config.enabled_consumers)
