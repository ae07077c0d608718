"""Adopt extra files already on disk into the tracked set.

Runs before the first reconciliation of a library that already has
hand-placed or previously generated files. Every registered consumer gets
a look at every file; episode-level files must resolve to exactly one media
file or they stay untracked.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from .errors import ParseError
from .models import MEDIA_FILE_KINDS, ExtraFileRecord, LibraryItem, MediaFile
from .parsing import find_media_files, parse_episode_reference

if TYPE_CHECKING:
    from .consumers import ConsumerRegistry

log = logger.bind(stage="existing")


class ExistingExtraFileService:
    def __init__(self, registry: ConsumerRegistry) -> None:
        self.registry = registry

    def process_files(
        self,
        item: LibraryItem,
        media_files: list[MediaFile],
        paths: list[Path],
    ) -> list[ExtraFileRecord]:
        """Classify files found under an item's folder into draft records."""
        log.debug(f"Looking for existing extra files in {item.path}")

        records: list[ExtraFileRecord] = []

        for path in paths:
            for consumer in self.registry.available():
                try:
                    draft = consumer.recognize_existing_file(item, path)
                except Exception as e:
                    log.warning(f"{consumer.name} failed to inspect {path}: {e}")
                    continue

                if draft is None:
                    continue

                if draft.kind in MEDIA_FILE_KINDS:
                    draft = self._attach_media_file(draft, path, media_files)
                    if draft is None:
                        continue

                records.append(draft)

        log.info(f"Found {len(records)} existing extra files for {item}")
        return records

    def _attach_media_file(
        self,
        draft: ExtraFileRecord,
        path: Path,
        media_files: list[MediaFile],
    ) -> ExtraFileRecord | None:
        try:
            reference = parse_episode_reference(path.name)
        except ParseError:
            log.debug(f"Unable to parse extra file: {path}")
            return None

        matches = find_media_files(reference, media_files)

        if not matches:
            log.debug(f"Cannot find related media files for: {path}")
            return None

        if len({mf.id for mf in matches}) > 1:
            log.debug(f"Extra file: {path} does not match existing files.")
            return None

        return replace(
            draft,
            grouping_key=reference.grouping_key,
            media_file_id=matches[0].id,
        )
