"""Reconciliation engine -- decide what extra files to write, move or drop.

Given a library item, the records already known for it, and the enabled
consumers, compute each consumer's desired output, diff it against the
records, apply the minimal disk changes and return the records the caller
must persist. The engine never persists anything itself; the only store
call it makes is deleting duplicate rows found during matching.

Errors for a single candidate (one document, one image, one media file) are
logged and the candidate is dropped. Nothing raised here reaches the caller.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from loguru import logger

from .fingerprint import content_hash, path_equals
from .models import (
    MEDIA_FILE_KINDS,
    ExtraFileRecord,
    ExtraKind,
    ImageFileResult,
    LibraryItem,
    MediaFile,
    MetadataFileResult,
)

if TYPE_CHECKING:
    from .clean import CleanExtraFiles
    from .consumers import ConsumerRegistry, MetadataConsumer
    from .disk import DiskProvider
    from .images import ImageAcquirer
    from .store import ExtraFileStore

log = logger.bind(stage="engine")

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _files_for_consumer(
    consumer: MetadataConsumer, records: list[ExtraFileRecord]
) -> list[ExtraFileRecord]:
    return [r for r in records if r.consumer == consumer.name]


class ReconciliationEngine:
    """Per-item extra file reconciliation across all enabled consumers.

    Holds no state between calls beyond its collaborators, so distinct items
    may be reconciled concurrently. Calls for the same item must be
    serialized by the caller.
    """

    def __init__(
        self,
        registry: ConsumerRegistry,
        disk: DiskProvider,
        acquirer: ImageAcquirer,
        store: ExtraFileStore | None = None,
        cleaner: CleanExtraFiles | None = None,
    ) -> None:
        self.registry = registry
        self.disk = disk
        self.acquirer = acquirer
        self.store = store
        self.cleaner = cleaner

    # -- Entry points --

    def full_resync(
        self,
        item: LibraryItem,
        media_files: list[MediaFile],
        existing: list[ExtraFileRecord],
    ) -> list[ExtraFileRecord]:
        """Reconcile every item, grouping and media file output.

        Show and season level outputs are only produced for monitored items.
        """
        # A missing (unmounted) folder would make every record look stale
        if not self.disk.folder_exists(Path(item.path)):
            log.info(f"Item folder does not exist, skipping extra files: {item.path}")
            return []

        if self.cleaner is not None:
            self.cleaner.clean(item)

        files: list[ExtraFileRecord] = []

        for consumer in self.registry.enabled():
            consumer_files = _files_for_consumer(consumer, existing)

            if item.monitored:
                self._add(files, self._process_item_metadata(consumer, item, consumer_files))
                files.extend(self._process_item_images(consumer, item, consumer_files))
                files.extend(self._process_grouping_images(consumer, item, consumer_files))

            for media_file in media_files:
                self._add(
                    files,
                    self._process_media_file_metadata(consumer, item, media_file, consumer_files),
                )
                files.extend(
                    self._process_media_file_images(consumer, item, media_file, consumer_files)
                )

        log.debug(f"Full resync of {item}: {len(files)} extra files to persist")
        return files

    def single_file_metadata(
        self, item: LibraryItem, media_file: MediaFile
    ) -> list[ExtraFileRecord]:
        """Extra files for one freshly imported media file."""
        files: list[ExtraFileRecord] = []

        for consumer in self.registry.enabled():
            self._add(files, self._process_media_file_metadata(consumer, item, media_file, []))
            files.extend(self._process_media_file_images(consumer, item, media_file, []))

        return files

    def resync_after_import(
        self,
        item: LibraryItem,
        item_folder_changed: bool,
        grouping_folder_changed: bool,
        existing: list[ExtraFileRecord],
    ) -> list[ExtraFileRecord]:
        """Redo item and/or grouping outputs after an import created folders."""
        if not item_folder_changed and not grouping_folder_changed:
            return []
        if not item.monitored:
            log.debug(f"Item not monitored, skipping show and season files: {item}")
            return []

        files: list[ExtraFileRecord] = []

        for consumer in self.registry.enabled():
            consumer_files = _files_for_consumer(consumer, existing)

            if item_folder_changed:
                self._add(files, self._process_item_metadata(consumer, item, consumer_files))
                files.extend(self._process_item_images(consumer, item, consumer_files))

            if grouping_folder_changed:
                files.extend(self._process_grouping_images(consumer, item, consumer_files))

        return files

    def relocate_after_rename(
        self,
        item: LibraryItem,
        media_files: list[MediaFile],
        existing: list[ExtraFileRecord],
    ) -> list[ExtraFileRecord]:
        """Move media-file extras to follow renamed media files.

        Runs over every available consumer, enabled or not, since files from
        a since-disabled consumer still sit beside the media file. Returns
        only the records that moved.
        """
        moved: list[ExtraFileRecord] = []
        root = Path(item.path)

        for consumer in self.registry.available():
            consumer_files = _files_for_consumer(consumer, existing)

            for media_file in media_files:
                records = [
                    r
                    for r in consumer_files
                    if r.media_file_id == media_file.id and r.kind in MEDIA_FILE_KINDS
                ]

                for record in records:
                    existing_path = root / record.relative_path
                    try:
                        new_relative = consumer.relocated_path(item, media_file, record)
                        if path_equals(new_relative, record.relative_path):
                            continue
                        self.disk.move(existing_path, root / new_relative)
                    except Exception as e:
                        log.warning(f"Unable to move extra file: {existing_path}. {e}")
                        continue

                    moved.append(
                        replace(record, relative_path=new_relative, last_updated=_utcnow())
                    )

        log.debug(f"Relocated {len(moved)} extra files for {item}")
        return moved

    # -- Identity matching --

    def match_one(
        self,
        item: LibraryItem,
        records: list[ExtraFileRecord],
        consumer: str,
        kind: ExtraKind,
        grouping_key: int | None = None,
        media_file_id: int | None = None,
        relative_path: str | None = None,
    ) -> ExtraFileRecord | None:
        """Find the single record for a slot, deleting any duplicates.

        Filters on consumer, kind and every discriminator that is not None.
        The first match (input order) survives. Every other match is garbage
        from an earlier race or bug: its file and its store row are deleted,
        best-effort, and it is removed from ``records`` so later lookups in
        the same call don't see it. Always leaves zero or one match.
        """
        matches = [
            r
            for r in records
            if r.consumer == consumer
            and r.kind == kind
            and (grouping_key is None or r.grouping_key == grouping_key)
            and (media_file_id is None or r.media_file_id == media_file_id)
            and (relative_path is None or r.relative_path == relative_path)
        ]
        if not matches:
            return None

        for duplicate in matches[1:]:
            path = Path(item.path) / duplicate.relative_path
            log.debug(f"Removing duplicate extra file: {path}")
            records.remove(duplicate)

            # The survivor may share the path; don't delete its file
            if not path_equals(duplicate.relative_path, matches[0].relative_path):
                try:
                    self.disk.delete(path)
                except OSError as e:
                    log.warning(f"Unable to delete duplicate extra file {path}: {e}")

            if duplicate.id is not None and self.store is not None:
                try:
                    self.store.delete(duplicate.id)
                except Exception as e:
                    log.warning(f"Unable to delete duplicate record {duplicate.id}: {e}")

        return matches[0]

    # -- Metadata --

    def _process_item_metadata(
        self,
        consumer: MetadataConsumer,
        item: LibraryItem,
        existing: list[ExtraFileRecord],
    ) -> ExtraFileRecord | None:
        desired = self._guard(item, consumer, "item metadata", consumer.item_metadata, item)
        if desired is None:
            return None

        return self._guard(
            item, consumer, "item metadata", self._apply_item_metadata,
            consumer, item, desired, existing,
        )

    def _apply_item_metadata(
        self,
        consumer: MetadataConsumer,
        item: LibraryItem,
        desired: MetadataFileResult,
        existing: list[ExtraFileRecord],
    ) -> ExtraFileRecord | None:
        root = Path(item.path)
        full_path = root / desired.relative_path
        digest = content_hash(desired.contents)

        record = self.match_one(item, existing, consumer.name, ExtraKind.ITEM_METADATA)

        if record is not None and record.hash == digest:
            if path_equals(record.relative_path, desired.relative_path):
                if self.disk.file_exists(full_path):
                    return None
                log.debug(f"Item metadata missing on disk, rewriting: {full_path}")
            else:
                self._follow_renamed_metadata(root / record.relative_path, full_path, desired, digest)
                return replace(
                    record, relative_path=desired.relative_path, last_updated=_utcnow()
                )

        log.debug(f"Writing item metadata to: {full_path}")
        self._save_metadata_file(full_path, desired.contents)

        if record is None:
            record = ExtraFileRecord(
                item_id=item.id,
                consumer=consumer.name,
                kind=ExtraKind.ITEM_METADATA,
                relative_path=desired.relative_path,
                added=_utcnow(),
            )

        return replace(
            record,
            hash=digest,
            relative_path=desired.relative_path,
            last_updated=_utcnow(),
        )

    def _follow_renamed_metadata(
        self, old_path: Path, full_path: Path, desired: MetadataFileResult, digest: str
    ) -> None:
        """Unchanged content under a new name: end with exactly one file, at full_path."""
        if self.disk.file_exists(full_path):
            # Something already sits at the new name; the record's hash must describe it
            if content_hash(self.disk.read_text(full_path)) != digest:
                log.debug(f"Replacing foreign item metadata at: {full_path}")
                self._save_metadata_file(full_path, desired.contents)
            self.disk.delete(old_path)
        elif self.disk.file_exists(old_path):
            log.debug(f"Moving item metadata {old_path} -> {full_path}")
            self.disk.move(old_path, full_path)
        else:
            self._save_metadata_file(full_path, desired.contents)

    def _process_media_file_metadata(
        self,
        consumer: MetadataConsumer,
        item: LibraryItem,
        media_file: MediaFile,
        existing: list[ExtraFileRecord],
    ) -> ExtraFileRecord | None:
        what = f"metadata for {media_file.relative_path}"
        desired = self._guard(
            item, consumer, what, consumer.media_file_metadata, item, media_file
        )
        if desired is None:
            return None

        return self._guard(
            item, consumer, what, self._apply_media_file_metadata,
            consumer, item, media_file, desired, existing,
        )

    def _apply_media_file_metadata(
        self,
        consumer: MetadataConsumer,
        item: LibraryItem,
        media_file: MediaFile,
        desired: MetadataFileResult,
        existing: list[ExtraFileRecord],
    ) -> ExtraFileRecord | None:
        root = Path(item.path)
        full_path = root / desired.relative_path

        record = self.match_one(
            item,
            existing,
            consumer.name,
            ExtraKind.MEDIA_FILE_METADATA,
            media_file_id=media_file.id,
        )

        # The media file's location is authoritative: follow it before
        # looking at content
        moved = False
        if record is not None:
            existing_path = root / record.relative_path
            if not path_equals(existing_path, full_path):
                if self.disk.file_exists(existing_path):
                    self.disk.move(existing_path, full_path)
                record = replace(record, relative_path=desired.relative_path)
                moved = True

        digest = content_hash(desired.contents)

        if record is not None and record.hash == digest and self.disk.file_exists(full_path):
            return replace(record, last_updated=_utcnow()) if moved else None

        log.debug(f"Writing media file metadata to: {full_path}")
        self._save_metadata_file(full_path, desired.contents)

        if record is None:
            record = ExtraFileRecord(
                item_id=item.id,
                consumer=consumer.name,
                kind=ExtraKind.MEDIA_FILE_METADATA,
                relative_path=desired.relative_path,
                grouping_key=media_file.grouping_key,
                media_file_id=media_file.id,
                added=_utcnow(),
            )

        return replace(record, hash=digest, last_updated=_utcnow())

    def _save_metadata_file(self, path: Path, contents: str) -> None:
        self.disk.write_text(path, contents)
        self.disk.set_permissions(path)

    # -- Images --

    def _process_item_images(
        self,
        consumer: MetadataConsumer,
        item: LibraryItem,
        existing: list[ExtraFileRecord],
    ) -> list[ExtraFileRecord]:
        images = self._guard(item, consumer, "item images", consumer.item_images, item) or []
        result = []

        for image in images:
            full_path = Path(item.path) / image.relative_path

            if self.disk.file_exists(full_path):
                log.debug(f"Item image already exists: {full_path}")
                continue

            record = self.match_one(
                item, existing, consumer.name, ExtraKind.ITEM_IMAGE,
                relative_path=image.relative_path,
            ) or ExtraFileRecord(
                item_id=item.id,
                consumer=consumer.name,
                kind=ExtraKind.ITEM_IMAGE,
                relative_path=image.relative_path,
                added=_utcnow(),
            )

            self._add(result, self._acquire(item, image, record))

        return result

    def _process_grouping_images(
        self,
        consumer: MetadataConsumer,
        item: LibraryItem,
        existing: list[ExtraFileRecord],
    ) -> list[ExtraFileRecord]:
        result = []

        for grouping_key in item.groupings:
            images = self._guard(
                item, consumer, f"grouping {grouping_key} images",
                consumer.grouping_images, item, grouping_key,
            ) or []

            for image in images:
                full_path = Path(item.path) / image.relative_path

                if self.disk.file_exists(full_path):
                    log.debug(f"Grouping image already exists: {full_path}")
                    continue

                record = self.match_one(
                    item, existing, consumer.name, ExtraKind.GROUPING_IMAGE,
                    grouping_key=grouping_key,
                    relative_path=image.relative_path,
                ) or ExtraFileRecord(
                    item_id=item.id,
                    consumer=consumer.name,
                    kind=ExtraKind.GROUPING_IMAGE,
                    relative_path=image.relative_path,
                    grouping_key=grouping_key,
                    added=_utcnow(),
                )

                self._add(result, self._acquire(item, image, record))

        return result

    def _process_media_file_images(
        self,
        consumer: MetadataConsumer,
        item: LibraryItem,
        media_file: MediaFile,
        existing: list[ExtraFileRecord],
    ) -> list[ExtraFileRecord]:
        images = self._guard(
            item, consumer, f"images for {media_file.relative_path}",
            consumer.media_file_images, item, media_file,
        ) or []
        root = Path(item.path)
        result = []

        for image in images:
            full_path = root / image.relative_path

            if self.disk.file_exists(full_path):
                log.debug(f"Media file image already exists: {full_path}")
                continue

            record = self.match_one(
                item, existing, consumer.name, ExtraKind.MEDIA_FILE_IMAGE,
                media_file_id=media_file.id,
            )

            if record is not None:
                existing_path = root / record.relative_path
                if not path_equals(existing_path, full_path) and self.disk.file_exists(existing_path):
                    # Moving and acquiring are exclusive for one slot in one call
                    try:
                        self.disk.move(existing_path, full_path)
                    except OSError as e:
                        log.warning(f"Unable to move extra file: {existing_path}. {e}")
                        return result
                    result.append(
                        replace(record, relative_path=image.relative_path, last_updated=_utcnow())
                    )
                    return result
                record = replace(record, relative_path=image.relative_path)
            else:
                record = ExtraFileRecord(
                    item_id=item.id,
                    consumer=consumer.name,
                    kind=ExtraKind.MEDIA_FILE_IMAGE,
                    relative_path=image.relative_path,
                    grouping_key=media_file.grouping_key,
                    media_file_id=media_file.id,
                    added=_utcnow(),
                )

            self._add(result, self._acquire(item, image, record))

        return result

    def _acquire(
        self, item: LibraryItem, image: ImageFileResult, record: ExtraFileRecord
    ) -> ExtraFileRecord | None:
        if not self.acquirer.acquire(item, image):
            return None
        return replace(record, last_updated=_utcnow())

    # -- Helpers --

    @staticmethod
    def _add(files: list[ExtraFileRecord], record: ExtraFileRecord | None) -> None:
        if record is not None:
            files.append(record)

    def _guard(
        self,
        item: LibraryItem,
        consumer: MetadataConsumer,
        what: str,
        func: Callable[..., T],
        *args,
    ) -> T | None:
        """Run one candidate step; log and drop it on any failure."""
        try:
            return func(*args)
        except Exception as e:
            log.error(f"Unable to process {what} for {item} ({consumer.name}): {e}")
            return None
