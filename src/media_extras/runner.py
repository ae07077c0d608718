"""Extras runner -- the caller side of reconciliation.

Owns the transaction boundary the engine leaves open: loads records from
the store, runs discovery on first contact with a show folder, calls the
engine, and persists what comes back.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from loguru import logger

from .clean import CleanExtraFiles
from .concurrency import ItemLocks
from .config import ExtrasConfig
from .consumers import ConsumerRegistry, build_registry
from .disk import DiskProvider
from .engine import ReconciliationEngine
from .errors import StoreError
from .existing import ExistingExtraFileService
from .housekeeping import delete_bad_images
from .images import ImageAcquirer
from .library import extra_file_candidates, scan_item
from .models import ITEM_KINDS, ExtraFileRecord, LibraryItem, MediaCover, SyncResult
from .store import ExtraFileStore

log = logger.bind(stage="runner")


class ExtrasRunner:
    """Reconcile extra files for show folders and persist the results."""

    def __init__(
        self,
        config: ExtrasConfig,
        registry: ConsumerRegistry | None = None,
        disk: DiskProvider | None = None,
        acquirer: ImageAcquirer | None = None,
    ) -> None:
        self.config = config
        self.store = ExtraFileStore(config.db_path)
        self.disk = disk or DiskProvider(config.file_mode, config.file_owner)
        self.registry = registry or build_registry(config)
        self.acquirer = acquirer or ImageAcquirer(self.disk, timeout=config.download_timeout)
        self.cleaner = CleanExtraFiles(
            self.store,
            self.disk,
            self.registry,
            remove_disabled=config.remove_disabled_consumer_files,
        )
        self.engine = ReconciliationEngine(
            self.registry,
            self.disk,
            self.acquirer,
            store=self.store,
            cleaner=self.cleaner,
        )
        self.existing = ExistingExtraFileService(self.registry)
        self.locks = ItemLocks()

    def _persist(self, records: list[ExtraFileRecord]) -> list[ExtraFileRecord]:
        return self.store.upsert_many(records)

    def sync(
        self,
        path: Path,
        title: str | None = None,
        images: tuple[MediaCover, ...] = (),
        monitored: bool | None = None,
    ) -> SyncResult:
        """Full resync of one show folder.

        monitored=None keeps the show's stored monitored flag.
        """
        item, media_files = scan_item(
            self.store, path, title=title, images=images, monitored=monitored
        )
        result = SyncResult(items=[item.title])

        with self.locks.hold(item.id):
            existing = self.store.list_by_item(item.id)

            if not existing:
                discovered = self.existing.process_files(
                    item, media_files, extra_file_candidates(item)
                )
                if not item.monitored:
                    # Show level files of an unmonitored show stay untracked
                    discovered = [r for r in discovered if r.kind not in ITEM_KINDS]
                existing = self._persist(discovered)
                result.discovered = len(existing)

            written = self.engine.full_resync(item, media_files, existing)
            self._persist(written)
            result.written = len(written)

        log.info(
            f"Synced {item}: {result.written} written, {result.discovered} discovered"
        )
        return result

    def sync_many(self, paths: list[Path], monitored: bool | None = None) -> SyncResult:
        """Sync several show folders on a thread pool.

        A failure in one show is counted and logged; the rest carry on.
        """
        total = SyncResult()
        if not paths:
            log.warning("No show folders to sync")
            return total

        workers = min(self.config.parallel_items, len(paths))
        log.info(f"Syncing {len(paths)} shows with {workers} workers")

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(self.sync, p, monitored=monitored): p for p in paths}
            for future in as_completed(futures):
                path = futures[future]
                try:
                    result = future.result()
                except Exception as e:
                    log.error(f"Sync failed for {path}: {e}")
                    total.failed += 1
                    continue
                total.written += result.written
                total.discovered += result.discovered
                total.items.extend(result.items)

        return total

    def import_file(
        self,
        path: Path,
        relative_path: str,
        item_folder_created: bool = False,
        grouping_folder_created: bool = False,
    ) -> list[ExtraFileRecord]:
        """Extra files for a newly imported media file, plus any folder-level
        outputs the import made necessary."""
        item, media_files = scan_item(self.store, path)
        media_file = next((mf for mf in media_files if mf.relative_path == relative_path), None)
        if media_file is None:
            raise StoreError(f"{relative_path} is not a recognized media file of {item}")

        with self.locks.hold(item.id):
            records = self.engine.single_file_metadata(item, media_file)
            records += self.engine.resync_after_import(
                item,
                item_folder_created,
                grouping_folder_created,
                self.store.list_by_item(item.id),
            )
            return self._persist(records)

    def relocate(
        self, path: Path, old_relative: str, new_relative: str
    ) -> list[ExtraFileRecord]:
        """Follow a media file rename: move its extra files and persist paths."""
        item_id = self.store.find_item(path.resolve())
        self.store.rename_media_file(item_id, old_relative, new_relative)
        # Rescan so the renamed file keeps its media file id
        item, media_files = scan_item(self.store, path)
        renamed = [mf for mf in media_files if mf.relative_path == new_relative]

        with self.locks.hold(item.id):
            moved = self.engine.relocate_after_rename(
                item, renamed, self.store.list_by_item(item.id)
            )
            return self._persist(moved)

    def discover(self, path: Path) -> list[ExtraFileRecord]:
        """Classify files already in a show folder without persisting."""
        item, media_files = scan_item(self.store, path)
        return self.existing.process_files(item, media_files, extra_file_candidates(item))

    def housekeep(self) -> int:
        """Delete invalid cached images across every known show."""
        if not self.config.cleanup_metadata_images:
            log.info("Image cleanup disabled, skipping housekeeping")
            return 0

        items = [
            LibraryItem(id=item_id, title=title, path=path)
            for item_id, path, title in self.store.list_items()
        ]
        return delete_bad_images(self.store, self.disk, items)

    def close(self) -> None:
        self.store.close()
