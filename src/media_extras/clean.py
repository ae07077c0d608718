"""Clean step run before a full resync.

Drops records whose file has vanished from disk (so the next pass treats
them as never written). Show and season level files are removed outright
when the show is no longer monitored, or, when configured, when the
consumer that wrote them is no longer enabled.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from .models import ITEM_KINDS, ExtraFileRecord, LibraryItem

if TYPE_CHECKING:
    from .consumers import ConsumerRegistry
    from .disk import DiskProvider
    from .store import ExtraFileStore

log = logger.bind(stage="clean")


class CleanExtraFiles:
    def __init__(
        self,
        store: ExtraFileStore,
        disk: DiskProvider,
        registry: ConsumerRegistry,
        remove_disabled: bool = False,
    ) -> None:
        self.store = store
        self.disk = disk
        self.registry = registry
        self.remove_disabled = remove_disabled

    def _unwanted(self, item: LibraryItem, record: ExtraFileRecord) -> str | None:
        if record.kind not in ITEM_KINDS:
            return None
        if not item.monitored:
            return "item no longer monitored"
        if self.remove_disabled and not self.registry.is_enabled(record.consumer):
            return f"consumer {record.consumer} disabled"
        return None

    def clean(self, item: LibraryItem) -> int:
        """Remove stale records for an item. Returns how many were removed."""
        removed = 0
        root = Path(item.path)

        for record in self.store.list_by_item(item.id):
            path = root / record.relative_path
            try:
                reason = self._unwanted(item, record)
                if reason is not None:
                    log.debug(f"Removing extra file, {reason}: {path}")
                    self.disk.delete(path)
                    self.store.delete(record.id)
                    removed += 1
                elif not self.disk.file_exists(path):
                    log.debug(f"Extra file no longer exists on disk: {path}")
                    self.store.delete(record.id)
                    removed += 1
            except Exception as e:
                log.warning(f"Unable to clean extra file {path}: {e}")

        if removed:
            log.info(f"Cleaned {removed} stale extra files for {item}")
        return removed
