"""Housekeeping sweep for broken artwork.

Image hosts sometimes answer with an HTML error page and a 200 status; the
page then sits in the library as ``poster.jpg``. This sweep finds such files
(too short to be an image, or HTML in the first bytes) and deletes both the
file and its record so the next reconciliation downloads them again.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from .models import LibraryItem

if TYPE_CHECKING:
    from .disk import DiskProvider
    from .store import ExtraFileStore

log = logger.bind(stage="housekeeping")

_HEADER_SIZE = 10


def is_valid_image(disk: DiskProvider, path: Path) -> bool:
    header = disk.read_head(path, _HEADER_SIZE)
    if len(header) < _HEADER_SIZE:
        return False
    return "html" not in header.decode("latin-1").lower()


def delete_bad_images(
    store: ExtraFileStore,
    disk: DiskProvider,
    items: list[LibraryItem],
) -> int:
    """Delete invalid .jpg extra files and their records. Returns count removed."""
    removed = 0

    for item in items:
        images = [r for r in store.list_by_item(item.id) if r.extension == ".jpg"]

        for image in images:
            path = Path(item.path) / image.relative_path
            try:
                if not disk.file_exists(path):
                    continue
                if not is_valid_image(disk, path):
                    log.debug(f"Deleting invalid image file {path}")
                    store.delete(image.id)
                    disk.delete(path)
                    removed += 1
            except Exception as e:
                log.error(f"Couldn't validate image {image.relative_path}: {e}")

    log.info(f"Housekeeping removed {removed} invalid images")
    return removed
