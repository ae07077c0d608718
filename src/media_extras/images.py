"""Image acquisition -- download or copy a candidate image into the library.

Failures never propagate: a missing image simply has no record, and an
absent record is indistinguishable from "not yet attempted", so the next
reconciliation pass retries it.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from loguru import logger

from .api.http import download_file
from .disk import DiskProvider
from .errors import DownloadError
from .models import ImageFileResult, LibraryItem

log = logger.bind(stage="images")

_REMOTE_SCHEMES = ("http://", "https://")


def is_remote(source: str) -> bool:
    return source.lower().startswith(_REMOTE_SCHEMES)


class ImageAcquirer:
    """Fetch consumer-offered images to their destination under an item."""

    def __init__(
        self,
        disk: DiskProvider,
        downloader: Callable[..., None] = download_file,
        timeout: float = 30.0,
    ) -> None:
        self.disk = disk
        self.downloader = downloader
        self.timeout = timeout

    def acquire(self, item: LibraryItem, image: ImageFileResult) -> bool:
        """Download or copy image to item.path / image.relative_path.

        Returns True when the file was written, False on any failure.
        """
        dest = Path(item.path) / image.relative_path

        try:
            if is_remote(image.source):
                self.downloader(image.source, dest, timeout=self.timeout)
            else:
                self.disk.copy(Path(image.source), dest)
            self.disk.set_permissions(dest)
        except DownloadError as e:
            log.warning(f"Couldn't download image {image.source} for {item}. {e}")
            return False
        except Exception as e:
            log.error(f"Couldn't download image {image.source} for {item}. {e}")
            return False

        log.debug(f"Acquired image {dest}")
        return True
