"""Shared fixtures: a scriptable consumer, a fake downloader, a show folder."""

from pathlib import Path

import pytest

from media_extras.consumers import ConsumerRegistry, MetadataConsumer
from media_extras.disk import DiskProvider
from media_extras.engine import ReconciliationEngine
from media_extras.errors import DownloadError
from media_extras.images import ImageAcquirer
from media_extras.models import (
    ExtraKind,
    ImageFileResult,
    LibraryItem,
    MetadataFileResult,
)

JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * 32


class FakeConsumer(MetadataConsumer):
    """Consumer whose desired output is set directly by the test."""

    def __init__(self, name: str = "fake") -> None:
        self.name = name
        self.item_doc: MetadataFileResult | None = None
        self.item_imgs: list[ImageFileResult] = []
        self.grouping_imgs: dict[int, list[ImageFileResult]] = {}
        self.media_docs: dict[int, MetadataFileResult] = {}
        self.media_imgs: dict[int, list[ImageFileResult]] = {}
        self.broken_media_files: set[int] = set()

    def item_metadata(self, item):
        return self.item_doc

    def item_images(self, item):
        return list(self.item_imgs)

    def grouping_images(self, item, grouping_key):
        return list(self.grouping_imgs.get(grouping_key, []))

    def media_file_metadata(self, item, media_file):
        if media_file.id in self.broken_media_files:
            raise ValueError(f"cannot render media file {media_file.id}")
        return self.media_docs.get(media_file.id)

    def media_file_images(self, item, media_file):
        return list(self.media_imgs.get(media_file.id, []))

    def relocated_path(self, item, media_file, record):
        stem = Path(media_file.relative_path).with_suffix("")
        if record.kind == ExtraKind.MEDIA_FILE_METADATA:
            return f"{stem}.nfo"
        return f"{stem}-thumb.jpg"


class FakeDownloader:
    """Stands in for api.http.download_file; records every URL requested."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.fail: set[str] = set()

    def __call__(self, url: str, dest: Path, timeout: float = 30.0) -> None:
        self.calls.append(url)
        if url in self.fail:
            raise DownloadError(url, 503, "Service Unavailable")
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(JPEG_BYTES)


@pytest.fixture
def show_dir(tmp_path):
    d = tmp_path / "Show A"
    d.mkdir()
    return d


@pytest.fixture
def item(show_dir):
    return LibraryItem(id=1, title="Show A", path=show_dir, groupings=(1,))


@pytest.fixture
def disk():
    return DiskProvider()


@pytest.fixture
def downloader():
    return FakeDownloader()


@pytest.fixture
def consumer():
    return FakeConsumer()


@pytest.fixture
def make_engine(disk, downloader):
    """Build an engine around the given consumers (all enabled by default)."""

    def _make(*consumers, enabled=None, store=None, cleaner=None):
        registry = ConsumerRegistry(consumers, enabled=enabled)
        acquirer = ImageAcquirer(disk, downloader=downloader)
        return ReconciliationEngine(registry, disk, acquirer, store=store, cleaner=cleaner)

    return _make
