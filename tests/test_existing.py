"""Tests for existing.py -- adopting files already on disk."""

from media_extras.consumers import ConsumerRegistry, MetadataConsumer
from media_extras.consumers.kodi import KodiConsumer
from media_extras.existing import ExistingExtraFileService
from media_extras.models import ExtraKind, MediaFile


class ExplodingConsumer(MetadataConsumer):
    name = "exploding"

    def recognize_existing_file(self, item, path):
        raise RuntimeError("unreadable")


def _media_files():
    return [
        MediaFile(id=10, item_id=1, relative_path="Season 1/Show A - S01E01.mkv", grouping_key=1, episode_numbers=(1,)),
        MediaFile(id=11, item_id=1, relative_path="Season 1/Show A - S01E02.mkv", grouping_key=1, episode_numbers=(2,)),
    ]


def _service(*consumers, enabled=None):
    return ExistingExtraFileService(ConsumerRegistry(consumers or (KodiConsumer(),), enabled=enabled))


class TestProcessFiles:
    def test_item_level_files(self, item, show_dir):
        paths = [show_dir / "tvshow.nfo", show_dir / "poster.jpg", show_dir / "season01-poster.jpg"]
        records = _service().process_files(item, _media_files(), paths)

        assert [(r.kind, r.relative_path, r.grouping_key) for r in records] == [
            (ExtraKind.ITEM_METADATA, "tvshow.nfo", None),
            (ExtraKind.ITEM_IMAGE, "poster.jpg", None),
            (ExtraKind.GROUPING_IMAGE, "season01-poster.jpg", 1),
        ]
        assert all(r.id is None and r.consumer == "kodi" for r in records)

    def test_episode_files_attach_to_media_file(self, item, show_dir):
        paths = [
            show_dir / "Season 1" / "Show A - S01E01.nfo",
            show_dir / "Season 1" / "Show A - S01E02-thumb.jpg",
        ]
        records = _service().process_files(item, _media_files(), paths)

        assert [(r.kind, r.media_file_id, r.grouping_key) for r in records] == [
            (ExtraKind.MEDIA_FILE_METADATA, 10, 1),
            (ExtraKind.MEDIA_FILE_IMAGE, 11, 1),
        ]

    def test_unmatched_episode_is_skipped(self, item, show_dir):
        paths = [show_dir / "Season 1" / "Show A - S01E09.nfo"]
        assert _service().process_files(item, _media_files(), paths) == []

    def test_unparseable_episode_file_is_skipped(self, item, show_dir):
        paths = [show_dir / "Season 1" / "notes.nfo"]
        assert _service().process_files(item, _media_files(), paths) == []

    def test_file_spanning_two_media_files_is_skipped(self, item, show_dir):
        paths = [show_dir / "Season 1" / "Show A - S01E01E02.nfo"]
        assert _service().process_files(item, _media_files(), paths) == []

    def test_unrecognized_files_are_ignored(self, item, show_dir):
        paths = [show_dir / "readme.txt", show_dir / "Season 1" / "cover.png"]
        assert _service().process_files(item, _media_files(), paths) == []

    def test_failing_consumer_does_not_stop_others(self, item, show_dir):
        service = _service(ExplodingConsumer(), KodiConsumer())
        records = service.process_files(item, [], [show_dir / "tvshow.nfo"])
        assert [r.consumer for r in records] == ["kodi"]

    def test_disabled_consumers_still_recognize(self, item, show_dir):
        service = _service(KodiConsumer(), ExplodingConsumer(), enabled=["exploding"])
        records = service.process_files(item, [], [show_dir / "tvshow.nfo"])
        assert [r.consumer for r in records] == ["kodi"]
