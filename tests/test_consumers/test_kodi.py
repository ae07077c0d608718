"""Tests for consumers/kodi.py -- Kodi NFO and artwork layout."""

import xml.etree.ElementTree as ET
from pathlib import Path

import pytest

from media_extras.consumers.kodi import KodiConsumer
from media_extras.models import (
    CoverType,
    ExtraFileRecord,
    ExtraKind,
    LibraryItem,
    MediaCover,
    MediaFile,
)


@pytest.fixture
def kodi():
    return KodiConsumer()


@pytest.fixture
def show(tmp_path):
    return LibraryItem(
        id=1,
        title="Show A",
        path=tmp_path / "Show A",
        year=2019,
        overview="Two friends & a van.",
        genres=("Comedy", "Drama"),
        groupings=(0, 1, 2),
        images=(
            MediaCover(CoverType.POSTER, "https://img.example/poster.jpg"),
            MediaCover(CoverType.FANART, "https://img.example/fanart.jpg"),
            MediaCover(CoverType.SCREENSHOT, "https://img.example/shot.jpg"),
            MediaCover(CoverType.POSTER, "https://img.example/s1.jpg", grouping_key=1),
            MediaCover(CoverType.BANNER, "https://img.example/s0.jpg", grouping_key=0),
        ),
    )


def _episode(**kwargs):
    defaults = dict(
        id=10,
        item_id=1,
        relative_path="Season 1/Show A - S01E02.mkv",
        grouping_key=1,
        episode_numbers=(2,),
        title="The Van",
    )
    defaults.update(kwargs)
    return MediaFile(**defaults)


def _parse(contents):
    """Parse a document that may hold several root elements."""
    body = contents.split("?>", 1)[1]
    return ET.fromstring(f"<root>{body}</root>")


class TestItemMetadata:
    def test_tvshow_nfo(self, kodi, show):
        result = kodi.item_metadata(show)
        assert result.relative_path == "tvshow.nfo"
        assert result.contents.startswith('<?xml version="1.0" encoding="utf-8" standalone="yes"?>')

        tvshow = _parse(result.contents).find("tvshow")
        assert tvshow.findtext("title") == "Show A"
        assert tvshow.findtext("year") == "2019"
        assert tvshow.findtext("plot") == "Two friends & a van."
        assert [g.text for g in tvshow.findall("genre")] == ["Comedy", "Drama"]
        assert tvshow.findtext("season") == "2"

    def test_output_is_stable(self, kodi, show):
        assert kodi.item_metadata(show).contents == kodi.item_metadata(show).contents

    def test_optional_fields_omitted(self, kodi, tmp_path):
        item = LibraryItem(id=1, title="Bare", path=tmp_path)
        tvshow = _parse(kodi.item_metadata(item).contents).find("tvshow")
        assert tvshow.find("year") is None
        assert tvshow.find("plot") is None


class TestImages:
    def test_item_images(self, kodi, show):
        images = kodi.item_images(show)
        assert [(i.relative_path, i.source) for i in images] == [
            ("poster.jpg", "https://img.example/poster.jpg"),
            ("fanart.jpg", "https://img.example/fanart.jpg"),
        ]

    def test_grouping_images(self, kodi, show):
        assert [i.relative_path for i in kodi.grouping_images(show, 1)] == ["season01-poster.jpg"]
        assert [i.relative_path for i in kodi.grouping_images(show, 0)] == ["season-specials-banner.jpg"]
        assert kodi.grouping_images(show, 2) == []

    def test_media_file_thumb(self, kodi, show):
        episode = _episode(images=(MediaCover(CoverType.SCREENSHOT, "https://img.example/e2.jpg"),))
        images = kodi.media_file_images(show, episode)
        assert [(i.relative_path, i.source) for i in images] == [
            ("Season 1/Show A - S01E02-thumb.jpg", "https://img.example/e2.jpg")
        ]

    def test_media_file_without_screenshot(self, kodi, show):
        assert kodi.media_file_images(show, _episode()) == []


class TestMediaFileMetadata:
    def test_episode_nfo_beside_media_file(self, kodi, show):
        result = kodi.media_file_metadata(show, _episode())
        assert result.relative_path == "Season 1/Show A - S01E02.nfo"
        details = _parse(result.contents).findall("episodedetails")
        assert len(details) == 1
        assert details[0].findtext("title") == "The Van"
        assert details[0].findtext("showtitle") == "Show A"
        assert details[0].findtext("season") == "1"
        assert details[0].findtext("episode") == "2"

    def test_multi_episode_file(self, kodi, show):
        result = kodi.media_file_metadata(show, _episode(episode_numbers=(2, 3), title=""))
        details = _parse(result.contents).findall("episodedetails")
        assert [d.findtext("title") for d in details] == ["Episode 2", "Episode 3"]

    def test_no_episodes_no_document(self, kodi, show):
        assert kodi.media_file_metadata(show, _episode(episode_numbers=())) is None


class TestRelocatedPath:
    def _record(self, kind, path):
        return ExtraFileRecord(
            id=1, item_id=1, consumer="kodi", kind=kind,
            relative_path=path, grouping_key=1, media_file_id=10,
        )

    def test_follows_media_file(self, kodi, show):
        renamed = _episode(relative_path="Season 01/Show A - S01E02 - The Van.mkv")
        nfo = self._record(ExtraKind.MEDIA_FILE_METADATA, "Season 1/Show A - S01E02.nfo")
        thumb = self._record(ExtraKind.MEDIA_FILE_IMAGE, "Season 1/Show A - S01E02-thumb.jpg")
        assert kodi.relocated_path(show, renamed, nfo) == "Season 01/Show A - S01E02 - The Van.nfo"
        assert kodi.relocated_path(show, renamed, thumb) == "Season 01/Show A - S01E02 - The Van-thumb.jpg"


class TestRecognizeExistingFile:
    @pytest.mark.parametrize(
        "relative, kind, grouping_key",
        [
            ("tvshow.nfo", ExtraKind.ITEM_METADATA, None),
            ("poster.jpg", ExtraKind.ITEM_IMAGE, None),
            ("Fanart.JPG", ExtraKind.ITEM_IMAGE, None),
            ("season02-banner.jpg", ExtraKind.GROUPING_IMAGE, 2),
            ("season-specials-poster.jpg", ExtraKind.GROUPING_IMAGE, 0),
            ("Season 1/Show A - S01E02-thumb.jpg", ExtraKind.MEDIA_FILE_IMAGE, None),
            ("Season 1/Show A - S01E02.nfo", ExtraKind.MEDIA_FILE_METADATA, None),
        ],
    )
    def test_recognized(self, kodi, show, relative, kind, grouping_key):
        draft = kodi.recognize_existing_file(show, show.path / relative)
        assert draft.kind == kind
        assert draft.relative_path == relative
        assert draft.grouping_key == grouping_key
        assert draft.consumer == "kodi"
        assert draft.id is None

    @pytest.mark.parametrize("relative", ["folder.jpg", "Season 1/poster.jpg", "notes.txt"])
    def test_not_recognized(self, kodi, show, relative):
        assert kodi.recognize_existing_file(show, show.path / relative) is None

    def test_outside_item_folder(self, kodi, show):
        assert kodi.recognize_existing_file(show, Path("/elsewhere/tvshow.nfo")) is None
