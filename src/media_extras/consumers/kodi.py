"""Kodi (XBMC) metadata consumer.

Layout under the show folder:
    tvshow.nfo                        show metadata
    poster.jpg / banner.jpg / fanart.jpg
    season01-poster.jpg               season artwork (season-specials-* for 0)
    Season 1/Show - S01E02.nfo        episode metadata beside the media file
    Season 1/Show - S01E02-thumb.jpg  episode thumbnail
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from pathlib import Path, PurePosixPath

from loguru import logger

from ..models import (
    CoverType,
    ExtraFileRecord,
    ExtraKind,
    ImageFileResult,
    LibraryItem,
    MediaFile,
    MetadataFileResult,
)
from . import MetadataConsumer

log = logger.bind(stage="kodi")

_XML_HEADER = '<?xml version="1.0" encoding="utf-8" standalone="yes"?>\n'

_ITEM_IMAGE_TYPES = (CoverType.POSTER, CoverType.BANNER, CoverType.FANART)

_SEASON_IMAGE = re.compile(
    r"^season(?P<season>\d{2,}|-specials)-(?P<type>poster|banner|fanart)\.jpg$",
    re.IGNORECASE,
)


def _to_xml(*elements: ET.Element) -> str:
    parts = []
    for element in elements:
        ET.indent(element)
        parts.append(ET.tostring(element, encoding="unicode"))
    return _XML_HEADER + "\n".join(parts) + "\n"


def _season_image_name(grouping_key: int, cover_type: CoverType) -> str:
    if grouping_key == 0:
        return f"season-specials-{cover_type}.jpg"
    return f"season{grouping_key:02d}-{cover_type}.jpg"


def _sibling(relative_path: str, suffix: str) -> str:
    """Path beside a media file sharing its stem, e.g. '-thumb.jpg' or '.nfo'."""
    p = PurePosixPath(relative_path)
    return str(p.with_name(p.stem + suffix))


class KodiConsumer(MetadataConsumer):
    name = "kodi"

    def item_metadata(self, item: LibraryItem) -> MetadataFileResult | None:
        root = ET.Element("tvshow")
        ET.SubElement(root, "title").text = item.title
        if item.year:
            ET.SubElement(root, "year").text = str(item.year)
        if item.overview:
            ET.SubElement(root, "plot").text = item.overview
        for genre in item.genres:
            ET.SubElement(root, "genre").text = genre
        ET.SubElement(root, "season").text = str(len([g for g in item.groupings if g > 0]))

        return MetadataFileResult(relative_path="tvshow.nfo", contents=_to_xml(root))

    def item_images(self, item: LibraryItem) -> list[ImageFileResult]:
        results = []
        for cover in item.images:
            if cover.grouping_key is not None or cover.cover_type not in _ITEM_IMAGE_TYPES:
                continue
            results.append(
                ImageFileResult(relative_path=f"{cover.cover_type}.jpg", source=cover.url)
            )
        return results

    def grouping_images(
        self, item: LibraryItem, grouping_key: int
    ) -> list[ImageFileResult]:
        results = []
        for cover in item.images:
            if cover.grouping_key != grouping_key or cover.cover_type not in _ITEM_IMAGE_TYPES:
                continue
            results.append(
                ImageFileResult(
                    relative_path=_season_image_name(grouping_key, cover.cover_type),
                    source=cover.url,
                )
            )
        return results

    def media_file_metadata(
        self, item: LibraryItem, media_file: MediaFile
    ) -> MetadataFileResult | None:
        elements = []
        for number in media_file.episode_numbers:
            details = ET.Element("episodedetails")
            ET.SubElement(details, "title").text = media_file.title or f"Episode {number}"
            ET.SubElement(details, "showtitle").text = item.title
            ET.SubElement(details, "season").text = str(media_file.grouping_key)
            ET.SubElement(details, "episode").text = str(number)
            elements.append(details)
        if not elements:
            return None

        return MetadataFileResult(
            relative_path=_sibling(media_file.relative_path, ".nfo"),
            contents=_to_xml(*elements),
        )

    def media_file_images(
        self, item: LibraryItem, media_file: MediaFile
    ) -> list[ImageFileResult]:
        screenshots = [c for c in media_file.images if c.cover_type == CoverType.SCREENSHOT]
        if not screenshots:
            return []
        return [
            ImageFileResult(
                relative_path=_sibling(media_file.relative_path, "-thumb.jpg"),
                source=screenshots[0].url,
            )
        ]

    def relocated_path(
        self, item: LibraryItem, media_file: MediaFile, record: ExtraFileRecord
    ) -> str:
        if record.kind == ExtraKind.MEDIA_FILE_METADATA:
            return _sibling(media_file.relative_path, ".nfo")
        if record.kind == ExtraKind.MEDIA_FILE_IMAGE:
            return _sibling(media_file.relative_path, "-thumb.jpg")
        return record.relative_path

    def recognize_existing_file(
        self, item: LibraryItem, path: Path
    ) -> ExtraFileRecord | None:
        try:
            relative = PurePosixPath(Path(path).relative_to(item.path).as_posix())
        except ValueError:
            log.debug(f"{path} is not under {item.path}")
            return None

        name = relative.name.lower()
        at_root = len(relative.parts) == 1

        def draft(kind: ExtraKind, grouping_key: int | None = None) -> ExtraFileRecord:
            return ExtraFileRecord(
                item_id=item.id,
                consumer=self.name,
                kind=kind,
                relative_path=str(relative),
                grouping_key=grouping_key,
            )

        if at_root and name == "tvshow.nfo":
            return draft(ExtraKind.ITEM_METADATA)

        if at_root and name in {f"{t}.jpg" for t in _ITEM_IMAGE_TYPES}:
            return draft(ExtraKind.ITEM_IMAGE)

        season_match = _SEASON_IMAGE.match(name)
        if at_root and season_match:
            season = season_match.group("season")
            grouping_key = 0 if season == "-specials" else int(season)
            return draft(ExtraKind.GROUPING_IMAGE, grouping_key)

        if name.endswith("-thumb.jpg"):
            return draft(ExtraKind.MEDIA_FILE_IMAGE)

        if relative.suffix.lower() == ".nfo":
            return draft(ExtraKind.MEDIA_FILE_METADATA)

        return None
