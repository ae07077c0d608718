"""Build library items and media files from a show folder on disk.

Stands in for the library database a media manager would normally hand us:
one os.walk() over the show folder, every video file whose name carries an
episode reference becomes a MediaFile with a store-assigned stable id.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from .errors import ParseError
from .models import VIDEO_EXTENSIONS, LibraryItem, MediaCover, MediaFile
from .parsing import parse_episode_reference

if TYPE_CHECKING:
    from .store import ExtraFileStore

log = logger.bind(stage="library")

_TITLE_YEAR = re.compile(r"^(?P<title>.+?)\s*\((?P<year>\d{4})\)$")


def split_title_year(folder_name: str) -> tuple[str, int | None]:
    """'Show Name (2019)' -> ('Show Name', 2019)."""
    match = _TITLE_YEAR.match(folder_name.strip())
    if match:
        return match.group("title"), int(match.group("year"))
    return folder_name.strip(), None


def _video_files(root: Path) -> list[Path]:
    found = []
    for dirpath, dirnames, filenames in os.walk(root):
        # Skip hidden folders (.actors, .grab, ...)
        dirnames[:] = [d for d in dirnames if not d.startswith(".")]
        for name in filenames:
            if Path(name).suffix.lower() in VIDEO_EXTENSIONS:
                found.append(Path(dirpath) / name)
    return sorted(found)


def scan_item(
    store: ExtraFileStore,
    path: Path,
    title: str | None = None,
    images: tuple[MediaCover, ...] = (),
    monitored: bool | None = None,
) -> tuple[LibraryItem, list[MediaFile]]:
    """Scan a show folder into a LibraryItem and its media files.

    monitored=None keeps whatever the store last recorded for the show.
    """
    path = path.resolve()
    folder_title, year = split_title_year(path.name)
    title = title or folder_title
    item_id = store.ensure_item(path, title)
    if monitored is not None:
        store.set_monitored(item_id, monitored)

    media_files: list[MediaFile] = []
    for video in _video_files(path):
        relative = video.relative_to(path).as_posix()
        try:
            reference = parse_episode_reference(video.name)
        except ParseError:
            log.debug(f"Skipping unrecognized media file: {relative}")
            continue
        media_files.append(
            MediaFile(
                id=store.ensure_media_file(item_id, relative),
                item_id=item_id,
                relative_path=relative,
                grouping_key=reference.grouping_key,
                episode_numbers=reference.episode_numbers,
                title=reference.title,
            )
        )

    groupings = sorted(
        {mf.grouping_key for mf in media_files}
        | {c.grouping_key for c in images if c.grouping_key is not None}
    )

    item = LibraryItem(
        id=item_id,
        title=title,
        path=path,
        year=year,
        groupings=tuple(groupings),
        images=tuple(images),
        monitored=store.is_monitored(item_id),
    )
    log.info(f"Scanned {item}: {len(media_files)} media files, groupings={groupings}")
    return item, media_files


def extra_file_candidates(item: LibraryItem) -> list[Path]:
    """Every non-video file under the item folder."""
    candidates = []
    for dirpath, _dirnames, filenames in os.walk(item.path):
        for name in filenames:
            if Path(name).suffix.lower() not in VIDEO_EXTENSIONS:
                candidates.append(Path(dirpath) / name)
    return sorted(candidates)
