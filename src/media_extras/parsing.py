"""Parse episode references out of media and extra file names.

Used to associate episode-level extra files (``Show - S01E02-thumb.jpg``)
with the media file they belong to, and to build media files from a
show folder scan.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from .errors import ParseError
from .models import MediaFile

log = logger.bind(stage="parsing")

# Pattern A: S01E02, S01E02E03, S01E02-E03, s01.e02
_SXXEXX = re.compile(
    r"[Ss](?P<season>\d{1,4})[ ._-]?[Ee](?P<episodes>\d{1,4}(?:[-_ ]?[Ee]\d{1,4})*)"
)
# Pattern B: 1x02, 1x02x03
_NXNN = re.compile(r"(?<![\dA-Za-z])(?P<season>\d{1,2})x(?P<episodes>\d{2,3}(?:x\d{2,3})*)(?!\d)")

# Suffixes consumers append to episode-level extra files
_EXTRA_SUFFIXES = re.compile(r"(?:-thumb|-screenshot|\.thumb)$", re.IGNORECASE)


@dataclass(frozen=True)
class EpisodeReference:
    grouping_key: int
    episode_numbers: tuple[int, ...]
    title: str = ""


def parse_episode_reference(filename: str | Path) -> EpisodeReference:
    """Parse a season and episode list from a file name.

    Raises ParseError if no known pattern matches.
    """
    stem = Path(filename).stem
    stem = _EXTRA_SUFFIXES.sub("", stem)
    log.debug(f"parse_episode_reference: {stem}")

    match = _SXXEXX.search(stem)
    if match:
        numbers = re.findall(r"\d+", match.group("episodes"))
        log.debug(f"Pattern A matched: season={match.group('season')} episodes={numbers}")
        return _build_reference(match, numbers, stem)

    match = _NXNN.search(stem)
    if match:
        numbers = match.group("episodes").split("x")
        log.debug(f"Pattern B matched: season={match.group('season')} episodes={numbers}")
        return _build_reference(match, numbers, stem)

    raise ParseError(f"No episode reference in {filename}")


def _build_reference(match: re.Match, numbers: list[str], stem: str) -> EpisodeReference:
    episodes = [int(n) for n in numbers]
    # "S01E02-E05" style ranges list the first and last episode only
    if len(episodes) == 2 and "-" in match.group("episodes") and episodes[1] > episodes[0] + 1:
        episodes = list(range(episodes[0], episodes[1] + 1))
    title = stem[match.end() :].strip(" ._-")
    title = re.sub(r"[._]+", " ", title).strip()
    return EpisodeReference(
        grouping_key=int(match.group("season")),
        episode_numbers=tuple(sorted(set(episodes))),
        title=title,
    )


def find_media_files(
    reference: EpisodeReference, media_files: list[MediaFile]
) -> list[MediaFile]:
    """Media files in the same grouping that contain any referenced episode."""
    wanted = set(reference.episode_numbers)
    return [
        mf
        for mf in media_files
        if mf.grouping_key == reference.grouping_key
        and wanted.intersection(mf.episode_numbers)
    ]
