"""Core enums, constants, and data types for media extras.

Enums:
    ExtraKind  -- What an extra file represents (item/grouping/media-file
                  metadata or image).
    CoverType  -- Artwork type offered by a library item or media file.

Records are frozen: reconciliation returns updated copies via
dataclasses.replace and the caller persists them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from pathlib import Path


class ExtraKind(StrEnum):
    ITEM_METADATA = "item-metadata"
    ITEM_IMAGE = "item-image"
    GROUPING_IMAGE = "grouping-image"
    MEDIA_FILE_METADATA = "media-file-metadata"
    MEDIA_FILE_IMAGE = "media-file-image"


class CoverType(StrEnum):
    POSTER = "poster"
    BANNER = "banner"
    FANART = "fanart"
    SCREENSHOT = "screenshot"


# Kinds that must be tied to a single media file
MEDIA_FILE_KINDS: frozenset[ExtraKind] = frozenset(
    {ExtraKind.MEDIA_FILE_METADATA, ExtraKind.MEDIA_FILE_IMAGE}
)

# Kinds owned by the show itself or one of its seasons
ITEM_KINDS: frozenset[ExtraKind] = frozenset(
    {ExtraKind.ITEM_METADATA, ExtraKind.ITEM_IMAGE, ExtraKind.GROUPING_IMAGE}
)

VIDEO_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".mkv",
        ".mp4",
        ".m4v",
        ".avi",
        ".mov",
        ".wmv",
        ".ts",
        ".webm",
    }
)


@dataclass(frozen=True)
class MediaCover:
    cover_type: CoverType
    url: str
    grouping_key: int | None = None


@dataclass(frozen=True)
class LibraryItem:
    """A show in the library. Extra file paths are relative to ``path``."""

    id: int
    title: str
    path: Path
    year: int | None = None
    overview: str = ""
    genres: tuple[str, ...] = ()
    groupings: tuple[int, ...] = ()
    images: tuple[MediaCover, ...] = ()
    monitored: bool = True

    def __str__(self) -> str:
        return f"[{self.id}][{self.title}]"


@dataclass(frozen=True)
class MediaFile:
    id: int
    item_id: int
    relative_path: str
    grouping_key: int
    episode_numbers: tuple[int, ...]
    title: str = ""
    images: tuple[MediaCover, ...] = ()


@dataclass(frozen=True)
class MetadataFileResult:
    """Desired metadata document offered by a consumer."""

    relative_path: str
    contents: str


@dataclass(frozen=True)
class ImageFileResult:
    """Desired image offered by a consumer. ``source`` is a URL or local path."""

    relative_path: str
    source: str


@dataclass(frozen=True)
class ExtraFileRecord:
    """One auxiliary file the system tracks for a library item."""

    item_id: int
    consumer: str
    kind: ExtraKind
    relative_path: str
    id: int | None = None
    hash: str | None = None
    grouping_key: int | None = None
    media_file_id: int | None = None
    added: datetime | None = None
    last_updated: datetime | None = None

    def __post_init__(self) -> None:
        if self.kind in MEDIA_FILE_KINDS and self.media_file_id is None:
            # Draft records from discovery are resolved before they are stored
            if self.id is not None:
                raise ValueError(f"{self.kind} record {self.id} has no media file")
        elif self.kind not in MEDIA_FILE_KINDS and self.media_file_id is not None:
            raise ValueError(f"{self.kind} record cannot reference a media file")

    @property
    def extension(self) -> str:
        return Path(self.relative_path).suffix.lower()


@dataclass
class SyncResult:
    """Summary of a sync run across one or more library items."""

    written: int = 0
    discovered: int = 0
    failed: int = 0
    items: list[str] = field(default_factory=list)
