"""SQLite-backed extra file store.

Single WAL-mode database holding library items, their media files (so media
file ids stay stable across scans), and the extra file records reconciliation
produces. Thread-safe via per-thread connections and SQLite's built-in
locking, so items can be synced from a worker pool.

The store is the single writer of record identity: ``upsert`` assigns ids
to new records and replaces existing ids in place, so an id survives moves
and content changes.
"""

from __future__ import annotations

import sqlite3
import threading
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

from .errors import StoreError
from .models import ExtraFileRecord, ExtraKind

log = logger.bind(stage="store")

_SCHEMA = """\
PRAGMA journal_mode=WAL;
PRAGMA busy_timeout=5000;
PRAGMA foreign_keys=ON;

CREATE TABLE IF NOT EXISTS items (
    id        INTEGER PRIMARY KEY AUTOINCREMENT,
    path      TEXT NOT NULL UNIQUE,
    title     TEXT NOT NULL,
    monitored INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS media_files (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id       INTEGER NOT NULL,
    relative_path TEXT NOT NULL,
    UNIQUE (item_id, relative_path),
    FOREIGN KEY (item_id) REFERENCES items(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS extra_files (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id       INTEGER NOT NULL,
    grouping_key  INTEGER,
    media_file_id INTEGER,
    consumer      TEXT NOT NULL,
    kind          TEXT NOT NULL,
    relative_path TEXT NOT NULL,
    hash          TEXT,
    added         TEXT NOT NULL,
    last_updated  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_extra_files_item ON extra_files(item_id);
"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_text(value: datetime | None) -> str:
    return (value or _utcnow()).strftime("%Y-%m-%dT%H:%M:%SZ")


def _from_text(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.strptime(value, "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=timezone.utc)


class ExtraFileStore:
    """SQLite persistence for items, media files and extra file records.

    Thread-safe: each thread gets its own connection via threading.local().
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._local = threading.local()
        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create a per-thread SQLite connection."""
        conn = getattr(self._local, "conn", None)
        if conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=10.0,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA busy_timeout=5000")
            conn.execute("PRAGMA foreign_keys=ON")
            self._local.conn = conn
        return conn

    def _init_schema(self) -> None:
        conn = self._get_conn()
        conn.executescript(_SCHEMA)
        conn.commit()

    def close(self) -> None:
        """Close the current thread's connection."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None

    # -- Library catalog --

    def ensure_item(self, path: Path, title: str) -> int:
        """Return the id for an item folder, creating the row if needed."""
        conn = self._get_conn()
        conn.execute(
            "INSERT OR IGNORE INTO items (path, title) VALUES (?, ?)",
            (str(path), title),
        )
        conn.execute("UPDATE items SET title = ? WHERE path = ?", (title, str(path)))
        conn.commit()
        row = conn.execute("SELECT id FROM items WHERE path = ?", (str(path),)).fetchone()
        return row["id"]

    def set_monitored(self, item_id: int, monitored: bool) -> None:
        conn = self._get_conn()
        conn.execute("UPDATE items SET monitored = ? WHERE id = ?", (int(monitored), item_id))
        conn.commit()
        log.debug(f"Item {item_id} monitored={monitored}")

    def is_monitored(self, item_id: int) -> bool:
        conn = self._get_conn()
        row = conn.execute("SELECT monitored FROM items WHERE id = ?", (item_id,)).fetchone()
        if row is None:
            raise StoreError(f"Item not found: {item_id}")
        return bool(row["monitored"])

    def find_item(self, path: Path) -> int:
        conn = self._get_conn()
        row = conn.execute("SELECT id FROM items WHERE path = ?", (str(path),)).fetchone()
        if row is None:
            raise StoreError(f"Item not found: {path}")
        return row["id"]

    def list_items(self) -> list[tuple[int, Path, str]]:
        conn = self._get_conn()
        rows = conn.execute("SELECT id, path, title FROM items ORDER BY id").fetchall()
        return [(r["id"], Path(r["path"]), r["title"]) for r in rows]

    def ensure_media_file(self, item_id: int, relative_path: str) -> int:
        """Return a stable id for a media file path within an item."""
        conn = self._get_conn()
        conn.execute(
            "INSERT OR IGNORE INTO media_files (item_id, relative_path) VALUES (?, ?)",
            (item_id, relative_path),
        )
        conn.commit()
        row = conn.execute(
            "SELECT id FROM media_files WHERE item_id = ? AND relative_path = ?",
            (item_id, relative_path),
        ).fetchone()
        return row["id"]

    def rename_media_file(self, item_id: int, old_path: str, new_path: str) -> int:
        """Point an existing media file id at its new path. Returns the id."""
        conn = self._get_conn()
        row = conn.execute(
            "SELECT id FROM media_files WHERE item_id = ? AND relative_path = ?",
            (item_id, old_path),
        ).fetchone()
        if row is None:
            raise StoreError(f"Media file not found: {old_path}")
        try:
            conn.execute(
                "UPDATE media_files SET relative_path = ? WHERE id = ?",
                (new_path, row["id"]),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise StoreError(f"Media file already tracked at {new_path}") from e
        log.debug(f"Renamed media file {row['id']}: {old_path} -> {new_path}")
        return row["id"]

    # -- Extra files --

    def list_by_item(self, item_id: int) -> list[ExtraFileRecord]:
        """Records for an item in insertion order."""
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT * FROM extra_files WHERE item_id = ? ORDER BY id", (item_id,)
        ).fetchall()
        return [self._row_to_record(r) for r in rows]

    def upsert(self, record: ExtraFileRecord) -> ExtraFileRecord:
        """Insert a new record or replace an existing one by id.

        Returns the record as stored (with its id and timestamps).
        """
        conn = self._get_conn()
        added = record.added or _utcnow()
        last_updated = record.last_updated or _utcnow()
        values = (
            record.item_id,
            record.grouping_key,
            record.media_file_id,
            record.consumer,
            str(record.kind),
            record.relative_path,
            record.hash,
            _to_text(added),
            _to_text(last_updated),
        )

        if record.id is None:
            cur = conn.execute(
                """INSERT INTO extra_files
                   (item_id, grouping_key, media_file_id, consumer, kind,
                    relative_path, hash, added, last_updated)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                values,
            )
            record_id = cur.lastrowid
        else:
            # Row may have been deleted by cleanup meanwhile; recreate it
            # with the same id so identity is kept
            conn.execute(
                """INSERT OR REPLACE INTO extra_files
                   (id, item_id, grouping_key, media_file_id, consumer, kind,
                    relative_path, hash, added, last_updated)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (record.id, *values),
            )
            record_id = record.id
        conn.commit()

        log.debug(f"Upserted extra file {record_id} ({record.kind}) {record.relative_path}")
        return replace(record, id=record_id, added=added, last_updated=last_updated)

    def upsert_many(self, records: list[ExtraFileRecord]) -> list[ExtraFileRecord]:
        return [self.upsert(r) for r in records]

    def delete(self, record_id: int) -> None:
        conn = self._get_conn()
        conn.execute("DELETE FROM extra_files WHERE id = ?", (record_id,))
        conn.commit()
        log.debug(f"Deleted extra file {record_id}")

    def _row_to_record(self, row: sqlite3.Row) -> ExtraFileRecord:
        return ExtraFileRecord(
            id=row["id"],
            item_id=row["item_id"],
            grouping_key=row["grouping_key"],
            media_file_id=row["media_file_id"],
            consumer=row["consumer"],
            kind=ExtraKind(row["kind"]),
            relative_path=row["relative_path"],
            hash=row["hash"],
            added=_from_text(row["added"]),
            last_updated=_from_text(row["last_updated"]),
        )
