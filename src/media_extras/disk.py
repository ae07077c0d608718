"""Disk primitives for extra files: exists/read/write/copy/move/delete.

Thin wrapper over pathlib/shutil so reconciliation can be exercised against
a real temp directory in tests and swapped for a fake when needed. Every
operation works on absolute paths and raises OSError on failure, except
set_permissions (logged) and delete of a missing file (no-op).
"""

from __future__ import annotations

import errno
import os
import shutil
from pathlib import Path

from loguru import logger

log = logger.bind(stage="disk")


class DiskProvider:
    """Filesystem access with post-write permission normalization."""

    def __init__(self, file_mode: str = "644", file_owner: str = "") -> None:
        self.file_mode = int(file_mode, 8)
        self.file_owner = file_owner

    def file_exists(self, path: Path) -> bool:
        return path.is_file()

    def folder_exists(self, path: Path) -> bool:
        return path.is_dir()

    def read_text(self, path: Path) -> str:
        # Undecodable bytes just hash differently, so the file gets rewritten
        return path.read_text(encoding="utf-8", errors="replace")

    def read_head(self, path: Path, size: int) -> bytes:
        """Read at most ``size`` bytes from the start of a file."""
        with open(path, "rb") as fh:
            return fh.read(size)

    def write_text(self, path: Path, contents: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        log.debug(f"Write {path} ({len(contents)} chars)")
        path.write_text(contents, encoding="utf-8")

    def copy(self, source: Path, dest: Path) -> None:
        """Copy a file. dest only appears once the copy is complete."""
        dest.parent.mkdir(parents=True, exist_ok=True)
        log.debug(f"Copy {source} -> {dest}")
        part = dest.with_name(dest.name + ".part")
        try:
            shutil.copy2(source, part)
            os.replace(part, dest)
        finally:
            part.unlink(missing_ok=True)

    def move(self, source: Path, dest: Path) -> None:
        """Move a file, falling back to copy+unlink across filesystems."""
        dest.parent.mkdir(parents=True, exist_ok=True)
        log.debug(f"Move {source} -> {dest}")
        try:
            os.replace(source, dest)
        except OSError as e:
            # NFS and cross-device moves can't rename atomically
            if e.errno not in (errno.EXDEV, errno.EBUSY):
                raise
            log.debug(f"Rename failed ({e.strerror}), copying instead")
            shutil.copy2(source, dest)
            source.unlink()

    def delete(self, path: Path) -> None:
        """Delete a file. A file that is already gone is not an error."""
        log.debug(f"Delete {path}")
        path.unlink(missing_ok=True)

    def set_permissions(self, path: Path) -> None:
        """Apply the configured file mode (and owner) after a write."""
        try:
            os.chmod(path, self.file_mode)
            if self.file_owner:
                user, _, group = self.file_owner.partition(":")
                shutil.chown(path, user=user or None, group=group or None)
        except (OSError, LookupError) as e:
            log.warning(f"Unable to set permissions on {path}: {e}")
