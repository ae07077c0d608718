"""File locking and per-item serialization."""

from __future__ import annotations

import os
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO

from loguru import logger

log = logger.bind(stage="concurrency")

LOCK_FILE_NAME = "extras.lock"


class LockError(Exception):
    """Raised when lock cannot be acquired."""


def _try_lock(fh: IO[str]) -> bool:
    """Non-blocking exclusive lock on the first byte of an open file."""
    fh.seek(0)
    try:
        if sys.platform == "win32":
            import msvcrt

            msvcrt.locking(fh.fileno(), msvcrt.LK_NBLCK, 1)
        else:
            import fcntl

            fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError:
        return False
    return True


def _holder_pid(fh: IO[str]) -> str:
    fh.seek(0)
    try:
        return fh.read().strip()
    except OSError:
        return ""


def acquire_global_lock(lock_dir: Path, skip: bool = False) -> IO[str] | None:
    """Hold the media-extras singleton lock for the life of the process.

    Keep the returned handle open; closing it releases the lock. Returns
    None when skip is set. Raises LockError naming the holder's pid when
    another instance owns the lock.
    """
    if skip:
        log.debug("Skipping lock acquisition")
        return None

    lock_dir.mkdir(parents=True, exist_ok=True)
    lock_file = lock_dir / LOCK_FILE_NAME

    # Append mode leaves the current holder's pid in place until we own it
    fh = open(lock_file, "a+")
    if not _try_lock(fh):
        holder = _holder_pid(fh)
        fh.close()
        log.warning(f"Lock at {lock_file} held by pid {holder or '?'}")
        suffix = f" (pid {holder})" if holder else ""
        raise LockError(f"Another media-extras instance is running{suffix}")

    fh.truncate(0)
    fh.write(f"{os.getpid()}\n")
    fh.flush()
    log.info(f"Lock acquired at {lock_file}")
    return fh


class ItemLocks:
    """One lock per library item.

    Reconciliation isn't safe against itself for the same item (two runs
    could race on one destination path); distinct items never contend.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}

    def _lock_for(self, item_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(item_id)
            if lock is None:
                lock = self._locks[item_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, item_id: int) -> Iterator[None]:
        lock = self._lock_for(item_id)
        if not lock.acquire(blocking=False):
            log.debug(f"Waiting for in-flight reconciliation of item {item_id}")
            lock.acquire()
        try:
            yield
        finally:
            lock.release()
