"""Content hashing and path identity for extra files."""

import hashlib
import os
from pathlib import Path

from loguru import logger

log = logger.bind(stage="fingerprint")


def content_hash(contents: str) -> str:
    """SHA-256 hex digest of a metadata document's UTF-8 bytes.

    Images are tracked by path, so only textual metadata is hashed.
    """
    result = hashlib.sha256(contents.encode("utf-8")).hexdigest()
    log.trace(f"content_hash: {len(contents)} chars -> {result[:16]}")
    return result


def path_equals(a: str | Path, b: str | Path) -> bool:
    """Compare two paths after normalizing separators, dot segments and case
    (case folding only on case-insensitive platforms)."""
    return os.path.normcase(os.path.normpath(str(a))) == os.path.normcase(
        os.path.normpath(str(b))
    )
