"""Remote image download.

Streams the response body into a ``.part`` sibling and renames it over the
destination only once the transfer completed, so a failed or partial
transfer never leaves a file at the destination: the next reconciliation
sees no file and retries.
"""

import os
from pathlib import Path

import httpx
from loguru import logger

from ..errors import DownloadError

log = logger.bind(stage="http")


def download_file(url: str, dest: Path, timeout: float = 30.0) -> None:
    """Download url into dest.

    Raises DownloadError on any HTTP failure; local write errors propagate
    as OSError. Either way dest is left untouched.
    """
    log.debug(f"Downloading {url} -> {dest}")
    dest.parent.mkdir(parents=True, exist_ok=True)
    part = dest.with_name(dest.name + ".part")

    try:
        with httpx.stream("GET", url, timeout=timeout, follow_redirects=True) as resp:
            resp.raise_for_status()
            with open(part, "wb") as fh:
                for chunk in resp.iter_bytes():
                    fh.write(chunk)
        os.replace(part, dest)
    except httpx.HTTPStatusError as e:
        raise DownloadError(url, e.response.status_code, e.response.reason_phrase) from e
    except httpx.HTTPError as e:
        raise DownloadError(url, None, str(e)) from e
    finally:
        part.unlink(missing_ok=True)

    log.debug(f"Downloaded {dest.stat().st_size:,} bytes from {url}")
