"""Media extras configuration via pydantic-settings (.env + env vars)."""

import os
import sys
from pathlib import Path

from loguru import logger
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExtrasConfig(BaseSettings):
    """All configuration with layered resolution:
    .env file < environment variables < constructor kwargs.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # -- Directories --
    db_path: Path = Path("/var/lib/media-extras/extras.db")
    log_dir: Path = Path("/var/log/media-extras")
    lock_dir: Path = Path("/var/lib/media-extras/locks")

    # -- Consumers --
    enabled_consumers: list[str] = ["kodi"]
    remove_disabled_consumer_files: bool = False

    # -- Permissions --
    file_owner: str = ""
    file_mode: str = "644"

    # -- Images --
    download_timeout: float = 30.0
    cleanup_metadata_images: bool = True

    # -- Parallel sync --
    max_parallel_items: int = 0  # 0 = auto (CPU-based)

    # -- Behavior --
    verbose: bool = False
    log_level: str = "INFO"

    @field_validator("file_mode")
    @classmethod
    def _octal_mode(cls, value: str) -> str:
        try:
            int(value, 8)
        except ValueError:
            raise ValueError(f"file_mode must be an octal string, got {value!r}")
        return value

    @property
    def parallel_items(self) -> int:
        """Worker count for multi-item sync."""
        if self.max_parallel_items > 0:
            return self.max_parallel_items
        return min(8, os.cpu_count() or 1)

    def ensure_dirs(self) -> None:
        """Create all required directories if they don't exist."""
        for d in (
            self.db_path.parent,
            self.log_dir,
            self.lock_dir,
        ):
            d.mkdir(parents=True, exist_ok=True)

    def setup_logging(self) -> None:
        """Configure loguru for media extras."""
        logger.remove()  # Remove default stderr handler

        log_format = (
            "{time:YYYY-MM-DDTHH:mm:ssZ} | {level:<8} | "
            "{extra[stage]:<12} | {message}"
        )

        def _default_extra(record):
            record["extra"].setdefault("stage", "")
            return True

        logger.add(
            sys.stderr,
            format=log_format,
            level=self.log_level.upper(),
            filter=_default_extra,
        )

        self.log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(self.log_dir / "extras.log"),
            format=log_format,
            level="DEBUG",
            rotation="10 MB",
            retention="30 days",
            filter=_default_extra,
        )
