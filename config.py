# config.py
import sys
from functools import lru_cache
from pathlib import Path
from typing import ClassVar, Literal

from loguru import logger
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: ClassVar[str] = "videoset"

    # Storage
    storage_dir: Path = Path(".")
    uploads_subdir: str = "uploads"
    output_subdir: str = "output"
    database_url: str | None = None

    # External tools
    ffmpeg_bin: str = "ffmpeg"
    ffprobe_bin: str = "ffprobe"
    probe_timeout: float = 30.0
    encode_preset: str = "medium"
    encode_crf: int = 23

    # Used when ffprobe can't read an upload
    fallback_duration: float = 30.0
    fallback_width: int = 1920
    fallback_height: int = 1080

    # Progress polling
    poll_interval: float = 2.0
    poll_grace_period: float = 2.0
    poll_max_duration: float = 300.0

    save_delay: float = 0.5

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="VIDEOSET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def uploads_dir(self) -> Path:
        return self.storage_dir / self.uploads_subdir

    @property
    def output_dir(self) -> Path:
        return self.storage_dir / self.output_subdir

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.storage_dir / 'videoset.db'}"

    def resolve(self, filepath: str) -> Path:
        """Turn a storage-relative path from the database into a real path."""
        return self.storage_dir / filepath


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str | None = None) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level or get_settings().log_level,
        colorize=True,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>",
    )
