"""Application configuration using pydantic-settings."""

import os
from dataclasses import dataclass
from pathlib import Path
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CHUNK_SIZE = 1024 * 8  # 8 KiB


@dataclass(frozen=True)
class DeliveryConfig:
    """Immutable delivery options handed to each service at construction."""

    inline_extensions: frozenset[str] = frozenset({"pdf"})
    default_archive_name: str = "archive.zip"
    chunk_size: int = DEFAULT_CHUNK_SIZE
    fallback_redirect_url: str = "/"

    def is_inline(self, extension: str) -> bool:
        """Return True when files with this extension render inline."""
        if "*" in self.inline_extensions:
            return True
        return bool(extension) and extension.lower() in self.inline_extensions


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Scoped storage root (required)
    storage_root: Path

    # Delivery policy
    download_inline: str = "pdf"  # comma separated extensions, or "*"
    default_archive_name: str = "archive.zip"
    stream_chunk_size: int = DEFAULT_CHUNK_SIZE
    fallback_redirect_url: str = "/"

    # Batch archives
    archive_compression_level: int = 6
    ticket_max_age_minutes: int = 60

    # App data directory
    app_data_dir: Path | None = None
    tmp_dir: Path | None = None

    # Server
    host: str = "127.0.0.1"
    port: int = 8430
    log_level: str = "INFO"
    cors_origins: str = ""

    def get_app_data_dir(self) -> Path:
        """Get the app data directory, creating it if needed."""
        if self.app_data_dir:
            path = self.app_data_dir
        else:
            appdata = os.environ.get("APPDATA")
            if appdata:
                path = Path(appdata) / "FileServe"
            else:
                path = Path.home() / ".fileserve"

        path.mkdir(parents=True, exist_ok=True)
        return path

    def get_tmp_dir(self) -> Path:
        """Get the temp store directory used for batch archives."""
        path = self.tmp_dir or self.get_app_data_dir() / "tmp"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def get_cors_origins(self) -> list[str]:
        return _split_csv(self.cors_origins)

    def delivery_config(self) -> DeliveryConfig:
        """Build the explicit delivery configuration passed into services."""
        extensions = frozenset(
            ext.lower().lstrip(".") for ext in _split_csv(self.download_inline)
        )
        return DeliveryConfig(
            inline_extensions=extensions,
            default_archive_name=self.default_archive_name,
            chunk_size=self.stream_chunk_size,
            fallback_redirect_url=self.fallback_redirect_url,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
