"""Configuration management for TrackDrop"""

import sys
import yaml
from pathlib import Path
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings


def get_config_path() -> Path:
    """Return the path to config.yaml used for loading.
    When running as a frozen app, use the per-user path.
    When running from source, use the project root."""
    if getattr(sys, "frozen", False):
        return Path.home() / ".trackdrop" / "config.yaml"
    return Path(__file__).resolve().parent.parent / "config.yaml"


class Settings(BaseSettings):
    """Application settings with environment variable support

    Frozen once loaded: the pipeline receives one instance at construction
    and never mutates it.
    """

    # Application
    app_name: str = "TrackDrop"
    debug: bool = Field(default=False, alias="TRACKDROP_DEBUG")
    secret_key: Optional[str] = Field(default=None, alias="TRACKDROP_SECRET_KEY")

    # Chat
    telegram_bot_token: Optional[str] = Field(default=None, alias="TELEGRAM_BOT_TOKEN")
    telegram_webhook_url: Optional[str] = Field(
        default=None, alias="TELEGRAM_WEBHOOK_URL"
    )
    telegram_feed_chat_id: Optional[str] = Field(
        default=None, alias="TELEGRAM_FEED_CHAT_ID"
    )
    confirmation_timeout: float = Field(default=60.0, alias="CONFIRMATION_TIMEOUT")

    # YouTube
    youtube_enabled: bool = Field(default=False, alias="YOUTUBE_ENABLED")
    youtube_credentials_file: str = Field(
        default="~/.trackdrop/youtube_token.json", alias="YOUTUBE_CREDENTIALS_FILE"
    )
    youtube_category_id: str = Field(default="10", alias="YOUTUBE_CATEGORY_ID")  # Music
    youtube_privacy_status: str = Field(default="public", alias="YOUTUBE_PRIVACY_STATUS")

    # SoundCloud
    soundcloud_enabled: bool = Field(default=False, alias="SOUNDCLOUD_ENABLED")
    soundcloud_access_token: Optional[str] = Field(
        default=None, alias="SOUNDCLOUD_ACCESS_TOKEN"
    )
    soundcloud_api_url: str = Field(
        default="https://api.soundcloud.com", alias="SOUNDCLOUD_API_URL"
    )
    soundcloud_sharing: str = Field(default="public", alias="SOUNDCLOUD_SHARING")

    # Placeholder reported for any disabled target
    placeholder_url: str = Field(default="https://example.com/", alias="PLACEHOLDER_URL")

    # Site ingestion
    site_url: str = Field(default="http://localhost:3000", alias="SITE_URL")
    site_secret: str = Field(default="change-me-in-production", alias="SITE_SECRET")

    # Scratch storage
    scratch_dir: str = Field(default=".tmp", alias="SCRATCH_DIR")
    scratch_max_age_hours: int = Field(default=24, alias="SCRATCH_MAX_AGE_HOURS")

    # Encoder
    ffmpeg_binary: str = Field(default="ffmpeg", alias="FFMPEG_BINARY")
    ffmpeg_max_width: int = Field(default=1920, alias="FFMPEG_MAX_WIDTH")
    ffmpeg_preset: str = Field(default="medium", alias="FFMPEG_PRESET")
    ffmpeg_profile: str = Field(default="main", alias="FFMPEG_PROFILE")

    # Network timeouts (seconds)
    download_timeout: float = Field(default=120.0, alias="DOWNLOAD_TIMEOUT")
    publish_timeout: float = Field(default=600.0, alias="PUBLISH_TIMEOUT")
    submission_timeout: float = Field(default=120.0, alias="SUBMISSION_TIMEOUT")

    # Logging & Observability
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_json: bool = Field(default=False, alias="LOG_JSON")
    log_file: Optional[str] = Field(default=None, alias="LOG_FILE")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        populate_by_name = True
        frozen = True

    @classmethod
    def from_file(cls, path: str) -> "Settings":
        """Load settings from YAML file"""
        with open(path, "r") as f:
            config = yaml.safe_load(f) or {}
        return cls(**config)

    @property
    def scratch_path(self) -> Path:
        return Path(self.scratch_dir).expanduser()
