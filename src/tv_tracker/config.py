"""Configuration management using Pydantic models."""

import logging
import os
from datetime import timedelta
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from .constants import (
    DEFAULT_BATCH_DELAY_SECONDS,
    DEFAULT_BATCH_SIZE,
    DEFAULT_REFRESH_INTERVAL_MINUTES,
    DEFAULT_STALE_AFTER_HOURS,
    DEFAULT_TIMEOUT_SECONDS,
    SOURCE_BASE_URL,
    SOURCE_TAG,
)

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "TV_TRACKER_CONFIG"
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


class SourceConfig(BaseModel):
    """Episode source (TVmaze) settings."""
    base_url: str = SOURCE_BASE_URL
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    user_agent: str = "tv-tracker/0.1"
    id_prefix: str = SOURCE_TAG


class RefreshConfig(BaseModel):
    """Background refresh settings."""
    stale_after_hours: float = Field(default=DEFAULT_STALE_AFTER_HOURS, gt=0)
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, ge=1, le=20)
    batch_delay_seconds: float = Field(default=DEFAULT_BATCH_DELAY_SECONDS, ge=0)
    interval_minutes: int = Field(default=DEFAULT_REFRESH_INTERVAL_MINUTES, ge=1)


class StorageConfig(BaseModel):
    """Watchlist storage settings."""
    path: str = "data/watchlist.json"


class Config(BaseModel):
    """Root configuration model."""
    source: SourceConfig = Field(default_factory=SourceConfig)
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    log_level: str = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        """Accept any casing, reject unknown levels."""
        level = str(v or "INFO").upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(LOG_LEVELS)}")
        return level


class Settings:
    """Application settings loaded from config.yaml."""

    def __init__(self, config_path: Optional[Path] = None):
        """Load and validate configuration."""
        self.config_path = Path(config_path) if config_path else self._get_config_path()

        if not self.config_path.exists():
            self._create_config_template()

        self._load_config()

    def _get_config_path(self) -> Path:
        """Get config file path from the environment or the default location."""
        env_path = os.environ.get(CONFIG_PATH_ENV)
        if env_path:
            return Path(env_path)
        return Path("data/config.yaml")

    def _create_config_template(self) -> None:
        """Write a config file populated with defaults."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(Config().model_dump(), f, sort_keys=False)
        logger.info(f"Created default config: {self.config_path}")

    def _load_config(self) -> None:
        """Load configuration from YAML using Pydantic."""
        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                raw_config = yaml.safe_load(f) or {}

            config = Config(**raw_config)
            logger.debug(f"Loaded configuration from {self.config_path}")
        except Exception as e:
            logger.error(f"Failed to load config: {e}")
            raise

        self.config = config

        self.source_base_url = config.source.base_url
        self.source_timeout = config.source.timeout_seconds
        self.user_agent = config.source.user_agent
        self.id_prefix = config.source.id_prefix

        self.stale_after = timedelta(hours=config.refresh.stale_after_hours)
        self.batch_size = config.refresh.batch_size
        self.batch_delay = config.refresh.batch_delay_seconds
        self.refresh_interval_minutes = config.refresh.interval_minutes

        self.storage_path = Path(config.storage.path)
        self.log_level = config.log_level


# Singleton cache for settings
_SETTINGS_SINGLETON = None

def get_settings() -> Settings:
    """Get (cached) application settings singleton."""
    global _SETTINGS_SINGLETON
    if _SETTINGS_SINGLETON is None:
        _SETTINGS_SINGLETON = Settings()
    return _SETTINGS_SINGLETON

def reload_settings() -> Settings:
    """Force reload of application settings singleton."""
    global _SETTINGS_SINGLETON
    _SETTINGS_SINGLETON = Settings()
    return _SETTINGS_SINGLETON
