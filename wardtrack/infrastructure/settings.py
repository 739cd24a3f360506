"""Application Settings and Configuration.

This module provides application-wide settings that combine configuration
from the configuration manager with application-specific defaults.
"""

import os
from typing import Optional

from wardtrack.domain.services import DEFAULT_SYSTEM_ACTOR
from wardtrack.infrastructure.config_manager import (
    ConfigManager,
    DatabaseConfig,
    MirrorConfig,
)

# Application metadata
APP_NAME = "Ward Tracker"
APP_VERSION = "1.0.0"

DEFAULT_API_URL = "http://localhost:8000"
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000"


class Settings:
    """Application settings loaded from configuration manager and environment."""

    def __init__(self):
        """Initialize settings from environment."""
        self._config_manager: Optional[ConfigManager] = None

        self.app_name = os.getenv("WT_APP_NAME", APP_NAME)
        self.log_level = os.getenv("WT_LOG_LEVEL", "INFO")
        self.json_logs = os.getenv("WT_JSON_LOGS", "false").lower() == "true"

        # Author label of synthetic discharge notes (no identity system exists)
        self.system_actor = os.getenv("WT_SYSTEM_ACTOR", DEFAULT_SYSTEM_ACTOR)

        # Base URL the CLI report commands talk to
        self.api_url = os.getenv("WT_API_URL", DEFAULT_API_URL)

        self.cors_origins = [
            origin.strip()
            for origin in os.getenv("WT_CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
            if origin.strip()
        ]

        # Mirror monitor thresholds
        self.mirror_failure_threshold = float(os.getenv("WT_MIRROR_FAILURE_THRESHOLD", "50.0"))
        self.mirror_window_size = int(os.getenv("WT_MIRROR_WINDOW_SIZE", "100"))

    @property
    def config_manager(self) -> ConfigManager:
        """Configuration manager instance (loaded lazily)."""
        if self._config_manager is None:
            self._config_manager = ConfigManager.from_environment()
        return self._config_manager

    @property
    def db_config(self) -> DatabaseConfig:
        """Primary store configuration."""
        return self.config_manager.get_database_config()

    @property
    def mirror_config(self) -> MirrorConfig:
        """Document mirror configuration."""
        return self.config_manager.get_mirror_config()


# Global settings instance
settings = Settings()
