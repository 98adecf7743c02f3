"""Application Settings and Configuration.

This module provides application-wide settings that combine configuration
from the configuration manager with application-specific defaults.

Security Impact:
    - Provider credentials are loaded through ConfigManager as SecretStr
    - Sensitive values are never logged
"""

import os
from typing import Optional

from rxreminders.domain.enums import AnalysisStrategy
from rxreminders.infrastructure.config_manager import AnalysisConfig, ConfigManager, StorageConfig


class Settings:
    """Application settings loaded from configuration manager and environment."""

    def __init__(self):
        self._config_manager: Optional[ConfigManager] = None

        self.log_level = os.getenv("RX_LOG_LEVEL", "INFO")
        self.log_json = os.getenv("RX_LOG_JSON", "false").lower() == "true"
        self.default_strategy = AnalysisStrategy(os.getenv("RX_DEFAULT_STRATEGY", "basic").lower())

        # Apply an edited recurrence to the whole medication group immediately
        self.propagate_recurrence = os.getenv("RX_PROPAGATE_RECURRENCE", "false").lower() == "true"

    @property
    def config_manager(self) -> ConfigManager:
        """Configuration manager, created on first access."""
        if self._config_manager is None:
            self._config_manager = ConfigManager.from_environment()
        return self._config_manager

    @property
    def analysis_config(self) -> AnalysisConfig:
        return self.config_manager.get_analysis_config()

    @property
    def storage_config(self) -> StorageConfig:
        return self.config_manager.get_storage_config()


# Global settings instance
settings = Settings()
