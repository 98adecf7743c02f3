"""Configuration Manager for Provider and Storage Settings.

This module loads the analysis provider and reminder store configuration from
environment variables or a JSON file, validating it with Pydantic before use.

Security Impact:
    - API keys are held as SecretStr and never logged or shown in reprs
    - Configuration is validated before use (fail-fast)

Architecture:
    - Infrastructure layer, isolated from the domain
    - Type-safe configuration using Pydantic models
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("openai", "groq", "anthropic")

DEFAULT_MODELS: Dict[str, list[str]] = {
    "openai": ["gpt-4o-mini", "gpt-4o"],
    "groq": ["llama-3.3-70b-versatile", "llama-3.1-8b-instant"],
    "anthropic": ["claude-sonnet-4-20250514"],
}

GROQ_BASE_URL = "https://api.groq.com/openai/v1"


class AnalysisConfig(BaseModel):
    """Analysis provider configuration.

    Parameters:
        provider: Provider name (openai, groq, anthropic)
        api_key: Provider API key (secret)
        models: Models to try, in order
        base_url: Override for OpenAI-compatible endpoints
        timeout_seconds: Per-record timeout for one analysis
        temperature: Sampling temperature
        max_tokens: Completion token limit
        max_concurrency: Provider calls in flight at once
    """

    provider: str = Field(default="openai", description="Provider name")
    api_key: Optional[SecretStr] = Field(None, description="Provider API key (secret)")
    models: list[str] = Field(default_factory=list, description="Models to try, in order")
    base_url: Optional[str] = Field(None, description="OpenAI-compatible base URL")
    timeout_seconds: float = Field(default=60.0, gt=0, description="Per-record timeout")
    temperature: float = Field(default=0.3, ge=0, le=2)
    max_tokens: int = Field(default=3000, gt=0)
    max_concurrency: int = Field(default=4, ge=1)

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        """Validate provider name."""
        if v.lower() not in SUPPORTED_PROVIDERS:
            raise ValueError(f"Unsupported analysis provider: {v}. Supported: {list(SUPPORTED_PROVIDERS)}")
        return v.lower()

    @field_validator("models", mode="before")
    @classmethod
    def split_models(cls, v) -> list[str]:
        """Accept a comma-separated string as well as a list."""
        if v is None:
            return []
        if isinstance(v, str):
            return [m.strip() for m in v.split(",") if m.strip()]
        return v

    def resolved_models(self) -> list[str]:
        """Configured models, or the provider defaults."""
        return self.models or list(DEFAULT_MODELS[self.provider])

    def resolved_base_url(self) -> Optional[str]:
        if self.base_url:
            return self.base_url
        if self.provider == "groq":
            return GROQ_BASE_URL
        return None

    @property
    def is_configured(self) -> bool:
        """True when an API key is available."""
        return self.api_key is not None and bool(self.api_key.get_secret_value())


class StorageConfig(BaseModel):
    """Reminder store configuration.

    Parameters:
        db_path: Path to the DuckDB file, or ':memory:'
    """

    db_path: str = Field(default=":memory:", description="DuckDB database path")

    @field_validator("db_path")
    @classmethod
    def validate_db_path(cls, v: str) -> str:
        """Validate database directory exists (file may not exist yet)."""
        if v == ":memory:":
            return v

        db_path_obj = Path(v)
        if not db_path_obj.parent.exists():
            raise ValueError(f"Database directory does not exist: {db_path_obj.parent}")

        return str(db_path_obj)


class ConfigManager:
    """Configuration manager for provider and storage settings.

    Example Usage:
        ```python
        config = ConfigManager.from_environment()
        analysis_config = config.get_analysis_config()

        config = ConfigManager.from_file("config.json")
        storage_config = config.get_storage_config()
        ```
    """

    def __init__(self, config_data: Dict[str, Any]):
        self._config_data = config_data
        self._analysis_config: Optional[AnalysisConfig] = None
        self._storage_config: Optional[StorageConfig] = None

    @classmethod
    def from_environment(cls) -> 'ConfigManager':
        """Load configuration from environment variables.

        Environment Variables:
            - RX_ANALYSIS_PROVIDER: openai, groq or anthropic
            - RX_ANALYSIS_API_KEY: API key (falls back to OPENAI_API_KEY,
              GROQ_API_KEY or ANTHROPIC_API_KEY for the chosen provider)
            - RX_ANALYSIS_MODELS: Comma-separated models to try in order
            - RX_ANALYSIS_BASE_URL: OpenAI-compatible endpoint override
            - RX_ANALYSIS_TIMEOUT: Per-record timeout in seconds
            - RX_ANALYSIS_MAX_CONCURRENCY: Provider calls in flight
            - RX_DB_PATH: DuckDB database path

        A .env file in the working directory is loaded first when present.
        """
        env_path = Path.cwd() / ".env"
        if env_path.exists():
            from dotenv import load_dotenv

            load_dotenv(env_path)
            logger.debug(f"Loaded environment variables from {env_path}")

        provider = os.getenv("RX_ANALYSIS_PROVIDER", "openai").lower()
        api_key = os.getenv("RX_ANALYSIS_API_KEY") or os.getenv(f"{provider.upper()}_API_KEY")

        analysis: Dict[str, Any] = {
            "provider": provider,
            "api_key": api_key,
            "models": os.getenv("RX_ANALYSIS_MODELS"),
            "base_url": os.getenv("RX_ANALYSIS_BASE_URL"),
        }
        if os.getenv("RX_ANALYSIS_TIMEOUT"):
            analysis["timeout_seconds"] = float(os.getenv("RX_ANALYSIS_TIMEOUT"))
        if os.getenv("RX_ANALYSIS_MAX_CONCURRENCY"):
            analysis["max_concurrency"] = int(os.getenv("RX_ANALYSIS_MAX_CONCURRENCY"))

        config_data = {
            "analysis": analysis,
            "storage": {"db_path": os.getenv("RX_DB_PATH", ":memory:")},
        }
        return cls(config_data)

    @classmethod
    def from_file(cls, config_path: str) -> 'ConfigManager':
        """Load configuration from a JSON file.

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config file is invalid JSON
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        stat_info = config_file.stat()
        if stat_info.st_mode & 0o077 != 0:
            logger.warning(
                f"Configuration file has overly permissive permissions: {config_path}. "
                "Consider setting to 600 for files holding API keys."
            )

        try:
            with open(config_file, 'r') as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {str(e)}")

        return cls(config_data)

    def get_analysis_config(self) -> AnalysisConfig:
        """Get validated analysis provider configuration."""
        if self._analysis_config is None:
            data = {k: v for k, v in self._config_data.get("analysis", {}).items() if v is not None}
            self._analysis_config = AnalysisConfig(**data)
        return self._analysis_config

    def get_storage_config(self) -> StorageConfig:
        """Get validated storage configuration."""
        if self._storage_config is None:
            data = {k: v for k, v in self._config_data.get("storage", {}).items() if v is not None}
            self._storage_config = StorageConfig(**data)
        return self._storage_config

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dot-notation key (e.g. "storage.db_path")."""
        value = self._config_data

        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default
