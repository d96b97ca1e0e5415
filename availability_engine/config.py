"""
Configuration management using Pydantic models loaded from YAML.
"""

import logging
from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class StoreConfig(BaseModel):
    """Which store backs the engine and how long a call may take."""
    backend: Literal["memory", "rest"] = "memory"
    data_file: Optional[Path] = None
    base_url: str = ""
    api_key: str = ""
    timeout_seconds: float = 8.0

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        """Ensure the store time budget is positive."""
        if value <= 0:
            raise ValueError("timeout_seconds must be greater than zero")
        return value

    @model_validator(mode="after")
    def validate_backend_settings(self) -> "StoreConfig":
        """Ensure the REST backend knows where to connect."""
        if self.backend == "rest" and not self.base_url:
            raise ValueError("base_url is required for the rest backend")
        return self


class DefaultsConfig(BaseModel):
    """Default settings for availability queries."""
    slot_minutes: int = 30

    @field_validator("slot_minutes")
    @classmethod
    def validate_slot_minutes(cls, value: int) -> int:
        """Ensure slot length is positive and fits in a day."""
        if not 0 < value <= 1440:
            raise ValueError(f"slot_minutes must be between 1 and 1440, got {value}")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    store: StoreConfig = Field(default_factory=StoreConfig)
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    log_level: str = "WARNING"
    providers: List[str] = Field(default_factory=list)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Ensure the log level is one the logging module knows."""
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("providers")
    @classmethod
    def validate_providers(cls, value: List[str]) -> List[str]:
        """Remove duplicate provider ids while keeping order."""
        seen: set[str] = set()
        deduped: List[str] = []
        for provider_id in value:
            if provider_id not in seen:
                deduped.append(provider_id)
                seen.add(provider_id)
        return deduped

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)

        # Relative data files are resolved next to the config file
        data_file = config.store.data_file
        if data_file is not None and not data_file.is_absolute():
            config.store.data_file = config_path.parent / data_file

        return config


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
