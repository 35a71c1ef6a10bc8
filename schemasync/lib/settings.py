"""Engine settings.

Settings come from three places, later ones winning:

1. Field defaults below
2. ``SCHEMASYNC_*`` environment variables (and a ``.env`` file)
3. An optional YAML file passed to ``load_settings``

Example YAML:
    logging:
      level: DEBUG
      format: json
      file: ./logs/schemasync.log
    max_workers: 4
    store_root: ./packages
    store_retry_attempts: 5
    message_templates:
      minimum-constraint: "{value} is below {constraint}"
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from schemasync.lib.errors import ConfigurationError

logger = logging.getLogger(__name__)

__all__ = ["LoggingConfig", "EngineSettings", "load_settings"]


class LoggingConfig(BaseModel):
    """Logging section of the engine settings."""

    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field(default="console", description="'json' or 'console'")
    file: Optional[str] = Field(default=None, description="Optional log file path")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        valid_formats = ["json", "console"]
        if v.lower() not in valid_formats:
            raise ValueError(f"format must be one of: {valid_formats}")
        return v.lower()

    @property
    def json_format(self) -> bool:
        return self.format == "json"


class EngineSettings(BaseSettings):
    """Environment-based settings for the validation engine.

    Example:
        >>> # SCHEMASYNC_MAX_WORKERS=4
        >>> # SCHEMASYNC_LOGGING__LEVEL=DEBUG
        >>> settings = EngineSettings()
        >>> settings.max_workers
        4
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    max_workers: int = Field(default=1, ge=1, le=64, description="Columns checked in parallel")
    store_root: Optional[str] = Field(default=None, description="Metadata store directory")
    store_retry_attempts: int = Field(default=3, ge=1, le=10, description="Store I/O attempts")
    message_templates: Dict[str, str] = Field(
        default_factory=dict,
        description="Per-code finding message overrides",
    )

    model_config = SettingsConfigDict(
        env_prefix="SCHEMASYNC_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def load_settings(path: Optional[Union[str, Path]] = None) -> EngineSettings:
    """Build settings from the environment, overlaid with a YAML file.

    Args:
        path: Optional YAML file; its values override environment values

    Raises:
        ConfigurationError: If the file is missing, is not valid YAML, or
            does not validate
    """
    overrides: Dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.is_file():
            raise ConfigurationError(
                f"Settings file not found: {config_path}",
                path=str(config_path),
            )
        with open(config_path, encoding="utf-8") as f:
            try:
                loaded = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(
                    f"Invalid YAML in {config_path}: {e}",
                    path=str(config_path),
                ) from e
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigurationError(
                f"Settings file {config_path} must contain a mapping",
                path=str(config_path),
            )
        overrides = loaded

    try:
        settings = EngineSettings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid settings: {e.error_count()} error(s)",
            path=str(path) if path is not None else None,
            details={"errors": [err["msg"] for err in e.errors()]},
        ) from e

    logger.debug("Loaded settings: %s", settings.model_dump())
    return settings
