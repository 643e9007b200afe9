"""Configuration System.

This module provides the configuration for metric-charts, including:
- Pydantic models for all configuration sections
- YAML file loading with default fallbacks
- Partial config merging
- Validation with clear error messages

Configuration is loaded from metric-charts.yaml files. If no file exists,
sensible defaults are used. Partial configurations are merged with defaults.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


# Default configuration file name
CONFIG_FILE_NAME = "metric-charts.yaml"


# =============================================================================
# EXCEPTIONS
# =============================================================================


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


# =============================================================================
# ENUMS
# =============================================================================


class LogLevel(str, Enum):
    """Logging level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# =============================================================================
# CONFIGURATION MODELS
# =============================================================================


class CatalogConfig(BaseModel):
    """Metrics catalog settings."""

    path: str | None = Field(
        None, description="File with the available metric names (.txt, .json or .yaml)"
    )


class TemplatesConfig(BaseModel):
    """Chart template settings.

    Each path is either a YAML template file or a directory of them.
    """

    paths: list[str] = Field(
        default_factory=lambda: ["templates"],
        description="Template files or directories to load",
    )

    @field_validator("paths")
    @classmethod
    def validate_paths(cls, v: list[str]) -> list[str]:
        """Validate that no path is blank."""
        for path in v:
            if not path.strip():
                raise ValueError("Template paths must not be empty")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Logging level")
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )
    directory: str = Field("logs", description="Log directory, relative to the base path")


class Config(BaseModel):
    """Complete configuration.

    Configuration is loaded from metric-charts.yaml with defaults for missing values.
    """

    model_config = ConfigDict(use_enum_values=True)

    version: str = Field("1.0", description="Configuration version")
    catalog: CatalogConfig = Field(
        default_factory=CatalogConfig, description="Metrics catalog settings"
    )
    templates: TemplatesConfig = Field(
        default_factory=TemplatesConfig, description="Chart template settings"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )


# =============================================================================
# DEFAULT CONFIGURATION
# =============================================================================


def get_default_config() -> Config:
    """Return the default configuration."""
    return Config()


# =============================================================================
# CONFIG LOADING
# =============================================================================


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries.

    Values from override take precedence. Nested dicts are merged recursively.
    Lists are replaced entirely (not merged).
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(path: Path | str | None = None) -> Config:
    """Load configuration from a YAML file.

    If no path is provided, looks for metric-charts.yaml in the current directory.
    If the file doesn't exist, returns default configuration.
    Partial configurations are merged with defaults.

    Args:
        path: Path to configuration file.

    Returns:
        Loaded and validated Config.

    Raises:
        ConfigurationError: If YAML is invalid or configuration values are invalid.
    """
    if path is None:
        config_path = Path.cwd() / CONFIG_FILE_NAME
    else:
        config_path = Path(path)

    if not config_path.exists():
        return get_default_config()

    try:
        with open(config_path) as f:
            user_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Error reading {config_path}: {e}") from e

    # Handle empty file
    if user_config is None:
        return get_default_config()

    if not isinstance(user_config, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping at the top level")

    merged = _deep_merge(get_default_config().model_dump(), user_config)

    try:
        return Config(**merged)
    except Exception as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


# =============================================================================
# CONFIG VALIDATION
# =============================================================================


def validate_config(config: Config, base_path: Path | None = None) -> list[str]:
    """Check a configuration for likely mistakes.

    Args:
        config: Configuration to validate
        base_path: Directory relative paths are resolved against (default: cwd)

    Returns:
        List of validation messages. Empty list if nothing looks wrong.
    """
    errors: list[str] = []
    base = base_path or Path.cwd()

    if config.catalog.path is None:
        errors.append(
            "catalog.path is not set. Pass --metrics on the command line "
            "or point it at a file of metric names."
        )
    elif not (base / config.catalog.path).exists():
        errors.append(f"catalog.path={config.catalog.path} does not exist.")

    if not config.templates.paths:
        errors.append("templates.paths is empty. No chart templates will be loaded.")

    for template_path in config.templates.paths:
        if not (base / template_path).exists():
            errors.append(f"templates.paths entry {template_path} does not exist.")

    return errors
