"""
Configuration for polling-manager.

This module provides the typed manager configuration with:
- Dataclass-based settings with validation
- Environment variable loading (optionally from a .env file)
- YAML/TOML file loading with JSON schema validation
- Sensible defaults with override capability
"""
from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Literal, Union, get_args

import jsonschema
from dotenv import find_dotenv, load_dotenv

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["text", "json"]

_LOG_LEVELS: tuple[str, ...] = get_args(LogLevel)
_LOG_FORMATS: tuple[str, ...] = get_args(LogFormat)

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "polling_interval": {"type": "number", "exclusiveMinimum": 0},
        "max_retry_attempts": {"type": "integer", "minimum": 0},
        "log_level": {"type": "string"},
        "log_format": {"type": "string", "enum": list(_LOG_FORMATS)},
        "abort_overrides_terminal": {"type": "boolean"},
        # Original camelCase names; pollingInterval is in milliseconds
        "pollingInterval": {"type": "number", "exclusiveMinimum": 0},
        "maxRetryAttempts": {"type": "integer", "minimum": 0},
        "logLevel": {"type": "string"},
    },
    "additionalProperties": True,
}

_CAMEL_CASE_KEYS = {
    "maxRetryAttempts": "max_retry_attempts",
    "logLevel": "log_level",
}


@dataclass(frozen=True)
class PollingConfig:
    """Manager-wide settings applied uniformly to every job of one manager."""

    # Seconds between poll attempts (and before the first one)
    polling_interval: float = 5.0
    # "Not done" results tolerated; N permits N+1 poll invocations
    max_retry_attempts: int = 10

    log_level: LogLevel = "INFO"
    log_format: LogFormat = "text"

    # Let abort() overwrite COMPLETED/FAILED with ABORTED
    abort_overrides_terminal: bool = False

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.polling_interval <= 0:
            raise ValueError("polling_interval must be positive")
        if self.max_retry_attempts < 0:
            raise ValueError("max_retry_attempts cannot be negative")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        if self.log_format not in _LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(_LOG_FORMATS)}")
        object.__setattr__(self, "log_level", self.log_level.upper())

    def with_overrides(self, **kwargs: Any) -> PollingConfig:
        """Return a validated copy with the given fields replaced."""
        return replace(self, **kwargs)

    @classmethod
    def from_env(cls, prefix: str = "POLLING_") -> PollingConfig:
        """
        Load settings from environment variables.

        Example:
            POLLING_INTERVAL=2.5
            POLLING_MAX_RETRY_ATTEMPTS=20
            POLLING_LOG_LEVEL=debug
        """
        values: dict[str, Any] = {}

        if interval := os.getenv(f"{prefix}INTERVAL"):
            values["polling_interval"] = float(interval)
        if retries := os.getenv(f"{prefix}MAX_RETRY_ATTEMPTS"):
            values["max_retry_attempts"] = int(retries)
        if level := os.getenv(f"{prefix}LOG_LEVEL"):
            values["log_level"] = level.upper()
        if log_format := os.getenv(f"{prefix}LOG_FORMAT"):
            values["log_format"] = log_format.lower()
        if override := os.getenv(f"{prefix}ABORT_OVERRIDES_TERMINAL"):
            values["abort_overrides_terminal"] = override.strip().lower() in ("1", "true", "yes", "on")

        return cls(**values)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> PollingConfig:
        """
        Load settings from a YAML or TOML file.

        The file may hold the settings at top level or under a ``polling``
        table/section.
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        suffix = path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            import yaml
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        elif suffix == ".toml":
            import tomllib
            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {suffix}")

        if isinstance(data.get("polling"), dict):
            data = data["polling"]
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PollingConfig:
        """Create a config from a dictionary, ignoring unknown keys."""
        try:
            jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            raise ValueError(f"Configuration validation failed: {e.message}") from e

        values: dict[str, Any] = {}
        if "pollingInterval" in data:
            values["polling_interval"] = data["pollingInterval"] / 1000.0
        for camel, snake in _CAMEL_CASE_KEYS.items():
            if camel in data:
                values[snake] = data[camel]

        known = {f.name for f in fields(cls)}
        for key, value in data.items():
            if key in known:
                values[key] = value

        return cls(**values)


def load_env(path: str | None = None, *, override: bool = False) -> bool:
    """
    Load environment variables from a .env file.

    Args:
        path: Optional path to a .env file. If not provided, uses find_dotenv().
        override: Whether to override existing environment variables.

    Returns:
        True if a file was found and loaded.
    """
    env_path = path or find_dotenv(usecwd=True)
    if not env_path:
        return False
    return load_dotenv(env_path, override=override)


__all__ = ["PollingConfig", "CONFIG_SCHEMA", "load_env", "LogLevel", "LogFormat"]
