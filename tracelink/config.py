"""Configuration loading: defaults, TOML file, environment, explicit overrides.

Priority (highest first): explicit overrides > environment variables > config
file > defaults. The sampling ratio is read once, when ``tracelink.init`` runs.
"""

from __future__ import annotations

import copy
import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from tracelink.errors import ConfigurationError

CONFIG_FILE_NAME = "tracelink.toml"


class TracingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    service_name: str = "tracelink"
    sample_rate: float = Field(default=0.01, ge=0.0, le=1.0)


class ExporterConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enable_console: bool = True
    max_queue_size: int = Field(default=2048, ge=1)
    max_export_batch_size: int = Field(default=512, ge=1)
    schedule_delay_millis: int = Field(default=5000, ge=1)
    drop_policy: Literal["newest", "oldest"] = "newest"


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    env: str = "dev"
    level: str = "INFO"
    log_dir: str = "logs"

    @field_validator("env")
    @classmethod
    def _normalize_env(cls, value: str) -> str:
        return (value or "dev").strip().lower()

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = str(value).strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level {value!r}")
        return level


class TracelinkConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tracing: TracingConfig = Field(default_factory=TracingConfig)
    exporter: ExporterConfig = Field(default_factory=ExporterConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# env var -> (section, key)
ENV_VARS = {
    "TRACELINK_SERVICE_NAME": ("tracing", "service_name"),
    "TRACELINK_SAMPLE_RATE": ("tracing", "sample_rate"),
    "TRACELINK_CONSOLE_EXPORT": ("exporter", "enable_console"),
    "TRACELINK_MAX_QUEUE_SIZE": ("exporter", "max_queue_size"),
    "ENV": ("logging", "env"),
    "TRACELINK_ENV": ("logging", "env"),
    "TRACELINK_LOG_LEVEL": ("logging", "level"),
    "TRACELINK_LOG_DIR": ("logging", "log_dir"),
}


def find_config_file() -> Optional[str]:
    """Look for tracelink.toml in the current directory, then the home directory."""
    for directory in (Path.cwd(), Path.home()):
        candidate = directory / CONFIG_FILE_NAME
        if candidate.is_file():
            return str(candidate)
    return None


def load_toml_config(path: str) -> Dict[str, Any]:
    """
    Load a TOML config file.

    Returns an empty dict if the file doesn't exist.

    Raises:
        ConfigurationError: the file is not valid TOML
    """
    file_path = Path(path)
    if not file_path.is_file():
        return {}
    try:
        with file_path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError("Invalid TOML config file", {"path": path, "error": exc}) from exc


def load_env_config(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Collect config values from environment variables (strings, validated later)."""
    environ = os.environ if environ is None else environ
    result: Dict[str, Dict[str, Any]] = {}
    # TRACELINK_ENV is listed after ENV, so it wins when both are set.
    for name, (section, key) in ENV_VARS.items():
        value = environ.get(name)
        if value is None or value == "":
            continue
        result.setdefault(section, {})[key] = value
    return result


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(
    config_file: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> TracelinkConfig:
    """
    Build the effective configuration.

    Args:
        config_file: TOML file path; when None, ``find_config_file()`` is used
        overrides: Nested dict of explicit values, e.g. {"tracing": {"sample_rate": 1.0}}

    Raises:
        ConfigurationError: invalid file or out-of-range values
    """
    path = config_file or find_config_file()
    data: Dict[str, Any] = load_toml_config(path) if path else {}
    data = _merge(data, load_env_config())
    data = _merge(data, overrides or {})
    try:
        return TracelinkConfig.model_validate(data)
    except PydanticValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigurationError("Invalid tracelink configuration", {"errors": errors}) from exc


def validate_config(
    config_file: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Tuple[bool, str, Optional[TracelinkConfig]]:
    """Return (is_valid, message, config or None) without raising."""
    try:
        config = load_config(config_file=config_file, overrides=overrides)
    except ConfigurationError as exc:
        return False, str(exc), None
    return True, "ok", config
