"""Configuration loading, parsing, and validation for the telexport SDK."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from telexport.exceptions import ConfigurationError
from telexport.records import DataType

logger = logging.getLogger(__name__)

# Pattern for environment variable substitution: ${VAR_NAME}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")

# Environment variable for config path fallback
TELEXPORT_CONFIG_PATH_ENV = "TELEXPORT_CONFIG_PATH"


@dataclass
class ServiceConfig:
    """Service identification configuration."""

    name: str = ""
    version: str | None = None


@dataclass
class PipelineConfig:
    """Settings for the per-type chain built by CompositeExporter."""

    max_attributes: int = 128
    max_batch_size: int = 512
    schedule_delay_millis: int = 5000
    shutdown_timeout_millis: int = 30000

    @property
    def schedule_delay(self) -> float:
        return self.schedule_delay_millis / 1000.0

    @property
    def shutdown_timeout(self) -> float:
        return self.shutdown_timeout_millis / 1000.0


@dataclass
class ValidationConfig:
    """Validation mode configuration."""

    mode: str = "permissive"  # "strict" or "permissive"


@dataclass
class Config:
    """Complete SDK configuration."""

    service: ServiceConfig = field(default_factory=ServiceConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    data_types: dict[DataType, bool] = field(
        default_factory=lambda: {data_type: True for data_type in DataType}
    )
    validation: ValidationConfig = field(default_factory=ValidationConfig)

    @property
    def is_strict(self) -> bool:
        """Return True if validation mode is strict."""
        return self.validation.mode == "strict"

    @property
    def enabled_types(self) -> frozenset[DataType]:
        return frozenset(t for t, enabled in self.data_types.items() if enabled)


def _substitute_env_vars(value: str, strict: bool) -> str:
    """Substitute ${VAR_NAME} patterns with environment variable values.

    Args:
        value: String potentially containing ${VAR_NAME} patterns.
        strict: If True, raise ConfigurationError for missing env vars.

    Returns:
        String with environment variables substituted.

    Raises:
        ConfigurationError: If strict=True and an env var is not set.
    """

    def replace_match(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            if strict:
                raise ConfigurationError(
                    f"Environment variable '{var_name}' is not set"
                )
            logger.warning(
                "Environment variable '%s' not set, using empty string", var_name
            )
            return ""
        return env_value

    return ENV_VAR_PATTERN.sub(replace_match, value)


def _substitute_env_vars_recursive(data: Any, strict: bool) -> Any:
    """Recursively substitute environment variables in a data structure."""
    if isinstance(data, dict):
        return {k: _substitute_env_vars_recursive(v, strict) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars_recursive(item, strict) for item in data]
    elif isinstance(data, str):
        return _substitute_env_vars(data, strict)
    else:
        return data


def _parse_service_config(data: dict[str, Any]) -> ServiceConfig:
    """Parse service configuration section."""
    return ServiceConfig(
        name=data.get("name", ""),
        version=data.get("version"),
    )


def _parse_int(
    data: dict[str, Any],
    key: str,
    default: int,
    minimum: int,
    errors: list[str],
) -> int:
    raw = data.get(key, default)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        errors.append(f"pipeline.{key} must be an integer, got {raw!r}")
        return default
    if value < minimum:
        errors.append(f"pipeline.{key} must be >= {minimum}, got {value}")
        return default
    return value


def _parse_pipeline_config(data: dict[str, Any], errors: list[str]) -> PipelineConfig:
    """Parse pipeline configuration section.

    Invalid values are reported in ``errors`` and replaced by defaults.
    """
    defaults = PipelineConfig()
    return PipelineConfig(
        max_attributes=_parse_int(data, "max_attributes", defaults.max_attributes, 0, errors),
        max_batch_size=_parse_int(data, "max_batch_size", defaults.max_batch_size, 1, errors),
        schedule_delay_millis=_parse_int(
            data, "schedule_delay_millis", defaults.schedule_delay_millis, 1, errors
        ),
        shutdown_timeout_millis=_parse_int(
            data, "shutdown_timeout_millis", defaults.shutdown_timeout_millis, 0, errors
        ),
    )


def _parse_data_types(data: dict[str, Any], errors: list[str]) -> dict[DataType, bool]:
    """Parse the data_types section; types not listed stay enabled."""
    data_types = {data_type: True for data_type in DataType}
    for key, enabled in data.items():
        try:
            data_type = DataType.parse(key)
        except ConfigurationError as e:
            errors.append(str(e))
            continue
        data_types[data_type] = bool(enabled)
    return data_types


def _parse_validation_config(data: dict[str, Any]) -> ValidationConfig:
    """Parse validation configuration section."""
    mode = data.get("mode", "permissive")
    if mode not in ("strict", "permissive"):
        logger.warning("Unknown validation mode '%s', defaulting to permissive", mode)
        mode = "permissive"
    return ValidationConfig(mode=mode)


def parse_config(data: dict[str, Any], strict: Optional[bool] = None) -> Config:
    """Build a Config from already-loaded YAML data.

    Args:
        data: Mapping as produced by ``yaml.safe_load``.
        strict: Override validation mode. If None, use mode from the data.

    Raises:
        ConfigurationError: If validation fails in strict mode.
    """
    validation = _parse_validation_config(data.get("validation") or {})
    if strict is not None:
        validation.mode = "strict" if strict else "permissive"

    data = _substitute_env_vars_recursive(data, strict=validation.mode == "strict")

    errors: list[str] = []
    config = Config(
        service=_parse_service_config(data.get("service") or {}),
        pipeline=_parse_pipeline_config(data.get("pipeline") or {}, errors),
        data_types=_parse_data_types(data.get("data_types") or {}, errors),
        validation=validation,
    )

    if errors:
        if config.is_strict:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}"
            )
        for error in errors:
            logger.warning("Ignoring invalid configuration: %s", error)

    return config


def resolve_config_path(config_path: Union[str, Path, None]) -> Path:
    """Resolve configuration file path from argument or environment.

    Raises:
        ConfigurationError: If no config path is provided and
                           TELEXPORT_CONFIG_PATH env var is not set.
    """
    if config_path is not None:
        return Path(config_path)

    env_path = os.environ.get(TELEXPORT_CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path)

    raise ConfigurationError(
        f"No configuration path provided. Either pass a config path "
        f"or set the {TELEXPORT_CONFIG_PATH_ENV} environment variable."
    )


def load_config(path: Union[str, Path, None] = None, strict: Optional[bool] = None) -> Config:
    """Load and parse configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file. Falls back to
              TELEXPORT_CONFIG_PATH when omitted.
        strict: Override validation mode. If None, use mode from config file.

    Returns:
        Parsed and validated Config.

    Raises:
        ConfigurationError: If file doesn't exist, YAML is invalid,
                           or validation fails in strict mode.
    """
    path = resolve_config_path(path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    try:
        with open(path) as f:
            raw_data = yaml.safe_load(f)
            if raw_data is None:
                raw_data = {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file: {e}")

    if not isinstance(raw_data, dict):
        raise ConfigurationError(
            f"Configuration file must contain a mapping, got {type(raw_data).__name__}"
        )

    return parse_config(raw_data, strict=strict)
