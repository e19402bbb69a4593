"""Configuration loader for Stitch.

Configuration priority (highest to lowest):
1. Environment variables (STITCH_* vars)
2. The YAML configuration file (``stitch.yaml`` by default)
3. Built-in defaults
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from stitch.config.defaults import DEFAULT_CONFIG_FILE
from stitch.config.env_loader import get_env_var, load_env_file, substitute_env_vars
from stitch.config.validator import config_error_from_validation
from stitch.lib.errors import ConfigError
from stitch.models.config import StitchConfig

logger = logging.getLogger(__name__)

# Environment variable to dotted config path mapping
ENV_VAR_MAP = {
    "polling.enabled": "STITCH_POLLING_ENABLED",
    "polling.interval_seconds": "STITCH_POLL_INTERVAL",
    "probe.timeout_seconds": "STITCH_PROBE_TIMEOUT",
    "storage.state_dir": "STITCH_STATE_DIR",
    "storage.services_file": "STITCH_SERVICES_FILE",
    "storage.installs_dir": "STITCH_INSTALLS_DIR",
    "aws.default_region": "STITCH_AWS_REGION",
    "notifier.provider": "STITCH_NOTIFIER",
    "notifier.api_key": "SENDGRID_API_KEY",
    "notifier.template_id": "STITCH_NOTIFIER_TEMPLATE_ID",
    "notifier.sender": "STITCH_NOTIFIER_SENDER",
}

_BOOL_FIELDS = {"polling.enabled"}
_FLOAT_FIELDS = {"polling.interval_seconds", "probe.timeout_seconds"}


def _parse_env_value(field_path: str, value: str) -> Any:
    """Parse an environment variable value to the field's type.

    Raises:
        ValueError: If value cannot be parsed
    """
    if field_path in _FLOAT_FIELDS:
        return float(value)
    if field_path in _BOOL_FIELDS:
        return value.lower() in ("true", "1", "yes", "on")
    return value


def _set_path(data: dict[str, Any], field_path: str, value: Any) -> None:
    """Set a dotted path in a nested dictionary, creating sections."""
    *sections, leaf = field_path.split(".")
    target = data
    for section in sections:
        existing = target.get(section)
        if not isinstance(existing, dict):
            existing = {}
            target[section] = existing
        target = existing
    target[leaf] = value


def _read_yaml_with_env_substitution(path: Path) -> dict[str, Any]:
    """Read a YAML file after substituting ``${VAR}`` references.

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    try:
        raw_text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError("config_file", f"Failed to read {path}: {exc}") from exc

    try:
        content = yaml.safe_load(substitute_env_vars(raw_text))
    except yaml.YAMLError as exc:
        raise ConfigError(
            "yaml_parse", f"Failed to parse YAML file {path}: {exc}"
        ) from exc

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigError("config_file", f"{path} must contain a YAML mapping")
    return content


class ConfigLoader:
    """Load and validate Stitch configuration."""

    def __init__(self, env: dict[str, str] | None = None) -> None:
        """Initialize the loader.

        Args:
            env: Environment mapping to read overrides from (defaults to
                the process environment)
        """
        self._env = env

    def load(self, config_path: str | Path | None = None) -> StitchConfig:
        """Load configuration from file and environment.

        Args:
            config_path: Explicit YAML file. When omitted, ``stitch.yaml`` in
                the working directory is used if present.

        Returns:
            Validated StitchConfig

        Raises:
            ConfigError: If the file is missing, malformed or invalid
        """
        load_env_file()

        data: dict[str, Any] = {}
        if config_path is not None:
            path = Path(config_path)
            if not path.is_file():
                raise ConfigError(
                    "config_file", f"Configuration file not found: {config_path}"
                )
            data = _read_yaml_with_env_substitution(path)
        elif Path(DEFAULT_CONFIG_FILE).is_file():
            data = _read_yaml_with_env_substitution(Path(DEFAULT_CONFIG_FILE))

        self._apply_env_overrides(data)
        return self.validate(data)

    def _lookup(self, name: str) -> str | None:
        if self._env is None:
            return get_env_var(name)
        return self._env.get(name) or None

    def _apply_env_overrides(self, data: dict[str, Any]) -> None:
        for field_path, env_name in ENV_VAR_MAP.items():
            raw = self._lookup(env_name)
            if raw is None:
                continue
            try:
                value = _parse_env_value(field_path, raw)
            except ValueError as exc:
                raise ConfigError(
                    field_path, f"Invalid value for {env_name}: {raw!r}"
                ) from exc
            logger.debug(f"Config override from {env_name} for {field_path}")
            _set_path(data, field_path, value)

    @staticmethod
    def validate(data: dict[str, Any]) -> StitchConfig:
        """Validate raw configuration data.

        Raises:
            ConfigError: Naming the first invalid field
        """
        try:
            return StitchConfig.model_validate(data)
        except PydanticValidationError as exc:
            raise config_error_from_validation(exc) from exc
