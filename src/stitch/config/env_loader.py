"""Environment variable helpers for configuration files."""

from __future__ import annotations

import os
import re
from pathlib import Path

from dotenv import load_dotenv

from stitch.lib.errors import ConfigError

# ${VAR_NAME} pattern; names follow shell identifier rules
ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def load_env_file(path: str | Path = ".env", override: bool = False) -> bool:
    """Load variables from a dotenv file into the process environment.

    Args:
        path: Path to the dotenv file
        override: Whether file values replace existing variables

    Returns:
        True if the file existed and was loaded
    """
    env_path = Path(path)
    if not env_path.is_file():
        return False
    return bool(load_dotenv(env_path, override=override))


def get_env_var(name: str, default: str | None = None) -> str | None:
    """Return an environment variable, treating empty values as unset."""
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value


def substitute_env_vars(text: str) -> str:
    """Replace ``${VAR}`` references with environment values.

    Args:
        text: Raw configuration text

    Returns:
        Text with every reference substituted

    Raises:
        ConfigError: If a referenced variable is not set
    """

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        value = os.environ.get(name)
        if value is None:
            raise ConfigError(
                name,
                f"Environment variable '{name}' is referenced but not set",
            )
        return value

    return ENV_VAR_PATTERN.sub(_replace, text)
