"""Configuration loading and validation for Stitch.

Main components:
- ConfigLoader: Load stitch.yaml with STITCH_* environment overrides
- Environment variable substitution (${VAR_NAME} pattern)
- Default configuration values
"""

from stitch.config.env_loader import get_env_var, load_env_file, substitute_env_vars
from stitch.config.loader import ConfigLoader

__all__ = [
    "ConfigLoader",
    "substitute_env_vars",
    "get_env_var",
    "load_env_file",
]
