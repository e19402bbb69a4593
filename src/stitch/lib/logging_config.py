"""Logging setup shared by the Stitch server, poller and CLI."""

from __future__ import annotations

import logging
import os
import sys

ROOT_LOGGER_NAME = "stitch"
LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "httpx", "httpcore")


def get_logger(name: str) -> logging.Logger:
    """Return a logger namespaced under the ``stitch`` root logger.

    Args:
        name: Module name, usually ``__name__``.

    Returns:
        Logger instance.
    """
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure the ``stitch`` logger hierarchy.

    Level resolution: ``STITCH_LOG_LEVEL`` env var, then ``verbose``
    (DEBUG), then ``quiet`` (WARNING), then INFO.

    Args:
        verbose: Enable debug logging.
        quiet: Only log warnings and errors.
    """
    env_level = os.environ.get("STITCH_LOG_LEVEL")
    if env_level:
        level = logging.getLevelName(env_level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    elif verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)

    # Replace handlers so repeated calls (tests, reloads) don't duplicate output
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(handler)
    root.propagate = False

    third_party_level = logging.DEBUG if verbose else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)
