"""Shared helpers for Stitch CLI commands."""

from __future__ import annotations

import sys
from collections.abc import Generator
from contextlib import contextmanager

import click

from stitch.config.loader import ConfigLoader
from stitch.lib.errors import ConfigError, DeploymentError, StitchError
from stitch.lib.logging_config import get_logger
from stitch.models.config import StitchConfig

logger = get_logger(__name__)


@contextmanager
def handle_errors() -> Generator[None, None, None]:
    """Context manager for consistent error handling in CLI commands.

    Exit codes:
        2: Configuration error
        3: Deployment or other Stitch error
    """
    try:
        yield
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        click.secho("Error: Configuration error", fg="red", err=True)
        click.echo(f"  {e}", err=True)
        sys.exit(2)
    except DeploymentError as e:
        logger.error(f"Deployment error: {e}")
        click.secho(f"Error: {e.operation} failed", fg="red", err=True)
        click.echo(f"  {e.message}", err=True)
        sys.exit(3)
    except StitchError as e:
        logger.error(f"Error: {e}")
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(3)


def load_config(config_path: str | None) -> StitchConfig:
    """Load configuration from ``config_path`` or the working directory."""
    logger.debug(f"Loading configuration from {config_path or 'defaults'}")
    return ConfigLoader().load(config_path)


config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to stitch.yaml (default: ./stitch.yaml if present)",
)
