"""CLI command for running the poll driver without the HTTP server."""

from __future__ import annotations

import asyncio
import sys

import click

from stitch.cli.utils import config_option, handle_errors, load_config
from stitch.deploy.poller import PollSummary
from stitch.lib.logging_config import get_logger, setup_logging
from stitch.models.config import StitchConfig

logger = get_logger(__name__)


@click.command()
@config_option
@click.option("--once", is_flag=True, help="Run a single tick and exit")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose debug logging")
def poll(config_path: str | None, once: bool, verbose: bool) -> None:
    """Step every in-flight deployment until interrupted.

    With --once, run a single tick and print its summary.
    """
    setup_logging(verbose=verbose)

    with handle_errors():
        config = load_config(config_path)
        try:
            if once:
                summary = asyncio.run(_tick_once(config))
                click.echo(
                    f"{summary.total} polled, {summary.advanced} advanced, "
                    f"{summary.failed} failed"
                )
            else:
                asyncio.run(_poll_forever(config))
        except KeyboardInterrupt:
            logger.info("Polling interrupted by user (Ctrl+C)")
            click.secho("Polling stopped.", fg="yellow")
            sys.exit(130)


async def _tick_once(config: StitchConfig) -> PollSummary:
    from stitch.deploy.orchestrator import DeploymentOrchestrator

    orchestrator = DeploymentOrchestrator.from_config(config)
    summary = await orchestrator.poller.tick()
    await orchestrator.tasks.drain()
    return summary


async def _poll_forever(config: StitchConfig) -> None:
    from stitch.deploy.orchestrator import DeploymentOrchestrator

    orchestrator = DeploymentOrchestrator.from_config(config)
    try:
        await orchestrator.poller.run()
    finally:
        await orchestrator.tasks.cancel_all()
