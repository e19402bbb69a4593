"""CLI command for stepping and inspecting a single deployment."""

from __future__ import annotations

import asyncio
import json

import click

from stitch.cli.utils import config_option, handle_errors, load_config
from stitch.lib.logging_config import get_logger, setup_logging
from stitch.models.config import StitchConfig
from stitch.models.deployment import Deployment

logger = get_logger(__name__)


@click.command()
@click.argument("deployment_id")
@config_option
@click.option("--json", "as_json", is_flag=True, help="Print the record as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose debug logging")
def status(
    deployment_id: str, config_path: str | None, as_json: bool, verbose: bool
) -> None:
    """Advance DEPLOYMENT_ID by one lifecycle step and show it.

    Example:

        stitch status 01HZX3J8Q6V0R5M2C7N4K9T1EW
    """
    setup_logging(verbose=verbose, quiet=not verbose)

    with handle_errors():
        config = load_config(config_path)
        deployment = asyncio.run(_step(config, deployment_id))

    if as_json:
        click.echo(json.dumps(deployment.public_view(), indent=2))
        return

    click.secho("Deployment Status", bold=True)
    click.echo(f"  ID:       {deployment.id}")
    click.echo(f"  Status:   {deployment.status.value}")
    click.echo(f"  Service:  {deployment.service_ref}")
    click.echo(f"  Instance: {deployment.compute_instance_id or '(pipeline)'}")
    if deployment.user_facing_url:
        click.echo(f"  URL:      {deployment.user_facing_url}")


async def _step(config: StitchConfig, deployment_id: str) -> Deployment:
    from stitch.deploy.orchestrator import DeploymentOrchestrator

    orchestrator = DeploymentOrchestrator.from_config(config)
    deployment = await orchestrator.status(deployment_id)
    # Let a completion notification finish before the loop closes
    await orchestrator.tasks.drain()
    return deployment
