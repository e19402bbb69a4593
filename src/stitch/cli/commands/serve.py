"""CLI command for serving the deployment API over HTTP.

Implements the 'stitch serve' command. The server's lifespan runs the
background poll driver for as long as the process is up.
"""

from __future__ import annotations

import asyncio
import sys

import click

from stitch.cli.utils import config_option, handle_errors, load_config
from stitch.lib.logging_config import get_logger, setup_logging
from stitch.models.config import StitchConfig

logger = get_logger(__name__)


@click.command()
@config_option
@click.option(
    "--port",
    "-p",
    type=int,
    default=8000,
    help="Port to listen on (default: 8000)",
)
@click.option(
    "--host",
    "-h",
    type=str,
    default="127.0.0.1",
    help="Host to bind to (default: 127.0.0.1 for local-only access)",
)
@click.option(
    "--debug/--no-debug",
    default=False,
    help="Enable debug logging",
)
def serve(config_path: str | None, port: int, host: str, debug: bool) -> None:
    """Start the deployment HTTP server.

    Example:

        stitch serve

        stitch serve --config stitch.yaml --port 9000

    Endpoints:

        POST /api/deploy/start          Start a deployment
        GET  /api/deploy/status/{id}    Step and read a deployment
        GET  /health                    Health check
    """
    setup_logging(verbose=debug)
    logger.info(f"Serve command invoked: port={port}, host={host}, debug={debug}")

    with handle_errors():
        config = load_config(config_path)
        try:
            asyncio.run(_run_server(config, host=host, port=port, debug=debug))
        except KeyboardInterrupt:
            logger.info("Server interrupted by user (Ctrl+C)")
            click.echo()
            click.secho("Server stopped.", fg="yellow")
            sys.exit(130)


async def _run_server(
    config: StitchConfig, *, host: str, port: int, debug: bool
) -> None:
    import uvicorn

    from stitch.deploy.orchestrator import DeploymentOrchestrator
    from stitch.serve.server import DeploymentServer

    orchestrator = DeploymentOrchestrator.from_config(config)
    server = DeploymentServer(orchestrator, host=host, port=port)
    app = server.create_app()

    click.secho(f"Stitch listening on http://{host}:{port}", fg="cyan")
    uvicorn_config = uvicorn.Config(
        app=app,
        host=host,
        port=port,
        log_level="debug" if debug else "info",
    )
    await uvicorn.Server(uvicorn_config).serve()
