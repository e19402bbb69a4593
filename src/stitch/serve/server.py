"""Stitch HTTP server.

Provides the FastAPI application factory and the server lifecycle. The
application lifespan starts the orchestrator's poll driver and stops it,
together with outstanding background work, on shutdown.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from stitch import __version__
from stitch.deploy.orchestrator import DeploymentOrchestrator
from stitch.lib.errors import (
    ConfigError,
    DeploymentError,
    NotFoundError,
    StitchError,
    UnsupportedScriptKindError,
)
from stitch.lib.logging_config import get_logger
from stitch.serve.models import (
    DeployRequest,
    ErrorResponse,
    HealthResponse,
    ServerState,
)

logger = get_logger(__name__)

# Most specific first; the first matching entry wins
_ERROR_STATUS: tuple[tuple[type[StitchError], int], ...] = (
    (NotFoundError, 404),
    (UnsupportedScriptKindError, 422),
    (DeploymentError, 502),
    (ConfigError, 500),
)


def error_status(exc: Exception) -> int:
    """Return the HTTP status code for a Stitch error."""
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 500


class DeploymentServer:
    """HTTP server exposing the deployment orchestrator.

    Attributes:
        orchestrator: Orchestrator serving deploy and status requests.
        host: The hostname to bind to.
        port: The port to listen on.
        state: The current server state.
    """

    def __init__(
        self,
        orchestrator: DeploymentOrchestrator,
        host: str = "127.0.0.1",
        port: int = 8000,
    ) -> None:
        """Initialize the server.

        Args:
            orchestrator: Orchestrator serving deploy and status requests.
            host: The hostname to bind to (default: 127.0.0.1).
            port: The port to listen on (default: 8000).
        """
        self.orchestrator = orchestrator
        self.host = host
        self.port = port

        if host == "0.0.0.0":  # noqa: S104
            logger.warning(
                "Server binding to 0.0.0.0 exposes it to all network interfaces. "
                "Use 127.0.0.1 for local-only access."
            )

        self.state = ServerState.INITIALIZING
        self._start_time: datetime | None = None

    @property
    def is_ready(self) -> bool:
        """Check if the server is ready to accept requests."""
        return self.state in (ServerState.READY, ServerState.RUNNING)

    @property
    def uptime_seconds(self) -> float:
        """Return server uptime in seconds."""
        if self._start_time is None:
            return 0.0
        delta = datetime.now(timezone.utc) - self._start_time
        return delta.total_seconds()

    def create_app(self) -> FastAPI:
        """Create and configure the FastAPI application."""

        @asynccontextmanager
        async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
            await self.start()
            try:
                yield
            finally:
                await self.stop()

        app = FastAPI(
            title="Stitch Deployment Orchestrator",
            description="Provision, boot and validate vendor services",
            version=__version__,
            lifespan=lifespan,
        )

        self._register_error_handlers(app)
        self._register_deploy_endpoints(app)
        self._register_health_endpoints(app)

        self.state = ServerState.READY
        logger.info("FastAPI app created for the deployment orchestrator")
        return app

    def _register_error_handlers(self, app: FastAPI) -> None:
        async def stitch_error_handler(
            _request: Request, exc: Exception
        ) -> JSONResponse:
            status_code = error_status(exc)
            if status_code >= 500:
                logger.error(f"Request failed: {exc}")
            body = ErrorResponse(
                error=type(exc).__name__, message=getattr(exc, "message", str(exc))
            )
            return JSONResponse(status_code=status_code, content=body.model_dump())

        app.add_exception_handler(StitchError, stitch_error_handler)

    def _register_deploy_endpoints(self, app: FastAPI) -> None:
        orchestrator = self.orchestrator

        @app.post("/api/deploy/start", tags=["Deploy"])
        async def start_deployment(request: DeployRequest) -> dict[str, Any]:
            """Start a deployment of a vendor's service."""
            deployment = await orchestrator.deploy(
                vendor_id=request.vendor_id,
                service_id=request.service_id,
                credentials=request.to_credentials(),
                environment=request.environment,
                notify_email=request.email,
            )
            return deployment.public_view()

        @app.get("/api/deploy/status/{deployment_id}", tags=["Deploy"])
        async def deployment_status(deployment_id: str) -> dict[str, Any]:
            """Advance a deployment by one step and return it."""
            deployment = await orchestrator.status(deployment_id)
            return deployment.public_view()

    def _register_health_endpoints(self, app: FastAPI) -> None:
        @app.get("/health", response_model=HealthResponse, tags=["Health"])
        async def health() -> HealthResponse:
            """Basic health check endpoint."""
            return HealthResponse(
                status="healthy" if self.is_ready else "unhealthy",
                polling=self.orchestrator.poller.is_running,
                uptime_seconds=self.uptime_seconds,
            )

    async def start(self) -> None:
        """Start background polling and mark the server running."""
        self.orchestrator.start()
        self._start_time = datetime.now(timezone.utc)
        self.state = ServerState.RUNNING
        logger.info(f"Stitch server started at http://{self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop polling and cancel outstanding background work."""
        self.state = ServerState.SHUTTING_DOWN
        await self.orchestrator.stop()
        self.state = ServerState.STOPPED
        logger.info("Stitch server stopped")


def create_app(orchestrator: DeploymentOrchestrator) -> FastAPI:
    """Create a FastAPI application serving ``orchestrator``."""
    return DeploymentServer(orchestrator).create_app()
