"""Request and response models for the Stitch HTTP surface."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from stitch.models.deployment import DeploymentCredentials


class ServerState(str, Enum):
    """Lifecycle state of the HTTP server."""

    INITIALIZING = "initializing"
    READY = "ready"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class DeployRequest(BaseModel):
    """Body of ``POST /api/deploy/start``.

    ``environment`` maps a service id to the caller's values for that
    service's declared variables. Keys the service does not declare are
    ignored.
    """

    model_config = ConfigDict(extra="ignore")

    vendor_id: str = Field(..., min_length=1, description="Vendor identifier")
    service_id: str = Field(..., min_length=1, description="Service identifier")
    environment: dict[str, dict[str, str]] = Field(
        default_factory=dict, description="Environment overrides per service id"
    )
    access_key: str = Field(..., min_length=1, description="Cloud access key id")
    secret: str = Field(..., min_length=1, description="Cloud secret access key")
    account_number: str | None = Field(default=None, description="Account number")
    region: str | None = Field(default=None, description="Cloud region")
    email: str | None = Field(default=None, description="Completion contact")

    def to_credentials(self) -> DeploymentCredentials:
        """Build the credentials stored with the deployment."""
        return DeploymentCredentials(
            access_key=self.access_key,
            secret_access_key=self.secret,
            account_number=self.account_number,
            region=self.region,
        )


class HealthResponse(BaseModel):
    """Body of ``GET /health``."""

    status: str = Field(..., description="healthy or unhealthy")
    polling: bool = Field(..., description="Whether the poll driver is running")
    uptime_seconds: float = Field(..., description="Seconds since server start")


class ErrorResponse(BaseModel):
    """JSON body returned for handled errors."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Human-readable description")
