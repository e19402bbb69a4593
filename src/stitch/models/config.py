"""Pydantic models for Stitch runtime configuration."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, model_validator


class NotifierProvider(str, Enum):
    """Completion notification backends."""

    LOG = "log"
    SENDGRID = "sendgrid"


class ComputeProvider(str, Enum):
    """Compute providers the orchestrator can launch instances on."""

    AWS = "aws"


class PollingConfig(BaseModel):
    """Background poll driver settings."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = Field(default=True, description="Run the background poller")
    interval_seconds: Annotated[float, Field(gt=0)] = Field(
        default=5.0, description="Delay between poll ticks"
    )


class ProbeConfig(BaseModel):
    """Health probe settings."""

    model_config = ConfigDict(extra="forbid")

    timeout_seconds: Annotated[float, Field(gt=0)] = Field(
        default=10.0, description="HTTP timeout for a single probe"
    )


class StorageConfig(BaseModel):
    """Locations of persisted state.

    Attributes:
        state_dir: Directory holding one JSON document per deployment
        services_file: YAML service catalog
        installs_dir: Working directory for delegated pipeline checkouts
    """

    model_config = ConfigDict(extra="forbid")

    state_dir: Path = Field(
        default=Path(".stitch/deployments"), description="Deployment records"
    )
    services_file: Path = Field(
        default=Path("services.yaml"), description="Service catalog file"
    )
    installs_dir: Path = Field(
        default=Path(".stitch/installs"), description="Pipeline checkouts"
    )


class AwsConfig(BaseModel):
    """AWS defaults used when a deployment does not carry a region."""

    model_config = ConfigDict(extra="forbid")

    default_region: str = Field(default="us-east-1", description="Default region")


class NotifierConfig(BaseModel):
    """Completion notification settings.

    Attributes:
        provider: Notification backend
        api_key: SendGrid API key
        sender: From address for notification mails
        template_id: SendGrid dynamic template id
        deployment_link_base: Base URL for links to a deployment page
    """

    model_config = ConfigDict(extra="forbid")

    provider: NotifierProvider = Field(
        default=NotifierProvider.LOG, description="Notification backend"
    )
    api_key: str | None = Field(default=None, description="SendGrid API key")
    sender: str = Field(default="deploy@stitch.tech", description="From address")
    template_id: str | None = Field(default=None, description="Mail template id")
    deployment_link_base: str = Field(
        default="https://deploy.stitch.tech",
        description="Base URL for deployment links",
    )

    @model_validator(mode="after")
    def validate_sendgrid(self) -> NotifierConfig:
        """Require an API key and template when SendGrid is selected."""
        if self.provider == NotifierProvider.SENDGRID:
            if not self.api_key:
                raise ValueError("api_key is required when provider is 'sendgrid'")
            if not self.template_id:
                raise ValueError(
                    "template_id is required when provider is 'sendgrid'"
                )
        return self


class StitchConfig(BaseModel):
    """Top-level Stitch configuration."""

    model_config = ConfigDict(extra="forbid")

    provider: ComputeProvider = Field(
        default=ComputeProvider.AWS, description="Compute provider"
    )
    polling: PollingConfig = Field(default_factory=PollingConfig)
    probe: ProbeConfig = Field(default_factory=ProbeConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    aws: AwsConfig = Field(default_factory=AwsConfig)
    notifier: NotifierConfig = Field(default_factory=NotifierConfig)
