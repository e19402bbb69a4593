"""Pydantic models for deployment records.

A deployment is one attempt to stand up a service instance. Records are
created by the orchestrator and advanced by the lifecycle state machine.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from ulid import ULID

VALIDATION_HOSTNAME_PLACEHOLDER = "{{HOSTNAME}}"


class DeploymentStatus(str, Enum):
    """Lifecycle status of a deployment.

    Members are declared in lifecycle order; ``rank`` exposes that order so
    callers can reject regressions.
    """

    DEPLOYED = "deployed"
    BOOTING = "booting"
    BOOTED = "booted"
    VALIDATING = "validating"
    COMPLETE = "complete"

    @property
    def rank(self) -> int:
        """Position of this status in the lifecycle."""
        return _STATUS_ORDER.index(self)

    @property
    def is_terminal(self) -> bool:
        """Whether no further transitions are possible."""
        return self is DeploymentStatus.COMPLETE


_STATUS_ORDER = list(DeploymentStatus)


class DeploymentCredentials(BaseModel):
    """Cloud access keys used to provision and inspect one deployment.

    Attributes:
        access_key: Cloud access key id
        secret_access_key: Cloud secret access key
        account_number: Cloud account number (required for pipelines)
        region: Cloud region (required for pipelines)
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    access_key: str = Field(..., description="Cloud access key id")
    secret_access_key: str = Field(..., description="Cloud secret access key")
    account_number: str | None = Field(default=None, description="Account number")
    region: str | None = Field(default=None, description="Cloud region")


class Deployment(BaseModel):
    """Persisted deployment record.

    Attributes:
        id: Opaque unique identifier (ULID)
        status: Current lifecycle status
        compute_instance_id: Provisioned instance id, empty for pipelines
        url: Derived service URL once an address is known
        public_address: Public DNS name of the instance
        validation_template: URL pattern with a {{HOSTNAME}} placeholder
        user_facing_url: URL shown to the customer
        credentials: Cloud credentials, write-once at creation
        service_ref: Owning service id
        vendor_ref: Owning vendor id
        notify_email: Optional completion contact
        created_at: Creation timestamp (set by the store)
        updated_at: Last update timestamp (set by the store)
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(
        default_factory=lambda: str(ULID()), description="Deployment identifier"
    )
    status: DeploymentStatus = Field(
        default=DeploymentStatus.DEPLOYED, description="Lifecycle status"
    )
    compute_instance_id: str = Field(
        default="", description="Provisioned compute instance id"
    )
    url: str | None = Field(default=None, description="Derived service URL")
    public_address: str | None = Field(
        default=None, description="Public DNS name of the instance"
    )
    validation_template: str | None = Field(
        default=None, description="Validation URL template"
    )
    user_facing_url: str | None = Field(
        default=None, description="URL presented to the customer"
    )
    credentials: DeploymentCredentials = Field(
        ..., description="Cloud credentials for this deployment"
    )
    service_ref: str = Field(..., description="Service identifier")
    vendor_ref: str = Field(..., description="Vendor identifier")
    notify_email: str | None = Field(
        default=None, description="Completion notification contact"
    )
    created_at: datetime | None = Field(default=None, description="Creation time")
    updated_at: datetime | None = Field(default=None, description="Last update")

    @property
    def has_validation(self) -> bool:
        """Whether a post-boot health check is configured."""
        return bool(self.validation_template)

    @property
    def is_pipeline(self) -> bool:
        """Whether compute is provisioned by a delegated pipeline."""
        return not self.compute_instance_id

    def render_validation_url(self, hostname: str) -> str | None:
        """Substitute the hostname into the validation template."""
        if not self.validation_template:
            return None
        return self.validation_template.replace(
            VALIDATION_HOSTNAME_PLACEHOLDER, hostname
        )

    def effective_validation_url(self) -> str | None:
        """Return the URL probed during validation.

        The rendered validation template when one is configured, otherwise
        the plain derived URL.
        """
        if self.validation_template and self.public_address:
            return self.render_validation_url(self.public_address)
        return self.url

    def public_view(self) -> dict[str, object]:
        """Serialize the record without credentials."""
        return self.model_dump(mode="json", exclude={"credentials"})


class InstanceDescription(BaseModel):
    """Provider view of a compute instance.

    Attributes:
        instance_id: Provider instance id
        run_state: Provider run-state name (e.g. "pending", "running")
        public_dns_name: Public DNS name once assigned
    """

    model_config = ConfigDict(extra="forbid")

    instance_id: str = Field(..., description="Provider instance id")
    run_state: str = Field(..., description="Provider run-state name")
    public_dns_name: str | None = Field(default=None, description="Public DNS")

    @property
    def is_running(self) -> bool:
        """Whether the provider reports the instance as running."""
        return self.run_state == "running"
