"""Compute provisioners for Stitch deployments."""

from __future__ import annotations

from stitch.deploy.provisioners.base import BaseProvisioner
from stitch.lib.errors import DeploymentError
from stitch.models.config import ComputeProvider, StitchConfig


def create_provisioner(config: StitchConfig) -> BaseProvisioner:
    """Create a compute provisioner for the configured provider."""
    if config.provider == ComputeProvider.AWS:
        from stitch.deploy.provisioners.ec2 import Ec2Provisioner

        return Ec2Provisioner(default_region=config.aws.default_region)

    raise DeploymentError(
        operation="configure",
        message=f"Unsupported compute provider: {config.provider}",
    )


__all__ = ["BaseProvisioner", "create_provisioner"]
