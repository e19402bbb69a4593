"""Base interface for compute provisioners."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

from stitch.lib.errors import ProvisioningFailedError
from stitch.models.deployment import DeploymentCredentials, InstanceDescription


class BaseProvisioner(ABC):
    """Abstract base class for cloud compute provisioners."""

    @abstractmethod
    async def launch(
        self,
        *,
        image_id: str,
        instance_type: str,
        storage_size_gb: int,
        user_data: str,
        tags: Mapping[str, str],
        credentials: DeploymentCredentials,
    ) -> str:
        """Launch a single compute instance and return its identifier.

        Args:
            image_id: Machine image to boot
            instance_type: Instance class
            storage_size_gb: Root volume size in GiB
            user_data: Bootstrap script run on first boot (plain text)
            tags: Tags applied to the instance
            credentials: Caller-supplied cloud credentials

        Returns:
            Provider instance identifier.

        Raises:
            ProvisioningFailedError: If the provider did not return exactly
                one instance.
            DeploymentError: If the provider call fails.
        """

    @abstractmethod
    async def describe_instance(
        self, instance_id: str, credentials: DeploymentCredentials
    ) -> InstanceDescription:
        """Return the run-state and public address of an instance.

        The address is None until the provider assigns one.

        Raises:
            ProvisioningFailedError: If the lookup matches no single instance.
            DeploymentError: If the provider call fails.
        """


def single_instance(instances: Sequence[Any] | None) -> Any:
    """Return the only instance in a provider response.

    Raises:
        ProvisioningFailedError: If the response holds zero or several
            instances.
    """
    count = len(instances) if instances else 0
    if count != 1:
        raise ProvisioningFailedError(
            f"Unexpected number of instances returned: expected 1, got {count}"
        )
    instance = instances[0]  # type: ignore[index]
    if not instance:
        raise ProvisioningFailedError("Provider returned an empty instance")
    return instance
