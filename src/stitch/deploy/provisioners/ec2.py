"""AWS EC2 provisioner implementation."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

from stitch.config.defaults import DEFAULT_AWS_REGION
from stitch.deploy.provisioners.base import BaseProvisioner, single_instance
from stitch.lib.errors import (
    CloudSDKNotInstalledError,
    DeploymentError,
    ProvisioningFailedError,
)
from stitch.lib.logging_config import get_logger
from stitch.models.deployment import DeploymentCredentials, InstanceDescription

logger = get_logger(__name__)


class Ec2Provisioner(BaseProvisioner):
    """Launch and inspect EC2 instances with per-deployment credentials."""

    def __init__(self, default_region: str = DEFAULT_AWS_REGION) -> None:
        """Initialize the EC2 provisioner.

        Args:
            default_region: Region used when credentials carry none

        Raises:
            CloudSDKNotInstalledError: If boto3 is not installed
        """
        try:
            import boto3
            from botocore.exceptions import BotoCoreError, ClientError
        except ImportError as exc:
            raise CloudSDKNotInstalledError(provider="aws", sdk_name="boto3") from exc

        self._boto3 = boto3
        self._sdk_errors: tuple[type[Exception], ...] = (ClientError, BotoCoreError)
        self.default_region = default_region
        self._clients: dict[tuple[str, str, str], Any] = {}

    def _client(self, credentials: DeploymentCredentials) -> Any:
        """Return a cached EC2 client for a credential set."""
        region = credentials.region or self.default_region
        key = (credentials.access_key, credentials.secret_access_key, region)
        client = self._clients.get(key)
        if client is None:
            client = self._boto3.client(
                "ec2",
                region_name=region,
                aws_access_key_id=credentials.access_key,
                aws_secret_access_key=credentials.secret_access_key,
            )
            self._clients[key] = client
        return client

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
        """Launch one EC2 instance running the bootstrap script."""
        client = self._client(credentials)

        def _run() -> dict[str, Any]:
            images = client.describe_images(ImageIds=[image_id]).get("Images", [])
            if not images:
                raise DeploymentError(
                    operation="launch", message=f"Image {image_id} not found"
                )

            params: dict[str, Any] = {
                "ImageId": image_id,
                "InstanceType": instance_type,
                "MinCount": 1,
                "MaxCount": 1,
                # boto3 base64-encodes UserData for RunInstances
                "UserData": user_data,
                "TagSpecifications": [
                    {
                        "ResourceType": "instance",
                        "Tags": [
                            {"Key": key, "Value": value}
                            for key, value in tags.items()
                        ],
                    }
                ],
            }
            root_device = images[0].get("RootDeviceName")
            if root_device:
                params["BlockDeviceMappings"] = [
                    {
                        "DeviceName": root_device,
                        "Ebs": {"VolumeSize": storage_size_gb},
                    }
                ]
            return dict(client.run_instances(**params))

        try:
            response = await asyncio.to_thread(_run)
        except self._sdk_errors as exc:
            raise DeploymentError(
                operation="launch", message=f"EC2 RunInstances failed: {exc}"
            ) from exc

        instance = single_instance(response.get("Instances"))
        instance_id = instance.get("InstanceId")
        if not instance_id:
            raise ProvisioningFailedError("EC2 returned an instance without an id")

        logger.info(f"Launched EC2 instance {instance_id} ({instance_type})")
        return str(instance_id)

    async def describe_instance(
        self, instance_id: str, credentials: DeploymentCredentials
    ) -> InstanceDescription:
        """Describe run-state and public DNS name of an EC2 instance."""
        client = self._client(credentials)

        try:
            response = await asyncio.to_thread(
                client.describe_instances, InstanceIds=[instance_id]
            )
        except self._sdk_errors as exc:
            raise DeploymentError(
                operation="describe",
                message=f"EC2 DescribeInstances failed for {instance_id}: {exc}",
            ) from exc

        instances = [
            instance
            for reservation in response.get("Reservations", [])
            for instance in reservation.get("Instances", [])
        ]
        instance = single_instance(instances)

        return InstanceDescription(
            instance_id=instance.get("InstanceId", instance_id),
            run_state=instance.get("State", {}).get("Name", "unknown"),
            public_dns_name=instance.get("PublicDnsName") or None,
        )
