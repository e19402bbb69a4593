"""Deployment lifecycle state machine.

Each call to ``LifecycleStateMachine.step`` advances one deployment by at
most one phase:

    deployed/booting  -> wait for a running instance with a public address,
                         then booted (validation configured) or complete
    booted/validating -> probe the service, complete on a 2xx response

Conditions that are not met yet (instance not running, no address, probe
failed) leave the record as is; the next poll tick tries again.
"""

from __future__ import annotations

import asyncio

from stitch.deploy.catalog import BaseServiceCatalog
from stitch.deploy.notifier import BaseNotifier
from stitch.deploy.probe import HealthProbe
from stitch.deploy.provisioners.base import BaseProvisioner
from stitch.deploy.store import BaseRecordStore
from stitch.deploy.tasks import BackgroundTaskGroup
from stitch.lib.logging_config import get_logger
from stitch.models.deployment import (
    Deployment,
    DeploymentStatus,
    InstanceDescription,
)
from stitch.models.service import Service

logger = get_logger(__name__)

_ADDRESS_DISCOVERY_STATES = (DeploymentStatus.DEPLOYED, DeploymentStatus.BOOTING)
_VALIDATION_STATES = (DeploymentStatus.BOOTED, DeploymentStatus.VALIDATING)


def build_service_url(public_dns_name: str, port: int | None = None) -> str:
    """Return the plain HTTP URL of a deployed service."""
    suffix = f":{port}" if port else ""
    return f"http://{public_dns_name}{suffix}"


class LifecycleStateMachine:
    """Advance deployments through their readiness lifecycle.

    Steps for the same deployment are serialized with a per-deployment lock,
    so a background tick and an on-demand status request never interleave.
    """

    def __init__(
        self,
        store: BaseRecordStore,
        catalog: BaseServiceCatalog,
        provisioner: BaseProvisioner,
        probe: HealthProbe,
        notifier: BaseNotifier,
        tasks: BackgroundTaskGroup | None = None,
    ) -> None:
        """Initialize the state machine with its collaborators."""
        self.store = store
        self.catalog = catalog
        self.provisioner = provisioner
        self.probe = probe
        self.notifier = notifier
        self.tasks = tasks or BackgroundTaskGroup()
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, deployment_id: str) -> asyncio.Lock:
        return self._locks.setdefault(deployment_id, asyncio.Lock())

    async def step(self, deployment: Deployment) -> Deployment:
        """Run one lifecycle step and return the current record.

        Args:
            deployment: Deployment to advance (re-read from the store)

        Returns:
            The record after the step, unchanged if nothing could advance.
        """
        async with self._lock(deployment.id):
            result = await self._advance(deployment.id)
        if result.status.is_terminal:
            self._locks.pop(deployment.id, None)
        return result

    async def _advance(self, deployment_id: str) -> Deployment:
        current = await self.store.get(deployment_id)

        if current.status.is_terminal:
            return current

        if current.is_pipeline:
            logger.debug(
                f"Deployment {current.id} is waiting on its delegated pipeline"
            )
            return current

        description = await self.provisioner.describe_instance(
            current.compute_instance_id, current.credentials
        )
        if not description.is_running:
            logger.warning(
                f"Instance for deployment {current.id} is not running "
                f"(state: {description.run_state})"
            )
            return current

        if current.status in _ADDRESS_DISCOVERY_STATES:
            return await self._discover_address(current, description)
        if current.status in _VALIDATION_STATES:
            return await self._validate(current)
        return current

    async def _discover_address(
        self, deployment: Deployment, description: InstanceDescription
    ) -> Deployment:
        current = await self.store.update_status(
            deployment.id, DeploymentStatus.BOOTING
        )

        public_dns_name = description.public_dns_name
        if not public_dns_name:
            logger.info(f"Deployment {current.id} has no public address yet")
            return current

        service = await self.catalog.get_service(current.service_ref)
        url = build_service_url(public_dns_name, service.port)
        user_facing_url = current.render_validation_url(public_dns_name) or url

        current = await self.store.update_address_fields(
            current.id,
            url=url,
            public_address=public_dns_name,
            user_facing_url=user_facing_url,
        )

        if current.has_validation:
            return await self.store.update_status(current.id, DeploymentStatus.BOOTED)

        # No validation configured: the service is considered ready
        completed = await self.store.update_status(
            current.id, DeploymentStatus.COMPLETE
        )
        self._notify(completed, service)
        return completed

    async def _validate(self, deployment: Deployment) -> Deployment:
        url = deployment.effective_validation_url()
        if not url:
            logger.warning(f"Deployment {deployment.id} has no URL to validate")
            return deployment

        logger.info(f"Pinging {url} for {deployment.id}")
        if await self.probe.check(url):
            completed = await self.store.update_status(
                deployment.id, DeploymentStatus.COMPLETE
            )
            service = await self.catalog.get_service(completed.service_ref)
            self._notify(completed, service)
            return completed

        return await self.store.update_status(
            deployment.id, DeploymentStatus.VALIDATING
        )

    def _notify(self, deployment: Deployment, service: Service) -> None:
        """Send the completion notification in the background."""
        self.tasks.spawn(
            self.notifier.notify_complete(deployment, service),
            name=f"notify-{deployment.id}",
        )
