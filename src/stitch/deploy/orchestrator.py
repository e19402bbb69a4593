"""Deployment orchestrator.

Entry points used by the HTTP layer and the CLI:

- ``deploy``: resolve the environment, synthesize the bootstrap script,
  launch compute and create the deployment record (or hand delegated
  pipeline services to the pipeline runner)
- ``status``: run one on-demand lifecycle step for a deployment
- ``start``/``stop``: run the background poll driver for the process
  lifetime
"""

from __future__ import annotations

from datetime import datetime, timezone

from ulid import ULID

from stitch.config.defaults import (
    DEFAULT_INSTANCE_SETTINGS,
    DEFAULT_POLL_INTERVAL_SECONDS,
)
from stitch.deploy.catalog import BaseServiceCatalog, YamlServiceCatalog
from stitch.deploy.environment import EnvironmentOverrides, resolve_environment
from stitch.deploy.lifecycle import LifecycleStateMachine
from stitch.deploy.notifier import BaseNotifier, create_notifier
from stitch.deploy.pipeline import PipelineRunner
from stitch.deploy.poller import PollDriver
from stitch.deploy.probe import HealthProbe
from stitch.deploy.provisioners import BaseProvisioner, create_provisioner
from stitch.deploy.scripts import build_bootstrap_script
from stitch.deploy.store import BaseRecordStore, FileRecordStore
from stitch.deploy.tasks import BackgroundTaskGroup
from stitch.lib.logging_config import get_logger
from stitch.models.config import StitchConfig
from stitch.models.deployment import (
    Deployment,
    DeploymentCredentials,
    DeploymentStatus,
)
from stitch.models.service import PipelineScript, Service

logger = get_logger(__name__)


class DeploymentOrchestrator:
    """Create deployments and drive them to completion."""

    def __init__(
        self,
        *,
        store: BaseRecordStore,
        catalog: BaseServiceCatalog,
        provisioner: BaseProvisioner,
        probe: HealthProbe,
        notifier: BaseNotifier,
        pipeline_runner: PipelineRunner,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        polling_enabled: bool = True,
    ) -> None:
        """Initialize the orchestrator and its state machine and poller."""
        self.store = store
        self.catalog = catalog
        self.provisioner = provisioner
        self.notifier = notifier
        self.pipeline_runner = pipeline_runner
        self.polling_enabled = polling_enabled
        self.tasks = BackgroundTaskGroup()
        self.state_machine = LifecycleStateMachine(
            store=store,
            catalog=catalog,
            provisioner=provisioner,
            probe=probe,
            notifier=notifier,
            tasks=self.tasks,
        )
        self.poller = PollDriver(store, self.state_machine, interval=poll_interval)

    @classmethod
    def from_config(cls, config: StitchConfig) -> DeploymentOrchestrator:
        """Build an orchestrator with the configured collaborators."""
        return cls(
            store=FileRecordStore(config.storage.state_dir),
            catalog=YamlServiceCatalog(config.storage.services_file),
            provisioner=create_provisioner(config),
            probe=HealthProbe(timeout=config.probe.timeout_seconds),
            notifier=create_notifier(config.notifier),
            pipeline_runner=PipelineRunner(config.storage.installs_dir),
            poll_interval=config.polling.interval_seconds,
            polling_enabled=config.polling.enabled,
        )

    async def deploy(
        self,
        *,
        vendor_id: str,
        service_id: str,
        credentials: DeploymentCredentials,
        environment: EnvironmentOverrides | None = None,
        notify_email: str | None = None,
    ) -> Deployment:
        """Start a deployment of a vendor's service.

        Args:
            vendor_id: Vendor that owns the service
            service_id: Service to deploy
            credentials: Caller cloud credentials, stored with the record
            environment: Caller environment overrides keyed by service id
            notify_email: Contact notified on completion

        Returns:
            The created deployment record (status ``deployed``).

        Raises:
            NotFoundError: If the service does not exist for the vendor
            UnsupportedScriptKindError: If the service script is unusable
            ProvisioningFailedError: If the provider returned no single
                instance
            DeploymentError: If the provider call fails
        """
        service = await self.catalog.get_service(service_id, vendor_id)
        deployment_id = str(ULID())

        if isinstance(service.script_definition, PipelineScript):
            return await self._start_pipeline(
                deployment_id,
                service,
                service.script_definition,
                credentials,
                notify_email,
            )

        env = await resolve_environment(self.catalog, service.id, environment)
        user_data = build_bootstrap_script(service, env)
        settings = service.instance_settings or DEFAULT_INSTANCE_SETTINGS
        launched_at = datetime.now(timezone.utc).isoformat()

        try:
            instance_id = await self.provisioner.launch(
                image_id=settings.image_id,
                instance_type=settings.instance_type,
                storage_size_gb=settings.storage_size_gb,
                user_data=user_data,
                tags={
                    "Name": f"{service.title} {launched_at}",
                    "stitch:deployment-id": deployment_id,
                },
                credentials=credentials,
            )
        except Exception as exc:
            logger.error(
                f"Failed to launch deployment {deployment_id} of service "
                f"{service.id}: {exc}"
            )
            raise

        deployment = await self.store.create(
            Deployment(
                id=deployment_id,
                status=DeploymentStatus.DEPLOYED,
                compute_instance_id=instance_id,
                validation_template=service.validation_url,
                credentials=credentials,
                service_ref=service.id,
                vendor_ref=vendor_id,
                notify_email=notify_email,
            )
        )
        logger.info(
            f"Deployment {deployment.id} created for service {service.id} "
            f"on instance {instance_id}"
        )
        return deployment

    async def _start_pipeline(
        self,
        deployment_id: str,
        service: Service,
        script: PipelineScript,
        credentials: DeploymentCredentials,
        notify_email: str | None,
    ) -> Deployment:
        deployment = await self.store.create(
            Deployment(
                id=deployment_id,
                status=DeploymentStatus.DEPLOYED,
                compute_instance_id="",
                validation_template=service.validation_url,
                credentials=credentials,
                service_ref=service.id,
                vendor_ref=service.vendor_id,
                notify_email=notify_email,
            )
        )
        self.tasks.spawn(
            self._run_pipeline(deployment, service, script),
            name=f"pipeline-{deployment.id}",
        )
        logger.info(
            f"Deployment {deployment.id} handed to pipeline for service {service.id}"
        )
        return deployment

    async def _run_pipeline(
        self, deployment: Deployment, service: Service, script: PipelineScript
    ) -> None:
        await self.pipeline_runner.run(deployment.id, script, deployment.credentials)
        completed = await self.store.update_status(
            deployment.id, DeploymentStatus.COMPLETE
        )
        await self.notifier.notify_complete(completed, service)

    async def status(self, deployment_id: str) -> Deployment:
        """Run one lifecycle step now and return the current record.

        Raises:
            NotFoundError: If the deployment does not exist
        """
        deployment = await self.store.get(deployment_id)
        return await self.state_machine.step(deployment)

    def start(self) -> None:
        """Start background polling if enabled."""
        if self.polling_enabled:
            self.poller.start()
        else:
            logger.info("Background polling disabled")

    async def stop(self) -> None:
        """Stop polling and cancel outstanding background work."""
        await self.poller.stop()
        await self.tasks.cancel_all()
