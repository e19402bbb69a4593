"""Unit tests for the deployment lifecycle state machine."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from stitch.deploy.lifecycle import LifecycleStateMachine, build_service_url
from stitch.deploy.probe import HealthProbe
from stitch.deploy.store import FileRecordStore
from stitch.models.deployment import (
    Deployment,
    DeploymentStatus,
    InstanceDescription,
)
from stitch.models.service import Service

DNS_NAME = "ec2-1-2-3-4.compute.amazonaws.com"


@pytest.fixture
def machine(
    store: FileRecordStore,
    docker_service: Service,
    make_catalog: Callable[..., object],
    provisioner: MagicMock,
    probe: MagicMock,
    notifier: MagicMock,
) -> LifecycleStateMachine:
    """State machine over a real file store and mocked collaborators."""
    return LifecycleStateMachine(
        store=store,
        catalog=make_catalog(docker_service),  # type: ignore[arg-type]
        provisioner=provisioner,
        probe=probe,
        notifier=notifier,
    )


@pytest.mark.unit
class TestBuildServiceUrl:
    """Tests for build_service_url."""

    def test_with_port(self) -> None:
        """The port is appended when known."""
        assert build_service_url("host", 8080) == "http://host:8080"

    def test_without_port(self) -> None:
        """No port yields a bare host URL."""
        assert build_service_url("host") == "http://host"


@pytest.mark.unit
class TestAddressDiscovery:
    """Tests for the deployed/booting phase."""

    @pytest.mark.asyncio
    async def test_not_running_leaves_record_unchanged(
        self,
        machine: LifecycleStateMachine,
        store: FileRecordStore,
        make_deployment: Callable[..., Deployment],
        provisioner: MagicMock,
    ) -> None:
        """A pending instance is retried later without a status change."""
        provisioner.describe_instance.return_value = InstanceDescription(
            instance_id="i-0abc", run_state="pending"
        )
        created = await store.create(make_deployment())

        result = await machine.step(created)

        assert result.status == DeploymentStatus.DEPLOYED
        assert (await store.get(created.id)).status == DeploymentStatus.DEPLOYED

    @pytest.mark.asyncio
    async def test_running_without_dns_moves_to_booting(
        self,
        machine: LifecycleStateMachine,
        store: FileRecordStore,
        make_deployment: Callable[..., Deployment],
        provisioner: MagicMock,
    ) -> None:
        """Without a public name the deployment stays booting."""
        provisioner.describe_instance.return_value = InstanceDescription(
            instance_id="i-0abc", run_state="running", public_dns_name=None
        )
        created = await store.create(make_deployment())

        first = await machine.step(created)
        second = await machine.step(first)

        assert first.status == DeploymentStatus.BOOTING
        assert second.status == DeploymentStatus.BOOTING
        assert second.url is None
        provisioner.describe_instance.assert_awaited_with(
            "i-0abc", created.credentials
        )

    @pytest.mark.asyncio
    async def test_dns_with_validation_moves_to_booted(
        self,
        machine: LifecycleStateMachine,
        store: FileRecordStore,
        make_deployment: Callable[..., Deployment],
        notifier: MagicMock,
    ) -> None:
        """Address fields are recorded and validation is next."""
        created = await store.create(make_deployment())

        result = await machine.step(created)

        assert result.status == DeploymentStatus.BOOTED
        assert result.public_address == DNS_NAME
        assert result.url == f"http://{DNS_NAME}:80"
        assert result.user_facing_url == f"http://{DNS_NAME}/health"
        await machine.tasks.drain()
        notifier.notify_complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_dns_without_validation_completes_and_notifies(
        self,
        machine: LifecycleStateMachine,
        store: FileRecordStore,
        make_deployment: Callable[..., Deployment],
        notifier: MagicMock,
    ) -> None:
        """With nothing to validate the deployment is complete at once."""
        created = await store.create(make_deployment(validation_template=None))

        result = await machine.step(created)
        await machine.tasks.drain()

        assert result.status == DeploymentStatus.COMPLETE
        assert result.user_facing_url == f"http://{DNS_NAME}:80"
        notifier.notify_complete.assert_awaited_once()
        notified, service = notifier.notify_complete.await_args.args
        assert notified.id == created.id
        assert service.id == "svc-1"


@pytest.mark.unit
class TestValidation:
    """Tests for the booted/validating phase."""

    @pytest.mark.asyncio
    async def test_healthy_probe_completes(
        self,
        machine: LifecycleStateMachine,
        store: FileRecordStore,
        make_deployment: Callable[..., Deployment],
        probe: MagicMock,
        notifier: MagicMock,
    ) -> None:
        """A 2xx probe completes the deployment and notifies."""
        created = await store.create(
            make_deployment(
                status=DeploymentStatus.BOOTED,
                public_address=DNS_NAME,
                url=f"http://{DNS_NAME}:80",
            )
        )

        result = await machine.step(created)
        await machine.tasks.drain()

        assert result.status == DeploymentStatus.COMPLETE
        probe.check.assert_awaited_once_with(f"http://{DNS_NAME}/health")
        notifier.notify_complete.assert_awaited_once()
        assert notifier.notify_complete.await_args.args[1].title == "Acme API"

    @pytest.mark.asyncio
    async def test_failed_probe_moves_to_validating(
        self,
        machine: LifecycleStateMachine,
        store: FileRecordStore,
        make_deployment: Callable[..., Deployment],
        probe: MagicMock,
        notifier: MagicMock,
    ) -> None:
        """A failed probe is retried from validating."""
        probe.check.return_value = False
        created = await store.create(
            make_deployment(
                status=DeploymentStatus.BOOTED,
                public_address=DNS_NAME,
                url=f"http://{DNS_NAME}:80",
            )
        )

        result = await machine.step(created)

        assert result.status == DeploymentStatus.VALIDATING
        notifier.notify_complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_connection_error_keeps_validating(
        self,
        store: FileRecordStore,
        docker_service: Service,
        make_catalog: Callable[..., object],
        make_deployment: Callable[..., Deployment],
        provisioner: MagicMock,
        notifier: MagicMock,
    ) -> None:
        """A refused connection is not ready, not an error."""

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        machine = LifecycleStateMachine(
            store=store,
            catalog=make_catalog(docker_service),  # type: ignore[arg-type]
            provisioner=provisioner,
            probe=HealthProbe(transport=httpx.MockTransport(refuse)),
            notifier=notifier,
        )
        created = await store.create(
            make_deployment(
                status=DeploymentStatus.VALIDATING,
                public_address=DNS_NAME,
                url=f"http://{DNS_NAME}:80",
            )
        )

        result = await machine.step(created)

        assert result.status == DeploymentStatus.VALIDATING


@pytest.mark.unit
class TestSkippedSteps:
    """Tests for records the state machine leaves alone."""

    @pytest.mark.asyncio
    async def test_complete_is_terminal(
        self,
        machine: LifecycleStateMachine,
        store: FileRecordStore,
        make_deployment: Callable[..., Deployment],
        provisioner: MagicMock,
    ) -> None:
        """Complete deployments are not inspected."""
        created = await store.create(make_deployment(status=DeploymentStatus.COMPLETE))

        result = await machine.step(created)

        assert result.status == DeploymentStatus.COMPLETE
        provisioner.describe_instance.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_pipeline_records_not_described(
        self,
        machine: LifecycleStateMachine,
        store: FileRecordStore,
        make_deployment: Callable[..., Deployment],
        provisioner: MagicMock,
    ) -> None:
        """Pipelines have no instance to describe."""
        created = await store.create(make_deployment(compute_instance_id=""))

        result = await machine.step(created)

        assert result.status == DeploymentStatus.DEPLOYED
        provisioner.describe_instance.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_step_rereads_stale_record(
        self,
        machine: LifecycleStateMachine,
        store: FileRecordStore,
        make_deployment: Callable[..., Deployment],
        probe: MagicMock,
    ) -> None:
        """A stale in-memory copy does not regress the stored status."""
        created = await store.create(make_deployment())
        await store.update_status(created.id, DeploymentStatus.COMPLETE)

        result = await machine.step(created)

        assert result.status == DeploymentStatus.COMPLETE
        probe.check.assert_not_awaited()


@pytest.mark.unit
class TestConcurrentSteps:
    """Tests for overlapping steps of the same deployment."""

    @pytest.mark.asyncio
    async def test_same_deployment_steps_are_serialized(
        self,
        machine: LifecycleStateMachine,
        store: FileRecordStore,
        make_deployment: Callable[..., Deployment],
        provisioner: MagicMock,
        probe: MagicMock,
        notifier: MagicMock,
    ) -> None:
        """A second step waits for the first and finds the record complete."""
        in_flight = 0
        max_in_flight = 0

        async def slow_check(url: str) -> bool:
            nonlocal in_flight, max_in_flight
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            await asyncio.sleep(0.05)
            in_flight -= 1
            return True

        probe.check = AsyncMock(side_effect=slow_check)
        created = await store.create(
            make_deployment(
                status=DeploymentStatus.BOOTED,
                public_address=DNS_NAME,
                url=f"http://{DNS_NAME}:80",
            )
        )

        first, second = await asyncio.gather(
            machine.step(created), machine.step(created)
        )
        await machine.tasks.drain()

        assert first.status == DeploymentStatus.COMPLETE
        assert second.status == DeploymentStatus.COMPLETE
        assert max_in_flight == 1
        probe.check.assert_awaited_once()
        provisioner.describe_instance.assert_awaited_once()
        notifier.notify_complete.assert_awaited_once()
        assert (await store.get(created.id)).status == DeploymentStatus.COMPLETE

    @pytest.mark.asyncio
    async def test_lock_dropped_once_complete(
        self,
        machine: LifecycleStateMachine,
        store: FileRecordStore,
        make_deployment: Callable[..., Deployment],
    ) -> None:
        """Completed deployments keep no lock in the machine or the store."""
        created = await store.create(make_deployment(validation_template=None))

        result = await machine.step(created)

        assert result.status == DeploymentStatus.COMPLETE
        assert created.id not in machine._locks
        assert created.id not in store._locks

    @pytest.mark.asyncio
    async def test_lock_kept_while_pending(
        self,
        machine: LifecycleStateMachine,
        store: FileRecordStore,
        make_deployment: Callable[..., Deployment],
    ) -> None:
        """A deployment still in progress keeps its lock."""
        created = await store.create(make_deployment())

        result = await machine.step(created)

        assert result.status == DeploymentStatus.BOOTED
        assert created.id in machine._locks
