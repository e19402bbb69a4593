"""Pytest configuration and shared fixtures for Stitch tests."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from stitch.deploy.catalog import BaseServiceCatalog
from stitch.deploy.notifier import BaseNotifier
from stitch.deploy.probe import HealthProbe
from stitch.deploy.provisioners.base import BaseProvisioner
from stitch.deploy.store import FileRecordStore
from stitch.lib.errors import NotFoundError
from stitch.models.deployment import (
    Deployment,
    DeploymentCredentials,
    DeploymentStatus,
    InstanceDescription,
)
from stitch.models.service import Service


class StaticServiceCatalog(BaseServiceCatalog):
    """In-memory catalog over a fixed set of services."""

    def __init__(self, *services: Service) -> None:
        self.services = {service.id: service for service in services}

    async def get_service(
        self, service_id: str, vendor_id: str | None = None
    ) -> Service:
        service = self.services.get(service_id)
        if service is None or (vendor_id and service.vendor_id != vendor_id):
            raise NotFoundError("service", service_id)
        return service


@pytest.fixture(autouse=True)
def reset_stitch_logging() -> Generator[None]:
    """Undo handlers installed by setup_logging during a test."""
    yield
    root = logging.getLogger("stitch")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.propagate = True
    root.setLevel(logging.NOTSET)


@pytest.fixture
def isolated_env() -> Generator[dict[str, str]]:
    """Provide isolated environment variables for testing.

    Saves current environment and restores after test.
    """
    original_env = os.environ.copy()
    yield original_env
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def credentials() -> DeploymentCredentials:
    """Caller credentials with account and region."""
    return DeploymentCredentials(
        access_key="AKIATEST",
        secret_access_key="secret-key",
        account_number="123456789012",
        region="us-east-1",
    )


@pytest.fixture
def docker_service() -> Service:
    """Docker service with a port mapping, env vars and a validation URL."""
    return Service.model_validate(
        {
            "id": "svc-1",
            "vendor_id": "acme",
            "title": "Acme API",
            "script_definition": {
                "type": "docker",
                "image": "acme/api:latest",
                "port_mappings": [{"server_port": 80, "container_port": 8080}],
            },
            "environment": [
                {"key": "API_TOKEN", "value": "default-token"},
                {"key": "LOG_LEVEL", "value": "info"},
            ],
            "validation_url": "http://{{HOSTNAME}}/health",
            "port": 80,
        }
    )


@pytest.fixture
def make_catalog() -> Callable[..., StaticServiceCatalog]:
    """Factory for in-memory service catalogs."""
    return StaticServiceCatalog


@pytest.fixture
def store(tmp_path: Path) -> FileRecordStore:
    """File record store rooted in a temporary directory."""
    return FileRecordStore(tmp_path / "deployments")


@pytest.fixture
def make_deployment(
    credentials: DeploymentCredentials,
) -> Callable[..., Deployment]:
    """Factory for deployment records with sensible defaults."""

    def _make(**overrides: Any) -> Deployment:
        fields: dict[str, Any] = {
            "status": DeploymentStatus.DEPLOYED,
            "compute_instance_id": "i-0abc",
            "validation_template": "http://{{HOSTNAME}}/health",
            "credentials": credentials,
            "service_ref": "svc-1",
            "vendor_ref": "acme",
            "notify_email": "ops@example.com",
        }
        fields.update(overrides)
        return Deployment(**fields)

    return _make


@pytest.fixture
def provisioner() -> MagicMock:
    """Provisioner mock reporting a running instance with a DNS name."""
    mock = MagicMock(spec=BaseProvisioner)
    mock.launch = AsyncMock(return_value="i-0abc")
    mock.describe_instance = AsyncMock(
        return_value=InstanceDescription(
            instance_id="i-0abc",
            run_state="running",
            public_dns_name="ec2-1-2-3-4.compute.amazonaws.com",
        )
    )
    return mock


@pytest.fixture
def probe() -> MagicMock:
    """Health probe mock reporting a healthy service."""
    mock = MagicMock(spec=HealthProbe)
    mock.check = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def notifier() -> MagicMock:
    """Notifier mock."""
    mock = MagicMock(spec=BaseNotifier)
    mock.notify_complete = AsyncMock(return_value=None)
    return mock


def pytest_configure(config: Any) -> None:
    """Configure pytest with marker options."""
    config.addinivalue_line(
        "markers",
        "unit: marks tests as unit tests",
    )
