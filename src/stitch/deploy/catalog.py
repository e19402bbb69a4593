"""Service catalog access.

The catalog is owned outside the orchestrator; this module defines the
lookup contract and a YAML-file implementation of it.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from stitch.config.validator import config_error_from_validation
from stitch.lib.errors import ConfigError, NotFoundError
from stitch.lib.logging_config import get_logger
from stitch.models.service import Service

logger = get_logger(__name__)


class BaseServiceCatalog(ABC):
    """Abstract read-only service catalog."""

    @abstractmethod
    async def get_service(
        self, service_id: str, vendor_id: str | None = None
    ) -> Service:
        """Return a service definition.

        Args:
            service_id: Service identifier
            vendor_id: When given, the service must belong to this vendor

        Raises:
            NotFoundError: If the service does not exist (or belongs to a
                different vendor).
        """


class YamlServiceCatalog(BaseServiceCatalog):
    """Service catalog backed by a YAML file.

    The file holds a top-level ``services`` list. It is re-read when its
    modification time changes.

    Example:
        services:
          - id: svc-1
            vendor_id: acme
            title: Acme API
            script_definition:
              type: docker
              image: acme/api:latest
              port_mappings:
                - server_port: 80
                  container_port: 8080
    """

    def __init__(self, path: Path) -> None:
        """Initialize the catalog.

        Args:
            path: Path to the services YAML file
        """
        self.path = Path(path)
        self._services: dict[str, Service] = {}
        self._mtime: float | None = None

    def _load(self) -> dict[str, Service]:
        try:
            mtime = self.path.stat().st_mtime
        except OSError as exc:
            raise ConfigError(
                "services_file", f"Service catalog not found at {self.path}"
            ) from exc

        if self._mtime == mtime:
            return self._services

        try:
            raw: Any = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(
                "services_file", f"Failed to read service catalog {self.path}: {exc}"
            ) from exc

        entries = (raw or {}).get("services", []) if isinstance(raw, dict) else None
        if not isinstance(entries, list):
            raise ConfigError(
                "services_file", f"{self.path} must contain a 'services' list"
            )

        services: dict[str, Service] = {}
        for index, entry in enumerate(entries):
            try:
                service = Service.model_validate(entry)
            except PydanticValidationError as exc:
                raise config_error_from_validation(
                    exc, prefix=f"services[{index}]"
                ) from exc
            services[service.id] = service

        logger.debug(f"Loaded {len(services)} service(s) from {self.path}")
        self._services = services
        self._mtime = mtime
        return services

    async def get_service(
        self, service_id: str, vendor_id: str | None = None
    ) -> Service:
        """Look up a service by id, optionally scoped to a vendor."""
        services = await asyncio.to_thread(self._load)
        service = services.get(service_id)
        if service is None:
            raise NotFoundError("service", service_id)
        if vendor_id is not None and service.vendor_id != vendor_id:
            raise NotFoundError("service", service_id)
        return service
