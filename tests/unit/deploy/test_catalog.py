"""Unit tests for the YAML service catalog."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from stitch.deploy.catalog import YamlServiceCatalog
from stitch.lib.errors import ConfigError, NotFoundError
from stitch.models.service import DockerScript

CATALOG_YAML = """
services:
  - id: svc-1
    vendor_id: acme
    title: Acme API
    port: 8080
    script_definition:
      type: docker
      image: acme/api:latest
      port_mappings:
        - server_port: 8080
          container_port: 80
    environment:
      - key: API_TOKEN
        value: secret
      - key: WORKERS
        value: 4
  - id: svc-2
    vendor_id: globex
    title: Globex Worker
    script: |
      #!/bin/bash
      echo hello
"""


@pytest.fixture
def catalog_file(tmp_path: Path) -> Path:
    """Write a two-service catalog."""
    path = tmp_path / "services.yaml"
    path.write_text(CATALOG_YAML, encoding="utf-8")
    return path


@pytest.mark.unit
class TestYamlServiceCatalog:
    """Tests for YamlServiceCatalog."""

    @pytest.mark.asyncio
    async def test_get_service(self, catalog_file: Path) -> None:
        """Services load with their typed script definition."""
        catalog = YamlServiceCatalog(catalog_file)

        service = await catalog.get_service("svc-1")

        assert service.title == "Acme API"
        assert isinstance(service.script_definition, DockerScript)
        assert [(v.key, v.value) for v in service.environment] == [
            ("API_TOKEN", "secret"),
            ("WORKERS", "4"),
        ]

    @pytest.mark.asyncio
    async def test_vendor_scope(self, catalog_file: Path) -> None:
        """A service is not visible under another vendor."""
        catalog = YamlServiceCatalog(catalog_file)

        assert (await catalog.get_service("svc-2", "globex")).id == "svc-2"
        with pytest.raises(NotFoundError, match="Service 'svc-2' not found"):
            await catalog.get_service("svc-2", "acme")

    @pytest.mark.asyncio
    async def test_missing_service(self, catalog_file: Path) -> None:
        """Unknown ids raise NotFoundError."""
        catalog = YamlServiceCatalog(catalog_file)

        with pytest.raises(NotFoundError):
            await catalog.get_service("svc-404")

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path: Path) -> None:
        """A missing catalog file is a configuration error."""
        catalog = YamlServiceCatalog(tmp_path / "absent.yaml")

        with pytest.raises(ConfigError, match="not found"):
            await catalog.get_service("svc-1")

    @pytest.mark.asyncio
    async def test_invalid_entry_names_its_index(self, tmp_path: Path) -> None:
        """Validation errors point at the offending entry."""
        path = tmp_path / "services.yaml"
        path.write_text(
            "services:\n  - id: svc-1\n    vendor_id: acme\n", encoding="utf-8"
        )
        catalog = YamlServiceCatalog(path)

        with pytest.raises(ConfigError) as exc_info:
            await catalog.get_service("svc-1")

        assert exc_info.value.field == "services[0].title"
        assert "title" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_services_must_be_a_list(self, tmp_path: Path) -> None:
        """A mapping under 'services' is rejected."""
        path = tmp_path / "services.yaml"
        path.write_text("services:\n  svc-1: {}\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="'services' list"):
            await YamlServiceCatalog(path).get_service("svc-1")

    @pytest.mark.asyncio
    async def test_reloads_when_file_changes(self, catalog_file: Path) -> None:
        """Edits to the file are picked up on the next lookup."""
        catalog = YamlServiceCatalog(catalog_file)
        assert (await catalog.get_service("svc-1")).title == "Acme API"

        catalog_file.write_text(
            CATALOG_YAML.replace("Acme API", "Acme API v2"), encoding="utf-8"
        )
        stat = catalog_file.stat()
        os.utime(catalog_file, (stat.st_atime, stat.st_mtime + 10))

        assert (await catalog.get_service("svc-1")).title == "Acme API v2"
