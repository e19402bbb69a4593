"""Deployment record persistence.

Records are stored one JSON document per deployment so that updates touch a
single record and never rewrite unrelated deployments.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from stitch.lib.errors import DeploymentError, NotFoundError
from stitch.lib.logging_config import get_logger
from stitch.models.deployment import Deployment, DeploymentStatus

logger = get_logger(__name__)


class BaseRecordStore(ABC):
    """Abstract deployment record store.

    Implementations must keep ``status`` monotonic and the address fields
    write-once.
    """

    @abstractmethod
    async def create(self, deployment: Deployment) -> Deployment:
        """Persist a new deployment record and return the stored copy."""

    @abstractmethod
    async def get(self, deployment_id: str) -> Deployment:
        """Return a deployment record.

        Raises:
            NotFoundError: If no record exists for the id.
        """

    @abstractmethod
    async def list_pending(self) -> list[Deployment]:
        """Return every deployment whose status is not terminal."""

    @abstractmethod
    async def update_status(
        self, deployment_id: str, status: DeploymentStatus
    ) -> Deployment:
        """Advance the status of a deployment.

        Updates that would move the status backwards are ignored.
        """

    @abstractmethod
    async def update_address_fields(
        self,
        deployment_id: str,
        *,
        url: str,
        public_address: str,
        user_facing_url: str | None,
    ) -> Deployment:
        """Record the discovered address fields once.

        A second call for the same deployment leaves the record unchanged.
        """


class FileRecordStore(BaseRecordStore):
    """Record store keeping one JSON file per deployment in a directory."""

    def __init__(self, state_dir: Path) -> None:
        """Initialize the store.

        Args:
            state_dir: Directory holding ``<deployment id>.json`` documents
        """
        self.state_dir = Path(state_dir)
        self._locks: dict[str, asyncio.Lock] = {}

    def _path(self, deployment_id: str) -> Path:
        if not deployment_id or "/" in deployment_id or deployment_id in (".", ".."):
            raise NotFoundError("deployment", deployment_id)
        return self.state_dir / f"{deployment_id}.json"

    def _lock(self, deployment_id: str) -> asyncio.Lock:
        return self._locks.setdefault(deployment_id, asyncio.Lock())

    def _read(self, path: Path) -> Deployment:
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise NotFoundError("deployment", path.stem) from exc
        except OSError as exc:
            raise DeploymentError(
                operation="state",
                message=f"Failed to read deployment record at {path}: {exc}",
            ) from exc

        try:
            return Deployment.model_validate_json(content)
        except ValidationError as exc:
            raise DeploymentError(
                operation="state",
                message=f"Invalid deployment record format in {path}: {exc}",
            ) from exc

    def _write(self, deployment: Deployment) -> None:
        path = self._path(deployment.id)
        payload = json.dumps(deployment.model_dump(mode="json"), indent=2)
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.state_dir, prefix=f".{deployment.id}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, path)
        except OSError as exc:
            raise DeploymentError(
                operation="state",
                message=f"Failed to write deployment record to {path}: {exc}",
            ) from exc

    async def create(self, deployment: Deployment) -> Deployment:
        """Persist a new deployment record."""
        path = self._path(deployment.id)
        async with self._lock(deployment.id):
            if path.exists():
                raise DeploymentError(
                    operation="state",
                    message=f"Deployment {deployment.id} already exists",
                )
            now = datetime.now(timezone.utc)
            stored = deployment.model_copy(
                update={"created_at": deployment.created_at or now, "updated_at": now}
            )
            await asyncio.to_thread(self._write, stored)
        return stored

    async def get(self, deployment_id: str) -> Deployment:
        """Load a deployment record."""
        return await asyncio.to_thread(self._read, self._path(deployment_id))

    async def list_pending(self) -> list[Deployment]:
        """Load all non-complete records, skipping unreadable documents."""
        if not self.state_dir.exists():
            return []

        paths = sorted(self.state_dir.glob("*.json"))
        pending: list[Deployment] = []
        for path in paths:
            try:
                deployment = await asyncio.to_thread(self._read, path)
            except (NotFoundError, DeploymentError) as exc:
                logger.error(f"Skipping deployment record {path.name}: {exc}")
                continue
            if not deployment.status.is_terminal:
                pending.append(deployment)
        return pending

    async def update_status(
        self, deployment_id: str, status: DeploymentStatus
    ) -> Deployment:
        """Advance a record's status, ignoring regressions."""
        async with self._lock(deployment_id):
            current = await self.get(deployment_id)
            if status.rank < current.status.rank:
                logger.warning(
                    f"Ignoring status regression for deployment {deployment_id}: "
                    f"{current.status.value} -> {status.value}"
                )
                return current
            if status == current.status:
                return current

            updated = current.model_copy(
                update={"status": status, "updated_at": datetime.now(timezone.utc)}
            )
            await asyncio.to_thread(self._write, updated)

        logger.info(
            f"Deployment {deployment_id} status {current.status.value} -> "
            f"{status.value}"
        )
        if status.is_terminal:
            # Complete records are never written again
            self._locks.pop(deployment_id, None)
        return updated

    async def update_address_fields(
        self,
        deployment_id: str,
        *,
        url: str,
        public_address: str,
        user_facing_url: str | None,
    ) -> Deployment:
        """Record address fields unless they were already set."""
        async with self._lock(deployment_id):
            current = await self.get(deployment_id)
            if current.url or current.public_address:
                logger.debug(
                    f"Address fields already set for deployment {deployment_id}"
                )
                return current

            updated = current.model_copy(
                update={
                    "url": url,
                    "public_address": public_address,
                    "user_facing_url": user_facing_url,
                    "updated_at": datetime.now(timezone.utc),
                }
            )
            await asyncio.to_thread(self._write, updated)
        return updated
