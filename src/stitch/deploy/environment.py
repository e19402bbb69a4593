"""Environment variable resolution for service bootstrap scripts."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

from stitch.models.service import EnvironmentVariable

if TYPE_CHECKING:
    from stitch.deploy.catalog import BaseServiceCatalog

# service id -> {variable name: value}
EnvironmentOverrides = Mapping[str, Mapping[str, str]]


def merge_environment(
    declared: Sequence[EnvironmentVariable],
    overrides: Mapping[str, str] | None,
) -> list[tuple[str, str]]:
    """Merge caller overrides into a service's declared variables.

    Only declared variables are emitted, in declaration order. An override
    wins when present and non-empty; otherwise the declared default is used.
    Names and values are passed through verbatim.

    Args:
        declared: Variables declared by the service, with defaults
        overrides: Caller-supplied values for this service

    Returns:
        Ordered list of (key, value) pairs
    """
    overrides = overrides or {}
    resolved: list[tuple[str, str]] = []
    for variable in declared:
        value = overrides.get(variable.key)
        resolved.append((variable.key, value if value else variable.value))
    return resolved


async def resolve_environment(
    catalog: BaseServiceCatalog,
    service_id: str,
    overrides: EnvironmentOverrides | None = None,
) -> list[tuple[str, str]]:
    """Resolve the final environment for a service.

    Args:
        catalog: Service catalog to read declarations from
        service_id: Service whose variables are resolved
        overrides: Caller overrides keyed by service id

    Returns:
        Ordered list of (key, value) pairs

    Raises:
        NotFoundError: If the service does not exist
    """
    service = await catalog.get_service(service_id)
    service_overrides = (overrides or {}).get(service_id)
    return merge_environment(service.environment, service_overrides)
