"""Pydantic models for vendor service definitions.

Services are read-only from the orchestrator's point of view. They declare
how to bootstrap an instance (a script definition), which environment
variables the bootstrap script expects, and how to validate the result.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    field_validator,
)


class ScriptKind(str, Enum):
    """Script definition type tags."""

    SHELL = "shell"
    DOCKER = "docker"
    NEXT_JS = "next-js"
    DOCKER_COMPOSE = "docker-compose"
    CDK_TS_GITHUB = "cdk-ts-github"


class PortMapping(BaseModel):
    """Host to container port mapping for container deployments."""

    model_config = ConfigDict(extra="forbid")

    server_port: Annotated[int, Field(ge=1, le=65535)] = Field(
        ..., description="Port published on the instance"
    )
    container_port: Annotated[int, Field(ge=1, le=65535)] = Field(
        ..., description="Port inside the container"
    )


class ShellScript(BaseModel):
    """Plain shell bootstrap script, used verbatim."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["shell"] = "shell"
    script: str = Field(..., description="Shell script text")


class DockerScript(BaseModel):
    """Single container image run with optional port publishing."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["docker", "next-js"] = "docker"
    image: str = Field(..., description="Container image reference")
    port_mappings: list[PortMapping] = Field(
        default_factory=list, description="Ports to publish"
    )


class ComposeScript(BaseModel):
    """Compose document brought up on the instance."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["docker-compose"] = "docker-compose"
    compose_file: str = Field(..., description="Compose YAML document")


class RepositoryAuth(BaseModel):
    """Credentials used to clone a pipeline repository."""

    model_config = ConfigDict(extra="forbid")

    username: str | None = Field(default=None, description="Git username")
    access_token: str | None = Field(default=None, description="Git access token")


class PipelineScript(BaseModel):
    """Delegated CDK pipeline cloned from a git repository."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["cdk-ts-github"] = "cdk-ts-github"
    repo_url: str = Field(..., description="Repository to clone")
    auth: RepositoryAuth | None = Field(default=None, description="Clone auth")


class UnknownScript(BaseModel):
    """Script definition with a type tag this release does not understand.

    Kept so that a catalog entry with a newer script kind still loads; the
    script synthesizer rejects it with UnsupportedScriptKindError.
    """

    model_config = ConfigDict(extra="allow")

    type: str | None = None


_KNOWN_KINDS = {
    ScriptKind.SHELL.value: "shell",
    ScriptKind.DOCKER.value: "docker",
    ScriptKind.NEXT_JS.value: "docker",
    ScriptKind.DOCKER_COMPOSE.value: "docker-compose",
    ScriptKind.CDK_TS_GITHUB.value: "cdk-ts-github",
}


def _script_kind(value: Any) -> str:
    """Map a raw or parsed script definition to its union tag."""
    if isinstance(value, dict):
        kind = value.get("type")
    else:
        kind = getattr(value, "type", None)
    return _KNOWN_KINDS.get(kind, "unknown")


ScriptDefinition = Annotated[
    Union[
        Annotated[ShellScript, Tag("shell")],
        Annotated[DockerScript, Tag("docker")],
        Annotated[ComposeScript, Tag("docker-compose")],
        Annotated[PipelineScript, Tag("cdk-ts-github")],
        Annotated[UnknownScript, Tag("unknown")],
    ],
    Discriminator(_script_kind),
]


class EnvironmentVariable(BaseModel):
    """Environment variable declared by a service, with its default value."""

    model_config = ConfigDict(extra="forbid")

    key: str = Field(..., description="Variable name")
    value: str = Field(default="", description="Default value")

    @field_validator("value", mode="before")
    @classmethod
    def coerce_value(cls, v: Any) -> str:
        """Accept scalar YAML values (numbers, booleans) as strings."""
        if v is None:
            return ""
        if isinstance(v, bool):
            return "true" if v else "false"
        return str(v)


class InstanceSettings(BaseModel):
    """Compute sizing for the provisioned instance.

    Attributes:
        image_id: Machine image id
        instance_type: Instance class
        storage_size_gb: Root volume size in GiB
    """

    model_config = ConfigDict(extra="forbid")

    image_id: str = Field(
        default="ami-0440d3b780d96b29d", description="Machine image id"
    )
    instance_type: str = Field(default="t2.medium", description="Instance class")
    storage_size_gb: Annotated[int, Field(ge=1, le=16384)] = Field(
        default=8, description="Root volume size in GiB"
    )


class Service(BaseModel):
    """Vendor-defined deployable unit.

    Attributes:
        id: Service identifier
        vendor_id: Owning vendor identifier
        title: Display title, also used for instance name tags
        slug: URL slug of the service page, used in notification links
        vendor_slug: URL slug of the owning vendor, used in notification links
        script: Legacy single-string bootstrap script
        script_definition: Typed script definition
        environment: Declared environment variables with defaults
        validation_url: Validation template with a {{HOSTNAME}} placeholder
        port: Port appended to the derived service URL
        instance_settings: Compute sizing (defaults applied if absent)
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., description="Service identifier")
    vendor_id: str = Field(..., description="Owning vendor identifier")
    title: str = Field(..., description="Display title")
    slug: str | None = Field(default=None, description="Service URL slug")
    vendor_slug: str | None = Field(default=None, description="Vendor URL slug")
    script: str | None = Field(default=None, description="Legacy script text")
    script_definition: ScriptDefinition | None = Field(
        default=None, description="Typed script definition"
    )
    environment: list[EnvironmentVariable] = Field(
        default_factory=list, description="Declared environment variables"
    )
    validation_url: str | None = Field(
        default=None, description="Validation URL template"
    )
    port: Annotated[int, Field(ge=1, le=65535)] | None = Field(
        default=None, description="Service port"
    )
    instance_settings: InstanceSettings | None = Field(
        default=None, description="Compute sizing"
    )

    @property
    def link_path(self) -> str:
        """Path of the service page, ``{vendor slug}/{service slug}``.

        Ids stand in for slugs that are not set.
        """
        return f"{self.vendor_slug or self.vendor_id}/{self.slug or self.id}"
