"""Bootstrap script synthesis for service deployments.

This module turns a service's script definition plus its resolved
environment variables into the user-data script run on first boot of the
provisioned instance.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from jinja2 import Template

from stitch.lib.errors import UnsupportedScriptKindError
from stitch.models.service import (
    ComposeScript,
    DockerScript,
    PipelineScript,
    Service,
    ShellScript,
    UnknownScript,
)

INSTALLER_TEMPLATE_PATH = Path(__file__).parent / "templates" / "install_docker.sh"

SHEBANG_PREFIX = "#!"

# Writes the resolved variables to .env and exports them into the shell
ENV_FILE_TEMPLATE = """\
cat << EOF > .env
{% for key, value in environment %}{{ key }}="{{ value }}"
{% endfor %}EOF
source .env"""

DOCKER_RUN_TEMPLATE = """\
{{ installer }}
docker run -d{% for mapping in port_mappings %} \
-p {{ mapping.server_port }}:{{ mapping.container_port }}{% endfor %} {{ image }}"""

COMPOSE_TEMPLATE = """\
{{ installer }}
mkdir stitch && cd stitch
cat << EOF > docker-compose.yml
{{ compose_file }}
EOF
sudo docker-compose up -d"""


def read_installer_script() -> str:
    """Return the container runtime installer preamble."""
    return INSTALLER_TEMPLATE_PATH.read_text(encoding="utf-8").rstrip("\n")


def generate_docker_script(definition: DockerScript) -> str:
    """Generate a script that installs Docker and runs a single image.

    Each declared port mapping becomes its own ``-p host:container`` flag;
    with no mappings the container runs without published ports.
    """
    return Template(DOCKER_RUN_TEMPLATE).render(
        installer=read_installer_script(),
        port_mappings=definition.port_mappings,
        image=definition.image,
    )


def generate_compose_script(definition: ComposeScript) -> str:
    """Generate a script that installs Docker and brings a compose stack up."""
    return Template(COMPOSE_TEMPLATE).render(
        installer=read_installer_script(),
        compose_file=definition.compose_file.rstrip("\n"),
    )


def synthesize_script(service: Service) -> str | None:
    """Produce the bootstrap script text for a service.

    Args:
        service: Service definition

    Returns:
        Script text, or None for delegated pipeline services which have no
        bootstrap script

    Raises:
        UnsupportedScriptKindError: If the script kind is not recognized or
            the service declares no script at all
    """
    definition = service.script_definition
    if definition is None:
        if service.script is None:
            raise UnsupportedScriptKindError(None)
        return service.script.strip()

    if isinstance(definition, ShellScript):
        return definition.script
    if isinstance(definition, DockerScript):
        return generate_docker_script(definition)
    if isinstance(definition, ComposeScript):
        return generate_compose_script(definition)
    if isinstance(definition, PipelineScript):
        return None
    if isinstance(definition, UnknownScript):
        raise UnsupportedScriptKindError(definition.type)

    raise UnsupportedScriptKindError(type(definition).__name__)


def generate_env_file_script(environment: Sequence[tuple[str, str]]) -> str:
    """Generate the heredoc that writes and sources a ``.env`` file.

    Values are written as ``KEY="VALUE"`` without escaping; caller-supplied
    values are trusted.
    """
    return Template(ENV_FILE_TEMPLATE).render(environment=list(environment))


def combine_scripts(main_script: str, env_script: str) -> str:
    """Inject the environment script at the top of the main script.

    When the main script starts with a shebang line, that line stays first,
    the environment script follows, then the rest of the main script. The
    result has a single shebang line.

    Args:
        main_script: Synthesized bootstrap script
        env_script: Output of generate_env_file_script

    Returns:
        Combined script text
    """
    stripped = main_script.lstrip()
    if stripped.startswith(SHEBANG_PREFIX):
        shebang, _, remainder = stripped.partition("\n")
        return f"{shebang}\n{env_script}\n{remainder}"
    return f"{env_script}\n{main_script}"


def build_bootstrap_script(
    service: Service, environment: Sequence[tuple[str, str]]
) -> str:
    """Build the final user-data script for a service.

    Raises:
        UnsupportedScriptKindError: If the service has no bootstrap script
            (including delegated pipeline services)
    """
    script = synthesize_script(service)
    if script is None:
        kind = getattr(service.script_definition, "type", None)
        raise UnsupportedScriptKindError(kind)
    return combine_scripts(script, generate_env_file_script(environment))
