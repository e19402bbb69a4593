"""Delegated CDK pipeline runner.

Pipeline deployments do not launch compute directly. The runner clones the
service's repository and runs its CDK deploy with the caller's credentials
injected into the child process environment.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from urllib.parse import quote, urlsplit, urlunsplit

from stitch.lib.errors import DeploymentError
from stitch.lib.logging_config import get_logger
from stitch.models.deployment import DeploymentCredentials
from stitch.models.service import PipelineScript, RepositoryAuth

logger = get_logger(__name__)

# Number of output lines kept in error messages
_OUTPUT_TAIL_LINES = 20


def authenticated_clone_url(repo_url: str, auth: RepositoryAuth | None) -> str:
    """Embed clone credentials into an HTTP(S) repository URL.

    URLs for other schemes, or calls without a token, are returned as is.
    """
    if auth is None or not auth.access_token:
        return repo_url

    parts = urlsplit(repo_url)
    if parts.scheme not in ("http", "https"):
        return repo_url

    username = quote(auth.username or "git", safe="")
    token = quote(auth.access_token, safe="")
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urlunsplit(
        (parts.scheme, f"{username}:{token}@{host}", parts.path, parts.query, "")
    )


def pipeline_environment(
    credentials: DeploymentCredentials, base: Mapping[str, str] | None = None
) -> dict[str, str]:
    """Build the child process environment for CDK commands."""
    env = dict(os.environ if base is None else base)
    env["AWS_ACCESS_KEY_ID"] = credentials.access_key
    env["AWS_SECRET_ACCESS_KEY"] = credentials.secret_access_key
    if credentials.region:
        env["AWS_DEFAULT_REGION"] = credentials.region
    return env


class PipelineRunner:
    """Run a repository-driven CDK deployment in a working directory."""

    def __init__(self, installs_dir: Path) -> None:
        """Initialize the runner.

        Args:
            installs_dir: Parent directory for per-deployment checkouts
        """
        self.installs_dir = Path(installs_dir)

    async def run(
        self,
        deployment_id: str,
        script: PipelineScript,
        credentials: DeploymentCredentials,
    ) -> None:
        """Clone, install and deploy the pipeline repository.

        Args:
            deployment_id: Deployment the checkout belongs to
            script: Pipeline definition (repository and clone auth)
            credentials: Caller cloud credentials with account and region

        Raises:
            DeploymentError: If credentials are incomplete or any step fails
        """
        if not credentials.account_number or not credentials.region:
            raise DeploymentError(
                operation="pipeline",
                message=(
                    "AWS region and account number are required for CDK deployments"
                ),
            )

        workdir = self.installs_dir / deployment_id
        if workdir.exists():
            raise DeploymentError(
                operation="pipeline",
                message=f"Working directory already exists: {workdir}",
            )
        self.installs_dir.mkdir(parents=True, exist_ok=True)

        env = pipeline_environment(credentials)
        bootstrap_target = f"aws://{credentials.account_number}/{credentials.region}"

        logger.info(f"Cloning {script.repo_url} for deployment {deployment_id}")
        clone_url = authenticated_clone_url(script.repo_url, script.auth)
        await self._exec(
            "clone",
            ["git", "clone", clone_url, str(workdir)],
            cwd=self.installs_dir,
            env=env,
        )
        await self._exec("install", ["npm", "install"], cwd=workdir, env=env)
        await self._exec(
            "bootstrap",
            ["cdk", "bootstrap", bootstrap_target, "--require-approval", "never"],
            cwd=workdir,
            env=env,
        )
        await self._exec(
            "deploy",
            ["cdk", "deploy", "--require-approval", "never"],
            cwd=workdir,
            env=env,
        )
        logger.info(f"Pipeline for deployment {deployment_id} finished")

    async def _exec(
        self,
        step: str,
        args: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str],
    ) -> None:
        """Run one pipeline step, raising on non-zero exit.

        Arguments are never logged; the clone URL may carry a token.
        """
        logger.debug(f"Running pipeline step '{step}' in {cwd}")
        try:
            process = await asyncio.create_subprocess_exec(  # nosec B603
                *args,
                cwd=str(cwd),
                env=dict(env),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            raise DeploymentError(
                operation="pipeline",
                message=f"Failed to start step '{step}': {exc}",
            ) from exc

        try:
            stdout, _ = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
            await process.wait()
            raise
        output = stdout.decode("utf-8", errors="replace") if stdout else ""
        for line in output.splitlines():
            logger.debug(f"[{step}] {line}")

        if process.returncode != 0:
            tail = "\n".join(output.splitlines()[-_OUTPUT_TAIL_LINES:])
            raise DeploymentError(
                operation="pipeline",
                message=f"Step '{step}' exited with code {process.returncode}\n{tail}",
            )
