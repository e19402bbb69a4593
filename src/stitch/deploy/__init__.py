"""Stitch deployment engine.

This package provides the deployment lifecycle: bootstrap script synthesis,
compute provisioning, the lifecycle state machine and the poll driver.
"""

from stitch.deploy.lifecycle import LifecycleStateMachine
from stitch.deploy.orchestrator import DeploymentOrchestrator
from stitch.deploy.poller import PollDriver, PollSummary
from stitch.deploy.scripts import (
    build_bootstrap_script,
    combine_scripts,
    generate_env_file_script,
    synthesize_script,
)

__all__ = [
    "DeploymentOrchestrator",
    "LifecycleStateMachine",
    "PollDriver",
    "PollSummary",
    "build_bootstrap_script",
    "combine_scripts",
    "generate_env_file_script",
    "synthesize_script",
]
