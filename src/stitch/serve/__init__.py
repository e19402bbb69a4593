"""HTTP surface for starting deployments and reading their status."""

from stitch.serve.server import DeploymentServer, create_app

__all__ = ["DeploymentServer", "create_app"]
