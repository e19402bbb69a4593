"""Stitch - provision, boot and validate vendor services on customer clouds.

Stitch takes a vendor's service definition and a customer's cloud
credentials, launches a compute instance bootstrapped with the service,
then drives the deployment through its lifecycle until the service answers
its health check.

Main features:
- Script synthesis for shell, docker and docker-compose services
- EC2 provisioning with per-deployment credentials
- Background polling with on-demand status steps
- Delegated CDK pipelines for repository-driven services
"""

from stitch.lib.errors import ConfigError, NotFoundError, StitchError

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "ConfigError",
    "NotFoundError",
    "StitchError",
]
