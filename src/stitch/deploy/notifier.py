"""Completion notifications for deployments."""

from __future__ import annotations

from abc import ABC, abstractmethod

import httpx

from stitch.lib.errors import DeploymentError
from stitch.lib.logging_config import get_logger
from stitch.models.config import NotifierConfig, NotifierProvider
from stitch.models.deployment import Deployment
from stitch.models.service import Service

logger = get_logger(__name__)

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"


class BaseNotifier(ABC):
    """Abstract completion notifier."""

    @abstractmethod
    async def notify_complete(self, deployment: Deployment, service: Service) -> None:
        """Tell the deployment's contact that it is ready.

        Args:
            deployment: The completed deployment
            service: The deployed service, used for links and titles

        Raises:
            DeploymentError: If delivery fails. Callers run notifications in
                the background and only log this.
        """


class LogNotifier(BaseNotifier):
    """Notifier that only writes a log line."""

    async def notify_complete(self, deployment: Deployment, service: Service) -> None:
        """Log the completion."""
        if not deployment.notify_email:
            logger.info(f"No email for deployment {deployment.id}")
            return
        logger.info(
            f"Deployment {deployment.id} of {service.title} complete; would notify "
            f"{deployment.notify_email} ({deployment.user_facing_url or 'no url'})"
        )


class SendGridNotifier(BaseNotifier):
    """Send completion mails through the SendGrid v3 API with a template."""

    def __init__(
        self,
        config: NotifierConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the notifier.

        Args:
            config: Notifier configuration (api_key and template_id required)
            transport: Optional httpx transport (used by tests)
        """
        self._config = config
        self._transport = transport

    def deployment_link(self, deployment: Deployment, service: Service) -> str:
        """Link to the deployment on the service page."""
        base = self._config.deployment_link_base.rstrip("/")
        return f"{base}/{service.link_path}?did={deployment.id}"

    async def notify_complete(self, deployment: Deployment, service: Service) -> None:
        """Send the completion mail if the deployment has a contact."""
        email = deployment.notify_email
        if not email:
            logger.info(f"No email for deployment {deployment.id}")
            return

        payload = {
            "personalizations": [
                {
                    "to": [{"email": email}],
                    "dynamic_template_data": {
                        "deploymentUrl": self.deployment_link(deployment, service),
                        "serviceUrl": deployment.user_facing_url,
                    },
                }
            ],
            "from": {"email": self._config.sender},
            "template_id": self._config.template_id,
        }

        logger.info(f"Sending email to {email} for deployment {deployment.id}")
        try:
            async with httpx.AsyncClient(
                timeout=10.0, transport=self._transport
            ) as client:
                response = await client.post(
                    SENDGRID_SEND_URL,
                    json=payload,
                    headers={"Authorization": f"Bearer {self._config.api_key}"},
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise DeploymentError(
                operation="notify",
                message=(
                    f"Failed to email {email} for deployment {deployment.id}: {exc}"
                ),
            ) from exc

        logger.info(f"Email sent to {email} for deployment {deployment.id}")


def create_notifier(config: NotifierConfig) -> BaseNotifier:
    """Create the configured notifier."""
    if config.provider == NotifierProvider.SENDGRID:
        return SendGridNotifier(config)
    return LogNotifier()
