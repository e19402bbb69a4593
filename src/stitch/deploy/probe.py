"""HTTP health probe for deployed services."""

from __future__ import annotations

import httpx

from stitch.config.defaults import DEFAULT_PROBE_TIMEOUT_SECONDS
from stitch.lib.logging_config import get_logger

logger = get_logger(__name__)


class HealthProbe:
    """Issue a single GET against a service URL and report readiness.

    Any status in ``[200, 300)`` counts as healthy. Network errors and
    timeouts are reported as not ready rather than raised, as are URLs
    httpx cannot parse. Redirects are followed.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the probe.

        Args:
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.timeout = timeout
        self._transport = transport

    async def check(self, url: str) -> bool:
        """Return True if ``url`` answers with a 2xx status."""
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.debug(f"Probe of {url} failed: {exc}")
            return False

        healthy = 200 <= response.status_code < 300
        logger.debug(f"Probe of {url} returned {response.status_code}")
        return healthy
