"""Background poll driver for in-flight deployments."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass

from stitch.config.defaults import DEFAULT_POLL_INTERVAL_SECONDS
from stitch.deploy.lifecycle import LifecycleStateMachine
from stitch.deploy.store import BaseRecordStore
from stitch.lib.logging_config import get_logger
from stitch.models.deployment import Deployment

logger = get_logger(__name__)


@dataclass
class PollSummary:
    """Outcome of one poll tick.

    Attributes:
        total: Deployments examined
        advanced: Deployments whose status changed
        failed: Deployments whose step raised
    """

    total: int = 0
    advanced: int = 0
    failed: int = 0


class PollDriver:
    """Periodically step every non-complete deployment.

    Each tick steps all pending deployments concurrently. A failing
    deployment is logged and skipped; it never aborts the tick or the loop.
    """

    def __init__(
        self,
        store: BaseRecordStore,
        state_machine: LifecycleStateMachine,
        interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        """Initialize the poll driver.

        Args:
            store: Record store to enumerate pending deployments from
            state_machine: Lifecycle state machine to step each deployment
            interval: Seconds between the end of one tick and the next
        """
        self.store = store
        self.state_machine = state_machine
        self.interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        """Whether the background loop is active."""
        return self._task is not None and not self._task.done()

    async def tick(self) -> PollSummary:
        """Step every pending deployment once."""
        deployments = await self.store.list_pending()
        summary = PollSummary(total=len(deployments))
        if not deployments:
            return summary

        logger.info(f"{len(deployments)} deployment(s) to update")
        results = await asyncio.gather(
            *(self.state_machine.step(deployment) for deployment in deployments),
            return_exceptions=True,
        )

        for before, result in zip(deployments, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                summary.failed += 1
                logger.error(
                    f"Failed to update deployment {before.id}: {result}",
                    exc_info=result,
                )
            elif _advanced(before, result):
                summary.advanced += 1

        logger.info(
            f"{summary.total} deployment(s) polled, {summary.advanced} advanced, "
            f"{summary.failed} failed"
        )
        return summary

    async def run(self) -> None:
        """Tick forever, sleeping ``interval`` seconds between ticks."""
        while True:
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.exception(f"Poll tick failed: {exc}")
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        """Start the background loop on the running event loop."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self.run(), name="stitch-poll-driver")
        logger.info(f"Poll driver started (interval: {self.interval}s)")

    async def stop(self) -> None:
        """Cancel the background loop and wait for it to exit."""
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Poll driver stopped")


def _advanced(before: Deployment, after: Deployment) -> bool:
    return after.status != before.status
