"""Cooperative cancellation for background jobs.

A job receives a CancellationToken and checks it at defined checkpoints
(before heavy work, after each major step). The scheduler sets the token,
waits a grace period, then cancels the asyncio task outright.
"""

import asyncio

import structlog

from mef.core.exceptions import JobCancelledError

logger = structlog.get_logger(__name__)


class CancellationToken:
    """asyncio.Event-backed cancellation flag for one job execution."""

    def __init__(self, job_name: str) -> None:
        self.job_name = job_name
        self.reason: str | None = None
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancel requested") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()
            logger.info("job_cancel_requested", job=self.job_name, reason=reason)

    def raise_if_cancelled(self, checkpoint: str) -> None:
        """Raise JobCancelledError if cancellation was requested.

        Args:
            checkpoint: Name of the step about to start or just finished
        """
        if self._event.is_set():
            raise JobCancelledError(self.job_name, checkpoint)

    async def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses. Returns the flag."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except TimeoutError:
            pass
        return self._event.is_set()
