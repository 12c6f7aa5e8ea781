"""Collaborators shared by the background jobs.

Built once by ``create_scheduler``; tests build their own with in-memory
stores and mock transports.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Protocol

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mef.core.config import Settings
from mef.integrations.gpt_survey import GptSurveyClient
from mef.services.ocv_api import OCVApiClient
from mef.workers.heartbeat import HeartbeatRegistry
from mef.workers.locking import JobLock, build_job_lock

logger = structlog.get_logger(__name__)


class Notifier(Protocol):
    async def notify_proposal_submitted(self, proposal_id: int, funding_round_id: str | None) -> None: ...


class LoggingNotifier:
    """Default notifier: records the event in the log only."""

    async def notify_proposal_submitted(self, proposal_id: int, funding_round_id: str | None) -> None:
        logger.info("proposal_submission_notified", proposal_id=proposal_id, funding_round_id=funding_round_id)


@dataclass
class WorkerDeps:
    settings: Settings
    session_factory: async_sessionmaker[AsyncSession]
    registry: HeartbeatRegistry
    lock_factory: Callable[[str], JobLock] | None = None
    ocv_client_factory: Callable[[], OCVApiClient] = OCVApiClient
    gpt_survey_client_factory: Callable[[], GptSurveyClient] = GptSurveyClient
    notifier: Notifier = field(default_factory=LoggingNotifier)

    def lock(self, key: str) -> JobLock:
        """A fresh lock object for ``key`` on the configured backend."""
        if self.lock_factory is not None:
            return self.lock_factory(key)
        return build_job_lock(key, self.settings.worker_lock_backend)

    @property
    def heartbeat_interval(self) -> float:
        return self.settings.worker_heartbeat_interval_seconds

    @property
    def stale_after(self) -> timedelta:
        return timedelta(minutes=self.settings.worker_stale_after_minutes)

    @property
    def fresh_window(self) -> timedelta:
        return timedelta(minutes=self.settings.worker_fresh_window_minutes)
