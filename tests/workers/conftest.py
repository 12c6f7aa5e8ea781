"""Worker test fixtures: settings with fast intervals and shared job collaborators."""

import pytest

from mef.core.config import Settings
from mef.workers.deps import WorkerDeps
from mef.workers.heartbeat import HeartbeatRegistry
from mef.workers.locking import RedisJobLock


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.calls: list[tuple[int, str | None]] = []
        self.fail = fail

    async def notify_proposal_submitted(self, proposal_id: int, funding_round_id: str | None) -> None:
        if self.fail:
            raise RuntimeError("webhook unreachable")
        self.calls.append((proposal_id, funding_round_id))


@pytest.fixture
def worker_settings() -> Settings:
    return Settings(
        gpt_survey_api_url="https://gpt-survey.test",
        gpt_survey_api_token="secret",
        consideration_reviewer_approval_threshold=2,
        worker_heartbeat_interval_seconds=30.0,
        worker_cancel_grace_seconds=0.2,
        worker_stale_after_minutes=9,
        worker_fresh_window_minutes=5,
    )


@pytest.fixture
def registry(session_factory) -> HeartbeatRegistry:
    return HeartbeatRegistry(session_factory)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def failing_notifier() -> RecordingNotifier:
    return RecordingNotifier(fail=True)


@pytest.fixture
def deps(worker_settings, session_factory, registry, fake_redis, notifier) -> WorkerDeps:
    return WorkerDeps(
        settings=worker_settings,
        session_factory=session_factory,
        registry=registry,
        lock_factory=lambda key: RedisJobLock(fake_redis, key),
        notifier=notifier,
    )
