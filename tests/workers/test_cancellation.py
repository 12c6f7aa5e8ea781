"""Tests for cooperative cancellation tokens."""

import asyncio

import pytest

from mef.core.exceptions import JobCancelledError
from mef.workers.cancellation import CancellationToken

pytestmark = pytest.mark.unit


def test_checkpoint_passes_until_cancelled():
    token = CancellationToken("gpt-survey-processor")
    token.raise_if_cancelled("before_processing")

    token.cancel("admin kill")

    with pytest.raises(JobCancelledError) as exc_info:
        token.raise_if_cancelled("after_processing")
    assert exc_info.value.checkpoint == "after_processing"
    assert exc_info.value.job_name == "gpt-survey-processor"
    assert token.reason == "admin kill"


def test_first_reason_wins():
    token = CancellationToken("job")
    token.cancel("first")
    token.cancel("second")
    assert token.reason == "first"


async def test_wait_returns_on_cancel():
    token = CancellationToken("job")
    asyncio.get_running_loop().call_later(0.01, token.cancel)
    assert await token.wait(timeout=1)


async def test_wait_times_out():
    assert not await CancellationToken("job").wait(timeout=0.01)
