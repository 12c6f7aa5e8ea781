"""Standalone worker process: runs the recurring OCV vote counting job.

Deploy alongside the API with ``SCHEDULER_ENABLED=false`` on the API so
only this process counts votes. Stops cleanly on SIGINT/SIGTERM.
"""

import asyncio
import signal

from mef.core.logging import configure_structlog
from mef.core.config import get_settings

settings = get_settings()
configure_structlog(log_level=settings.log_level, json_logs=not settings.debug)

import structlog

from mef.db import close_db, close_redis, get_session_factory, init_db, init_redis
from mef.workers.setup import build_worker_deps, create_scheduler

logger = structlog.get_logger("mef.worker")


async def main() -> None:
    await init_db(create_tables=False)
    if settings.worker_lock_backend == "redis":
        await init_redis()

    deps = build_worker_deps(settings, get_session_factory())
    scheduler = create_scheduler(deps, include_recurring=True)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    scheduler.start()
    logger.info("worker_process_started", jobs=sorted(scheduler.definitions))

    await stop.wait()

    logger.info("worker_process_stopping")
    await scheduler.stop()
    await close_redis()
    await close_db()
    logger.info("worker_process_stopped")


if __name__ == "__main__":
    asyncio.run(main())
