"""Shared FastAPI dependencies for the API routes.

Override any of these in tests via ``app.dependency_overrides``.
"""

from fastapi import HTTPException, Request

from mef.services.ocv_api import OCVApiClient
from mef.workers.deps import WorkerDeps
from mef.workers.scheduler import JobScheduler


def get_scheduler(request: Request) -> JobScheduler:
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Job scheduler not available")
    return scheduler


def get_worker_deps(request: Request) -> WorkerDeps:
    deps = getattr(request.app.state, "worker_deps", None)
    if deps is None:
        raise HTTPException(status_code=503, detail="Job scheduler not available")
    return deps


def get_optional_scheduler(request: Request) -> JobScheduler | None:
    """The scheduler when this process runs one, else None."""
    return getattr(request.app.state, "scheduler", None)


def get_ocv_client() -> OCVApiClient:
    return OCVApiClient()
