from fastapi import APIRouter

from mef.api.routes import (
    admin_funding_rounds,
    admin_reviewer_groups,
    admin_workers,
    funding_rounds,
    health,
    proposals,
    voting,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(funding_rounds.router, prefix="/funding-rounds", tags=["funding-rounds"])
api_router.include_router(admin_funding_rounds.router, prefix="/admin/funding-rounds", tags=["admin"])
api_router.include_router(admin_reviewer_groups.round_router, prefix="/admin/funding-rounds", tags=["admin"])
api_router.include_router(admin_reviewer_groups.router, prefix="/admin/reviewer-groups", tags=["admin"])
api_router.include_router(proposals.router, prefix="/proposals", tags=["proposals"])
api_router.include_router(proposals.admin_router, prefix="/admin/proposals", tags=["admin"])
api_router.include_router(voting.router, tags=["voting"])
api_router.include_router(admin_workers.router, prefix="/admin", tags=["admin"])
