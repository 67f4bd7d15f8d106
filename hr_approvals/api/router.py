"""
Main API router
"""
from fastapi import APIRouter

from hr_approvals.api.v1 import (
    health,
    auth,
    chains,
    delegations,
    requests,
    notifications,
    clock,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(chains.router, prefix="/employees", tags=["manager-chains"])
api_router.include_router(delegations.router, prefix="/delegations", tags=["delegations"])
api_router.include_router(requests.router, prefix="/requests", tags=["requests"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(clock.router, prefix="/admin", tags=["admin"])
