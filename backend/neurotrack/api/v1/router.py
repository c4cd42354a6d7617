"""API v1 Router - Aggregates all API endpoints."""

from fastapi import APIRouter

from neurotrack.api.v1.endpoints import cron, health

api_router = APIRouter()

# Scheduled / on-demand processing triggers
api_router.include_router(
    cron.router,
    prefix="/cron",
    tags=["Processing"],
)

# Health checks
api_router.include_router(
    health.router,
    tags=["Health"],
)
