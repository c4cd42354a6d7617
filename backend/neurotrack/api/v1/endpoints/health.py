"""Database health endpoint."""

from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from neurotrack.core.exceptions import TransientIOError
from neurotrack.core.logging import get_logger
from neurotrack.services.store import ScanStore

logger = get_logger(__name__)
router = APIRouter()


class DatabaseHealth(BaseModel):
    """Database connectivity report."""

    status: str
    database: str
    patient_count: int
    timestamp: str


def get_store(request: Request) -> ScanStore:
    """Store created by the application lifespan."""
    return request.app.state.store


@router.get("/health/database", response_model=DatabaseHealth)
async def database_health(
    store: Annotated[ScanStore, Depends(get_store)],
) -> DatabaseHealth:
    """Check database connectivity with a cheap count query."""
    try:
        count = await store.count_patients()
    except TransientIOError as e:
        logger.error("database_health_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database health check failed",
        )

    return DatabaseHealth(
        status="ok",
        database="connected",
        patient_count=count,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
