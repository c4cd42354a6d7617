"""Scan processing trigger.

Called by an external scheduler (or manually) to run one batch of the
MRI scan processor. When CRON_SECRET is configured the caller must send
`Authorization: Bearer <secret>`.
"""

import hmac
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from neurotrack.core.config import Settings, get_settings
from neurotrack.core.exceptions import TransientIOError
from neurotrack.core.logging import audit_logger, get_logger
from neurotrack.services.processing import BatchOrchestrator

logger = get_logger(__name__)
router = APIRouter()


class ScanResultItem(BaseModel):
    """Outcome of one scan in a batch run."""

    id: str
    status: str = Field(..., description="success, failed, or skipped (claimed by another worker)")
    scan_status: str | None = Field(None, description="Scan status after this run")
    error: str | None = None


class BatchRunResponse(BaseModel):
    """Batch run summary."""

    processed: int
    success: int
    failed: int
    skipped: int = 0
    duration_ms: int
    results: list[ScanResultItem] = Field(default_factory=list)
    message: str | None = None


def get_orchestrator(request: Request) -> BatchOrchestrator:
    """Orchestrator created by the application lifespan."""
    return request.app.state.orchestrator


def _is_authorized(authorization: str | None, secret: str) -> bool:
    if not secret:
        return True
    if not authorization:
        return False
    expected = f"Bearer {secret}"
    return hmac.compare_digest(authorization.encode("utf-8"), expected.encode("utf-8"))


@router.get(
    "/process-mri",
    response_model=BatchRunResponse,
    response_model_exclude_none=True,
)
async def process_mri(
    request: Request,
    orchestrator: Annotated[BatchOrchestrator, Depends(get_orchestrator)],
    settings: Annotated[Settings, Depends(get_settings)],
    authorization: Annotated[str | None, Header()] = None,
    limit: Annotated[int | None, Query(ge=1, le=100, description="Override batch size")] = None,
) -> BatchRunResponse:
    """Run one batch of the MRI scan processor.

    Returns one result entry per scan fetched from the queue.
    """
    client_ip = request.client.host if request.client else None

    if not _is_authorized(authorization, settings.cron_secret):
        audit_logger.log_trigger_access(
            authorized=False, client_ip=client_ip, reason="invalid or missing bearer token"
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )

    audit_logger.log_trigger_access(authorized=True, client_ip=client_ip)

    try:
        result = await orchestrator.run_batch(limit=limit)
    except TransientIOError as e:
        logger.error("batch_aborted", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Database error: {e}",
        )

    return BatchRunResponse(**result.to_dict())
