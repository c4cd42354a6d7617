"""API tests for the scan processing trigger."""

from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from neurotrack.api.v1.endpoints.cron import get_orchestrator
from neurotrack.api.v1.endpoints.cron import router as cron_router
from neurotrack.core.config import Settings, get_settings
from neurotrack.core.exceptions import TransientIOError
from neurotrack.models.scan import ScanStatus

COMPLETED = {
    "status": "completed",
    "volumetric_data": {"hippocampus": {"volume_mm3": 6000}},
    "findings": ["mild recall deficit"],
}


@pytest.fixture
def cron_app(orchestrator) -> FastAPI:
    app = FastAPI()
    app.include_router(cron_router, prefix="/api/v1/cron")
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_settings] = lambda: Settings(cron_secret="s3cret")
    return app


@pytest.fixture
async def client(cron_app: FastAPI):
    transport = ASGITransport(app=cron_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
async def test_missing_token_is_rejected(client: AsyncClient, scan_factory, load_scan) -> None:
    scan = await scan_factory()

    response = await client.get("/api/v1/cron/process-mri")

    assert response.status_code == 401
    assert response.json()["detail"] == "Unauthorized"
    assert (await load_scan(scan.id)).status == ScanStatus.PENDING


@pytest.mark.asyncio
async def test_wrong_token_is_rejected(client: AsyncClient) -> None:
    response = await client.get(
        "/api/v1/cron/process-mri", headers={"Authorization": "Bearer wrong"}
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_batch_run_summary(client: AsyncClient, analysis_service, scan_factory) -> None:
    scan = await scan_factory()
    analysis_service.statuses = [{"status": "processing"}, COMPLETED]

    response = await client.get(
        "/api/v1/cron/process-mri", headers={"Authorization": "Bearer s3cret"}
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["processed"] == 1
    assert payload["success"] == 1
    assert payload["failed"] == 0
    assert payload["results"] == [{"id": scan.id, "status": "success", "scan_status": "completed"}]
    assert "message" not in payload


@pytest.mark.asyncio
async def test_empty_queue_message(client: AsyncClient) -> None:
    response = await client.get(
        "/api/v1/cron/process-mri", headers={"Authorization": "Bearer s3cret"}
    )

    assert response.status_code == 200
    assert response.json()["message"] == "No pending scans"
    assert response.json()["processed"] == 0


@pytest.mark.asyncio
async def test_limit_is_validated(client: AsyncClient) -> None:
    response = await client.get(
        "/api/v1/cron/process-mri?limit=0", headers={"Authorization": "Bearer s3cret"}
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_database_error_returns_500(client: AsyncClient, orchestrator, monkeypatch) -> None:
    monkeypatch.setattr(
        orchestrator.store,
        "fetch_eligible",
        AsyncMock(side_effect=TransientIOError("connection refused")),
    )

    response = await client.get(
        "/api/v1/cron/process-mri", headers={"Authorization": "Bearer s3cret"}
    )

    assert response.status_code == 500
    assert response.json()["detail"] == "Database error: connection refused"


@pytest.mark.asyncio
async def test_open_trigger_without_secret(cron_app: FastAPI) -> None:
    cron_app.dependency_overrides[get_settings] = lambda: Settings(cron_secret="")
    transport = ASGITransport(app=cron_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/v1/cron/process-mri")

    assert response.status_code == 200
