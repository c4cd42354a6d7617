"""Pytest configuration and shared fixtures for NeuroTrack backend tests.

This module provides common fixtures for testing the backend components
including database sessions, a fake analysis service, and test data factories.
"""

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from neurotrack.models.base import Base
from neurotrack.models.patient import Patient
from neurotrack.models.record import DoctorRecord
from neurotrack.models.scan import MRIScan, ScanStatus
from neurotrack.services.analysis.gateway import AnalysisGateway
from neurotrack.services.analysis.materializer import ResultMaterializer
from neurotrack.services.analysis.poller import JobPoller, TransientPollPolicy
from neurotrack.services.blob import BlobFetcher
from neurotrack.services.processing.orchestrator import BatchOrchestrator
from neurotrack.services.processing.retry import RetryPolicy
from neurotrack.services.store import ScanStore

ANALYSIS_URL = "http://analysis.test"
BLOB_URL = "https://blob.test/scans/brain.nii.gz"
BASE_TIME = datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc)


class FakeAnalysisService:
    """In-process stand-in for blob storage and the analysis service.

    `statuses` is consumed one entry per status request; the last entry
    repeats. An entry is a JSON body, an int (HTTP error status), or an
    exception to raise from the transport.
    """

    def __init__(
        self,
        job_id: str = "J1",
        statuses: list[Any] | None = None,
        upload_status: int = 200,
        blob_status: int = 200,
    ) -> None:
        self.job_id = job_id
        self.statuses = list(statuses or [{"status": "completed"}])
        self.upload_status = upload_status
        self.blob_status = blob_status
        self.uploads: list[httpx.Request] = []
        self.status_calls = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "blob.test":
            if self.blob_status != 200:
                return httpx.Response(self.blob_status)
            return httpx.Response(200, content=b"NIFTI-BYTES")

        if request.method == "POST" and request.url.path == "/upload":
            self.uploads.append(request)
            if self.upload_status != 200:
                return httpx.Response(self.upload_status, text="model offline")
            return httpx.Response(200, json={"job_id": self.job_id})

        if request.method == "GET" and request.url.path.startswith("/status/"):
            self.status_calls += 1
            entry = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            if isinstance(entry, Exception):
                raise entry
            if isinstance(entry, int):
                return httpx.Response(entry)
            return httpx.Response(200, json=entry)

        return httpx.Response(404)


@pytest.fixture
async def session_maker(tmp_path):
    """File-backed SQLite database with all tables created."""
    db_file = tmp_path / "neurotrack.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_file}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()


@pytest.fixture
def store(session_maker) -> ScanStore:
    return ScanStore(session_maker)


@pytest.fixture
def scan_factory(session_maker) -> Callable[..., Awaitable[MRIScan]]:
    """Insert a scan; created_at defaults to BASE_TIME plus `age_rank` minutes."""

    async def create(age_rank: int = 0, **overrides: Any) -> MRIScan:
        data: dict[str, Any] = {
            "patient_id": "PAT001",
            "uploaded_by": "doc-1",
            "storage_path": BLOB_URL,
            "original_filename": "brain.nii.gz",
            "mime_type": "application/x-gzip",
            "status": ScanStatus.PENDING,
            "retry_count": 0,
            "created_at": BASE_TIME + timedelta(minutes=age_rank),
        }
        data.update(overrides)
        scan = MRIScan(**data)
        async with session_maker() as session:
            session.add(scan)
            await session.commit()
        return scan

    return create


@pytest.fixture
def patient_factory(session_maker) -> Callable[..., Awaitable[Patient]]:
    async def create(**overrides: Any) -> Patient:
        data: dict[str, Any] = {"patient_id": "PAT001", "name": "Ada Lovelace"}
        data.update(overrides)
        patient = Patient(**data)
        async with session_maker() as session:
            session.add(patient)
            await session.commit()
        return patient

    return create


@pytest.fixture
def load_scan(session_maker) -> Callable[[str], Awaitable[MRIScan]]:
    async def load(scan_id: str) -> MRIScan:
        async with session_maker() as session:
            result = await session.execute(select(MRIScan).where(MRIScan.id == scan_id))
            return result.scalar_one()

    return load


@pytest.fixture
def load_records(session_maker) -> Callable[[str], Awaitable[list[DoctorRecord]]]:
    async def load(scan_id: str) -> list[DoctorRecord]:
        async with session_maker() as session:
            result = await session.execute(
                select(DoctorRecord).where(DoctorRecord.mri_scan_id == scan_id)
            )
            return list(result.scalars().all())

    return load


@pytest.fixture
def analysis_service() -> FakeAnalysisService:
    return FakeAnalysisService()


@pytest.fixture
async def http_client(analysis_service: FakeAnalysisService):
    transport = httpx.MockTransport(analysis_service.handler)
    async with httpx.AsyncClient(transport=transport) as client:
        yield client


@pytest.fixture
def gateway(http_client: httpx.AsyncClient) -> AnalysisGateway:
    return AnalysisGateway(http_client, base_url=ANALYSIS_URL)


def build_test_orchestrator(
    store: ScanStore,
    http_client: httpx.AsyncClient,
    max_poll_attempts: int = 60,
    transient_policy: TransientPollPolicy = TransientPollPolicy.COUNT,
) -> BatchOrchestrator:
    """Orchestrator wired to the fake service, polling without delay."""
    gateway = AnalysisGateway(http_client, base_url=ANALYSIS_URL)
    return BatchOrchestrator(
        store=store,
        blob_fetcher=BlobFetcher(http_client),
        gateway=gateway,
        poller=JobPoller(
            gateway,
            interval_seconds=0,
            max_attempts=max_poll_attempts,
            transient_policy=transient_policy,
        ),
        materializer=ResultMaterializer(store),
        retry_policy=RetryPolicy(store, max_retries=3),
        batch_limit=5,
    )


@pytest.fixture
def orchestrator(store: ScanStore, http_client: httpx.AsyncClient) -> BatchOrchestrator:
    return build_test_orchestrator(store, http_client)


@pytest.fixture
def orchestrator_factory(
    store: ScanStore, http_client: httpx.AsyncClient
) -> Callable[..., BatchOrchestrator]:
    def create(**kwargs: Any) -> BatchOrchestrator:
        return build_test_orchestrator(store, http_client, **kwargs)

    return create
