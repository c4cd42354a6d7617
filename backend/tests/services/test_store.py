"""Tests for the scan store."""

from datetime import date, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from neurotrack.core.exceptions import PersistenceError, TransientIOError
from neurotrack.models.base import utcnow
from neurotrack.models.record import DoctorRecord
from neurotrack.models.scan import ScanStatus
from neurotrack.services.patients import compute_age
from neurotrack.services.store import ScanStore


def _record(scan_id: str) -> DoctorRecord:
    return DoctorRecord(
        mri_scan_id=scan_id,
        patient_id="PAT001",
        summary="MRI analysis completed: 0 findings, 0 structural observations",
    )


@pytest.mark.asyncio
async def test_fetch_eligible_skips_exhausted_and_non_pending(store, scan_factory) -> None:
    eligible = await scan_factory(age_rank=2, retry_count=2)
    await scan_factory(age_rank=0, retry_count=3)
    await scan_factory(age_rank=1, status=ScanStatus.PROCESSING)
    await scan_factory(age_rank=3, status=ScanStatus.COMPLETED)

    scans = await store.fetch_eligible(limit=5, max_retries=3)

    assert [scan.id for scan in scans] == [eligible.id]


@pytest.mark.asyncio
async def test_fetch_eligible_oldest_first_with_limit(store, scan_factory) -> None:
    newest = await scan_factory(age_rank=30)
    oldest = await scan_factory(age_rank=0)
    middle = await scan_factory(age_rank=10)

    scans = await store.fetch_eligible(limit=2, max_retries=3)

    assert [scan.id for scan in scans] == [oldest.id, middle.id]
    assert newest.id not in {scan.id for scan in scans}


@pytest.mark.asyncio
async def test_claim_is_compare_and_swap(store, scan_factory, load_scan) -> None:
    scan = await scan_factory()

    assert await store.claim_scan(scan.id) is True
    assert await store.claim_scan(scan.id) is False
    assert (await load_scan(scan.id)).status == ScanStatus.PROCESSING


@pytest.mark.asyncio
async def test_release_claim_keeps_retry_count(store, scan_factory, load_scan) -> None:
    scan = await scan_factory(retry_count=1)
    await store.claim_scan(scan.id)

    assert await store.release_claim(scan.id) is True

    reloaded = await load_scan(scan.id)
    assert reloaded.status == ScanStatus.PENDING
    assert reloaded.retry_count == 1


@pytest.mark.asyncio
async def test_demographics_from_patient_row(store, patient_factory) -> None:
    await patient_factory(sex="Female", birth_date=date(1950, 1, 1))

    demographics = await store.get_patient_demographics("PAT001")

    assert demographics.sex == "Female"
    assert demographics.name == "Ada Lovelace"
    assert demographics.age == compute_age(date(1950, 1, 1))


@pytest.mark.asyncio
async def test_demographics_default_for_unknown_patient(store) -> None:
    demographics = await store.get_patient_demographics("UNKNOWN")

    assert demographics.age == 50
    assert demographics.sex == "Male"


@pytest.mark.asyncio
async def test_complete_scan_writes_scan_and_record(
    store, scan_factory, load_scan, load_records
) -> None:
    scan = await scan_factory(status=ScanStatus.PROCESSING, error_message="previous failure")
    processed_at = utcnow()

    await store.complete_scan(
        scan.id, analysis={"job_id": "J1"}, processed_at=processed_at, record=_record(scan.id)
    )

    reloaded = await load_scan(scan.id)
    assert reloaded.status == ScanStatus.COMPLETED
    assert reloaded.analysis == {"job_id": "J1"}
    assert reloaded.processed_at is not None
    assert reloaded.error_message is None
    assert len(await load_records(scan.id)) == 1


@pytest.mark.asyncio
async def test_complete_scan_rolls_back_when_record_insert_fails(
    store, session_maker, scan_factory, load_scan, load_records
) -> None:
    scan = await scan_factory(status=ScanStatus.PROCESSING)
    async with session_maker() as session:
        session.add(_record(scan.id))
        await session.commit()

    with pytest.raises(PersistenceError):
        await store.complete_scan(
            scan.id, analysis={"job_id": "J1"}, processed_at=utcnow(), record=_record(scan.id)
        )

    reloaded = await load_scan(scan.id)
    assert reloaded.status == ScanStatus.PROCESSING
    assert reloaded.analysis is None
    assert len(await load_records(scan.id)) == 1


@pytest.mark.asyncio
async def test_complete_scan_requires_processing_status(
    store, scan_factory, load_records
) -> None:
    scan = await scan_factory(status=ScanStatus.PENDING)

    with pytest.raises(PersistenceError, match="no longer processing"):
        await store.complete_scan(
            scan.id, analysis={}, processed_at=utcnow(), record=_record(scan.id)
        )

    assert await load_records(scan.id) == []


@pytest.mark.asyncio
async def test_record_failure_only_touches_processing_scans(
    store, scan_factory, load_scan
) -> None:
    scan = await scan_factory(status=ScanStatus.COMPLETED)

    updated = await store.record_failure(
        scan.id, retry_count=1, status=ScanStatus.PENDING, error_message="boom"
    )

    assert updated is False
    assert (await load_scan(scan.id)).status == ScanStatus.COMPLETED


@pytest.mark.asyncio
async def test_fetch_stale_processing(store, scan_factory) -> None:
    stale = await scan_factory(
        status=ScanStatus.PROCESSING, updated_at=utcnow() - timedelta(hours=2)
    )
    await scan_factory(status=ScanStatus.PROCESSING, updated_at=utcnow())
    await scan_factory(status=ScanStatus.PENDING, updated_at=utcnow() - timedelta(hours=2))

    scans = await store.fetch_stale_processing(utcnow() - timedelta(minutes=30))

    assert [scan.id for scan in scans] == [stale.id]


@pytest.mark.asyncio
async def test_unreadable_database_raises_transient_error(tmp_path) -> None:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    broken = ScanStore(async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession))
    try:
        with pytest.raises(TransientIOError):
            await broken.fetch_eligible(limit=5, max_retries=3)
        with pytest.raises(TransientIOError):
            await broken.count_patients()
    finally:
        await engine.dispose()
