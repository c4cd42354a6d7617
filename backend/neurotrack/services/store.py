"""Scan store: the processor's only access path to the database.

The store is constructed explicitly from a session maker and injected into
the orchestrator; it owns no global state. All writes the processor makes
are single-row updates, except `complete_scan`, which updates the scan and
inserts its derived record in one transaction.
"""

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from neurotrack.core.exceptions import PersistenceError, TransientIOError
from neurotrack.core.logging import get_logger
from neurotrack.models.base import utcnow
from neurotrack.models.patient import Patient
from neurotrack.models.record import DoctorRecord
from neurotrack.models.scan import MRIScan, ScanStatus
from neurotrack.services.patients import PatientDemographics, resolve_demographics

logger = get_logger(__name__)


class ScanStore:
    """Database operations used by the scan processor."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        default_age: int = 50,
        default_sex: str = "Male",
    ) -> None:
        self._session_maker = session_maker
        self.default_age = default_age
        self.default_sex = default_sex

    async def fetch_eligible(self, limit: int, max_retries: int) -> list[MRIScan]:
        """Return pending scans with retries left, oldest first.

        Raises:
            TransientIOError: If the database cannot be read
        """
        query = (
            select(MRIScan)
            .where(
                MRIScan.status == ScanStatus.PENDING,
                MRIScan.retry_count < max_retries,
            )
            .order_by(MRIScan.created_at.asc(), MRIScan.id.asc())
            .limit(limit)
        )
        try:
            async with self._session_maker() as session:
                result = await session.execute(query)
                return list(result.scalars().all())
        except (SQLAlchemyError, OSError) as e:
            raise TransientIOError(f"Failed to fetch pending scans: {e}") from e

    async def claim_scan(
        self,
        scan_id: str,
        expected_status: ScanStatus = ScanStatus.PENDING,
        new_status: ScanStatus = ScanStatus.PROCESSING,
    ) -> bool:
        """Move a scan from expected_status to new_status atomically.

        Returns False if the scan was no longer in expected_status, i.e.
        another worker got there first.
        """
        return await self._transition(scan_id, expected_status, new_status)

    async def release_claim(self, scan_id: str) -> bool:
        """Return a claimed scan to the queue without consuming a retry."""
        return await self._transition(scan_id, ScanStatus.PROCESSING, ScanStatus.PENDING)

    async def _transition(
        self, scan_id: str, expected_status: ScanStatus, new_status: ScanStatus
    ) -> bool:
        stmt = (
            update(MRIScan)
            .where(MRIScan.id == scan_id, MRIScan.status == expected_status)
            .values(status=new_status, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    result = await session.execute(stmt)
                    return result.rowcount == 1
        except (SQLAlchemyError, OSError) as e:
            raise TransientIOError(f"Failed to update scan {scan_id}: {e}") from e

    async def get_patient_demographics(self, patient_id: str) -> PatientDemographics:
        """Look up age and sex for a patient, using defaults when unavailable."""
        query = select(Patient).where(Patient.patient_id == patient_id)
        try:
            async with self._session_maker() as session:
                result = await session.execute(query)
                patient = result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            logger.warning("patient_lookup_failed", patient_id=patient_id, error=str(e))
            patient = None

        if patient is None:
            return PatientDemographics(age=self.default_age, sex=self.default_sex)

        return resolve_demographics(
            birth_date=patient.birth_date,
            sex=patient.sex,
            name=patient.name,
            default_age=self.default_age,
            default_sex=self.default_sex,
        )

    async def complete_scan(
        self,
        scan_id: str,
        analysis: dict,
        processed_at: datetime,
        record: DoctorRecord,
    ) -> None:
        """Mark a scan completed and insert its derived record in one transaction.

        The scan update is guarded by status=processing, so a worker that
        lost ownership cannot complete the scan.

        Raises:
            PersistenceError: If either write fails; neither is kept
        """
        stmt = (
            update(MRIScan)
            .where(MRIScan.id == scan_id, MRIScan.status == ScanStatus.PROCESSING)
            .values(
                status=ScanStatus.COMPLETED,
                analysis=analysis,
                processed_at=processed_at,
                error_message=None,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    result = await session.execute(stmt)
                    if result.rowcount != 1:
                        raise PersistenceError(
                            f"Failed to update scan: {scan_id} is no longer processing"
                        )
                    session.add(record)
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError(f"Failed to persist analysis for scan {scan_id}: {e}") from e

    async def record_failure(
        self,
        scan_id: str,
        retry_count: int,
        status: ScanStatus,
        error_message: str,
    ) -> bool:
        """Write retry bookkeeping for a scan that failed while processing."""
        stmt = (
            update(MRIScan)
            .where(MRIScan.id == scan_id, MRIScan.status == ScanStatus.PROCESSING)
            .values(
                status=status,
                retry_count=retry_count,
                error_message=error_message,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    result = await session.execute(stmt)
                    return result.rowcount == 1
        except (SQLAlchemyError, OSError) as e:
            raise TransientIOError(f"Failed to record failure for scan {scan_id}: {e}") from e

    async def fetch_stale_processing(self, older_than: datetime, limit: int = 100) -> list[MRIScan]:
        """Return scans left in processing since before older_than."""
        query = (
            select(MRIScan)
            .where(
                MRIScan.status == ScanStatus.PROCESSING,
                MRIScan.updated_at < older_than,
            )
            .order_by(MRIScan.updated_at.asc())
            .limit(limit)
        )
        try:
            async with self._session_maker() as session:
                result = await session.execute(query)
                return list(result.scalars().all())
        except (SQLAlchemyError, OSError) as e:
            raise TransientIOError(f"Failed to fetch stale scans: {e}") from e

    async def count_patients(self) -> int:
        """Count patient rows (used by the database health check)."""
        try:
            async with self._session_maker() as session:
                result = await session.execute(select(func.count()).select_from(Patient))
                return int(result.scalar_one())
        except (SQLAlchemyError, OSError) as e:
            raise TransientIOError(f"Database query failed: {e}") from e
