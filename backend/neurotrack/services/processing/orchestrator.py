"""Batch orchestrator for queued MRI scans.

One batch run selects eligible scans (pending, retries left, oldest first),
claims each with a conditional status update, and drives it through
download -> submit -> poll -> materialize. Scans are processed one after
another; a failure in one scan is handed to the retry policy and never
stops the next scan. Only a failure to read the queue aborts the batch.

Claims are compare-and-swap updates on the scan's status, so any number of
concurrent batch runs can share one database without processing a scan
twice.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Literal

from prometheus_client import Counter

from neurotrack.core.exceptions import ScanProcessingError, TransientIOError
from neurotrack.core.logging import audit_logger, get_logger
from neurotrack.models.base import utcnow
from neurotrack.models.scan import MRIScan, ScanStatus
from neurotrack.services.analysis.gateway import AnalysisGateway, SubmissionPayload
from neurotrack.services.analysis.materializer import ResultMaterializer
from neurotrack.services.analysis.poller import JobPoller
from neurotrack.services.blob import BlobFetcher
from neurotrack.services.processing.retry import RetryDecision, RetryPolicy
from neurotrack.services.store import ScanStore

logger = get_logger(__name__)

SCAN_OUTCOMES = Counter(
    "neurotrack_scan_outcomes_total",
    "Scan processing attempts by outcome",
    ["outcome"],
)

ItemStatus = Literal["success", "failed", "skipped"]


def _written_status(decision: RetryDecision) -> str | None:
    """Status the retry write left on the scan; unknown if another owner had it."""
    return decision.status.value if decision.applied else None


@dataclass
class ScanOutcome:
    """Result of one scan within a batch run."""

    id: str
    status: ItemStatus
    scan_status: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "status": self.status}
        if self.scan_status is not None:
            data["scan_status"] = self.scan_status
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class BatchResult:
    """Aggregated outcome of a batch run."""

    results: list[ScanOutcome] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def success(self) -> int:
        return sum(1 for r in self.results if r.status == "success")

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status == "failed")

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.status == "skipped")

    @property
    def processed(self) -> int:
        return self.success + self.failed

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "processed": self.processed,
            "success": self.success,
            "failed": self.failed,
            "skipped": self.skipped,
            "duration_ms": self.duration_ms,
            "results": [r.to_dict() for r in self.results],
        }
        if not self.results:
            data["message"] = "No pending scans"
        return data


class BatchOrchestrator:
    """Select, claim, and process queued scans."""

    def __init__(
        self,
        store: ScanStore,
        blob_fetcher: BlobFetcher,
        gateway: AnalysisGateway,
        poller: JobPoller,
        materializer: ResultMaterializer,
        retry_policy: RetryPolicy,
        batch_limit: int = 5,
    ) -> None:
        self.store = store
        self.blob_fetcher = blob_fetcher
        self.gateway = gateway
        self.poller = poller
        self.materializer = materializer
        self.retry_policy = retry_policy
        self.batch_limit = batch_limit

    @property
    def max_retries(self) -> int:
        return self.retry_policy.max_retries

    async def run_batch(self, limit: int | None = None) -> BatchResult:
        """Process up to `limit` eligible scans.

        Raises:
            TransientIOError: If the queue cannot be read
        """
        start_time = time.perf_counter()
        if limit is None:
            limit = self.batch_limit

        scans = await self.store.fetch_eligible(limit=limit, max_retries=self.max_retries)
        if not scans:
            logger.info("batch_empty")
        else:
            logger.info("batch_started", eligible=len(scans), limit=limit)

        result = BatchResult()
        for scan in scans:
            result.results.append(await self.process_scan(scan))

        result.duration_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            "batch_completed",
            processed=result.processed,
            success=result.success,
            failed=result.failed,
            skipped=result.skipped,
            duration_ms=result.duration_ms,
        )
        return result

    async def process_scan(self, scan: MRIScan) -> ScanOutcome:
        """Claim one scan and run its pipeline in isolation."""
        try:
            claimed = await self.store.claim_scan(
                scan.id, expected_status=ScanStatus.PENDING, new_status=ScanStatus.PROCESSING
            )
        except TransientIOError as e:
            logger.error("scan_claim_failed", scan_id=scan.id, error=str(e))
            SCAN_OUTCOMES.labels(outcome="skipped").inc()
            return ScanOutcome(id=scan.id, status="skipped", error=str(e))

        if not claimed:
            logger.info("scan_claimed_elsewhere", scan_id=scan.id)
            SCAN_OUTCOMES.labels(outcome="skipped").inc()
            return ScanOutcome(id=scan.id, status="skipped")

        audit_logger.log_scan_transition(
            scan_id=scan.id,
            from_status=ScanStatus.PENDING.value,
            to_status=ScanStatus.PROCESSING.value,
            retry_count=scan.retry_count,
        )
        logger.info(
            "scan_processing_started",
            scan_id=scan.id,
            file_name=scan.original_filename,
            retry_count=scan.retry_count,
        )

        try:
            await self._run_pipeline(scan)
        except asyncio.CancelledError:
            await asyncio.shield(self._release(scan))
            raise
        except Exception as e:
            return await self._handle_failure(scan, e)

        audit_logger.log_scan_transition(
            scan_id=scan.id,
            from_status=ScanStatus.PROCESSING.value,
            to_status=ScanStatus.COMPLETED.value,
            retry_count=scan.retry_count,
        )
        SCAN_OUTCOMES.labels(outcome="completed").inc()
        return ScanOutcome(id=scan.id, status="success", scan_status=ScanStatus.COMPLETED.value)

    async def _run_pipeline(self, scan: MRIScan) -> None:
        file_bytes = await self.blob_fetcher.fetch(scan.storage_path)
        demographics = await self.store.get_patient_demographics(scan.patient_id)

        job_id = await self.gateway.submit(
            SubmissionPayload(
                file_bytes=file_bytes,
                file_name=scan.original_filename,
                age=demographics.age,
                sex=demographics.sex,
                mime_type=scan.mime_type or "application/octet-stream",
            )
        )

        outcome = await self.poller.run(job_id)
        completed = outcome.raise_for_state()

        await self.materializer.materialize(scan, job_id, completed, demographics)

    async def _handle_failure(self, scan: MRIScan, error: Exception) -> ScanOutcome:
        message = str(error) or type(error).__name__
        if isinstance(error, ScanProcessingError):
            logger.error(
                "scan_processing_failed",
                scan_id=scan.id,
                error_type=type(error).__name__,
                error=message,
            )
        else:
            logger.error(
                "scan_processing_failed",
                scan_id=scan.id,
                error_type=type(error).__name__,
                error=message,
                exc_info=error,
            )

        try:
            decision = await self.retry_policy.apply(scan, message)
        except TransientIOError as e:
            # The scan stays in processing until an operator requeues it
            logger.error("scan_retry_update_failed", scan_id=scan.id, error=str(e))
            SCAN_OUTCOMES.labels(outcome="failed").inc()
            return ScanOutcome(
                id=scan.id,
                status="failed",
                scan_status=ScanStatus.PROCESSING.value,
                error=message,
            )

        SCAN_OUTCOMES.labels(
            outcome="retry" if decision.applied and not decision.terminal else "failed"
        ).inc()
        return ScanOutcome(
            id=scan.id, status="failed", scan_status=_written_status(decision), error=message
        )

    async def _release(self, scan: MRIScan) -> None:
        try:
            released = await self.store.release_claim(scan.id)
        except TransientIOError as e:
            logger.error("scan_release_failed", scan_id=scan.id, error=str(e))
            return
        if released:
            audit_logger.log_scan_transition(
                scan_id=scan.id,
                from_status=ScanStatus.PROCESSING.value,
                to_status=ScanStatus.PENDING.value,
                retry_count=scan.retry_count,
                error="Processing cancelled",
            )

    async def requeue_stale(self, older_than: timedelta) -> list[ScanOutcome]:
        """Route scans stuck in processing through the retry policy.

        This is an operator action: the batch run never calls it, because a
        scan in processing may still be owned by a live worker.
        """
        cutoff = utcnow() - older_than
        scans = await self.store.fetch_stale_processing(cutoff)
        outcomes: list[ScanOutcome] = []
        for scan in scans:
            message = f"Processing abandoned (no progress since {scan.updated_at.isoformat()})"
            try:
                decision = await self.retry_policy.apply(scan, message, actor="operator")
            except TransientIOError as e:
                logger.error("stale_scan_requeue_failed", scan_id=scan.id, error=str(e))
                outcomes.append(
                    ScanOutcome(
                        id=scan.id,
                        status="failed",
                        scan_status=ScanStatus.PROCESSING.value,
                        error=str(e),
                    )
                )
                continue
            outcomes.append(
                ScanOutcome(
                    id=scan.id,
                    status="failed",
                    scan_status=_written_status(decision),
                    error=message,
                )
            )
        logger.info("stale_scans_requeued", count=len(outcomes), cutoff=cutoff.isoformat())
        return outcomes
