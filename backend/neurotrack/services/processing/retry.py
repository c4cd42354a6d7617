"""Retry bookkeeping for failed processing attempts."""

from dataclasses import dataclass, replace

from neurotrack.core.logging import audit_logger, get_logger
from neurotrack.models.scan import MRIScan, ScanStatus
from neurotrack.services.store import ScanStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryDecision:
    """What a failed attempt does to a scan."""

    retry_count: int
    status: ScanStatus
    applied: bool = True

    @property
    def terminal(self) -> bool:
        return self.applied and self.status == ScanStatus.FAILED


class RetryPolicy:
    """Requeue a failed scan, or fail it for good once retries run out.

    There is no backoff here: a requeued scan is picked up again by the
    next batch run, so spacing between attempts is the trigger's schedule.
    """

    def __init__(self, store: ScanStore, max_retries: int = 3) -> None:
        self.store = store
        self.max_retries = max_retries

    def decide(self, retry_count: int) -> RetryDecision:
        new_count = retry_count + 1
        status = ScanStatus.FAILED if new_count >= self.max_retries else ScanStatus.PENDING
        return RetryDecision(retry_count=new_count, status=status)

    async def apply(self, scan: MRIScan, error_message: str, actor: str = "processor") -> RetryDecision:
        """Record a failed attempt on the scan.

        The returned decision has `applied=False` when the scan was no
        longer in processing, i.e. nothing was written.

        Raises:
            TransientIOError: If the store cannot be updated
        """
        decision = self.decide(scan.retry_count)
        updated = await self.store.record_failure(
            scan.id,
            retry_count=decision.retry_count,
            status=decision.status,
            error_message=error_message,
        )
        if not updated:
            logger.warning(
                "retry_update_skipped",
                scan_id=scan.id,
                reason="scan is no longer processing",
            )
            return replace(decision, applied=False)

        audit_logger.log_scan_transition(
            scan_id=scan.id,
            from_status=ScanStatus.PROCESSING.value,
            to_status=decision.status.value,
            retry_count=decision.retry_count,
            error=error_message,
            actor=actor,
        )
        return decision
