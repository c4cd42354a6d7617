"""Poll an analysis job until it reaches a terminal state.

State machine:

    SUBMITTED -> POLLING -> COMPLETED | FAILED | TIMEOUT

Each cycle waits `interval_seconds` (a cancellable asyncio sleep, the only
suspension point in the pipeline) and then asks the gateway for the job's
status. The loop is bounded by `max_attempts` status polls.

A status request that itself fails (network error, non-2xx, unreadable
body) is transient: it never ends the job on its own. Whether it consumes
one of the `max_attempts` is a policy choice:

- COUNT: it does, exactly like a "still processing" answer.
- SEPARATE: it does not, but at most `max_transient_failures` are
  tolerated before the poller gives up with TIMEOUT.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum

from prometheus_client import Histogram

from neurotrack.core.exceptions import AnalysisFailure, AnalysisTimeoutError, TransientIOError
from neurotrack.core.logging import get_logger
from neurotrack.services.analysis.gateway import AnalysisGateway
from neurotrack.services.analysis.status import Completed, Failed

logger = get_logger(__name__)

POLL_ATTEMPTS = Histogram(
    "neurotrack_analysis_poll_attempts",
    "Status polls needed per analysis job",
    ["outcome"],
    buckets=(1, 2, 5, 10, 20, 30, 45, 60, 90),
)


class PollState(str, Enum):
    """Poller states."""

    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"


class TransientPollPolicy(str, Enum):
    """How failed status requests are budgeted."""

    COUNT = "count"
    SEPARATE = "separate"


@dataclass
class PollOutcome:
    """Terminal result of a polling run."""

    job_id: str
    state: PollState
    attempts: int
    transient_failures: int
    elapsed_seconds: float
    payload: Completed | None = None
    reason: str | None = None

    def raise_for_state(self) -> Completed:
        """Return the completed payload or raise the matching error."""
        if self.state == PollState.COMPLETED and self.payload is not None:
            return self.payload
        if self.state == PollState.FAILED:
            raise AnalysisFailure(self.job_id, self.reason or "Unknown error")
        raise AnalysisTimeoutError(
            self.job_id, self.attempts, self.elapsed_seconds, detail=self.reason or ""
        )


class JobPoller:
    """Drive one analysis job from submission to a terminal outcome."""

    def __init__(
        self,
        gateway: AnalysisGateway,
        interval_seconds: float = 10.0,
        max_attempts: int = 60,
        transient_policy: TransientPollPolicy = TransientPollPolicy.COUNT,
        max_transient_failures: int = 10,
    ) -> None:
        self.gateway = gateway
        self.interval_seconds = interval_seconds
        self.max_attempts = max_attempts
        self.transient_policy = TransientPollPolicy(transient_policy)
        self.max_transient_failures = max_transient_failures

    async def run(self, job_id: str) -> PollOutcome:
        """Poll until completed, failed, or out of budget.

        Cancelling the calling task interrupts the wait between polls.
        """
        attempts = 0
        transient_failures = 0
        started = time.monotonic()

        def finish(new_state: PollState, **kwargs) -> PollOutcome:
            outcome = PollOutcome(
                job_id=job_id,
                state=new_state,
                attempts=attempts,
                transient_failures=transient_failures,
                elapsed_seconds=time.monotonic() - started,
                **kwargs,
            )
            POLL_ATTEMPTS.labels(outcome=new_state.value).observe(attempts)
            logger.info(
                "analysis_poll_finished",
                job_id=job_id,
                state=new_state.value,
                attempts=attempts,
                transient_failures=transient_failures,
                elapsed_seconds=round(outcome.elapsed_seconds, 1),
            )
            return outcome

        logger.debug(
            "analysis_poll_started",
            job_id=job_id,
            from_state=PollState.SUBMITTED.value,
            state=PollState.POLLING.value,
        )

        while attempts < self.max_attempts:
            await asyncio.sleep(self.interval_seconds)

            try:
                status = await self.gateway.poll(job_id)
            except AnalysisFailure as e:
                attempts += 1
                return finish(PollState.FAILED, reason=e.reason)
            except TransientIOError as e:
                transient_failures += 1
                if self.transient_policy == TransientPollPolicy.COUNT:
                    attempts += 1
                logger.warning(
                    "analysis_poll_transient_failure",
                    job_id=job_id,
                    attempt=attempts,
                    transient_failures=transient_failures,
                    error=str(e),
                )
                if (
                    self.transient_policy == TransientPollPolicy.SEPARATE
                    and transient_failures > self.max_transient_failures
                ):
                    return finish(
                        PollState.TIMEOUT,
                        reason=f"{transient_failures} status checks failed",
                    )
                continue

            attempts += 1
            logger.debug(
                "analysis_poll",
                job_id=job_id,
                attempt=attempts,
                max_attempts=self.max_attempts,
                status=status.status,
            )

            if isinstance(status, Completed):
                return finish(PollState.COMPLETED, payload=status)
            if isinstance(status, Failed):
                return finish(PollState.FAILED, reason=status.reason)

        return finish(PollState.TIMEOUT)
