"""Client side of the external volumetric analysis service."""

from neurotrack.services.analysis.gateway import AnalysisGateway, SubmissionPayload
from neurotrack.services.analysis.materializer import ResultMaterializer
from neurotrack.services.analysis.poller import JobPoller, PollOutcome, PollState, TransientPollPolicy
from neurotrack.services.analysis.status import (
    Completed,
    Failed,
    JobStatus,
    Processing,
    Queued,
    decode_job_status,
)

__all__ = [
    "AnalysisGateway",
    "SubmissionPayload",
    "JobPoller",
    "PollOutcome",
    "PollState",
    "TransientPollPolicy",
    "ResultMaterializer",
    "JobStatus",
    "Queued",
    "Processing",
    "Completed",
    "Failed",
    "decode_job_status",
]
