"""Error taxonomy for the scan processing pipeline.

Every per-scan failure raised below the batch boundary derives from
ScanProcessingError. The orchestrator catches them per scan and hands the
message to the retry policy; only a TransientIOError raised while selecting
the batch escapes to the caller.
"""


class ScanProcessingError(Exception):
    """Base class for scan processing failures."""


class TransientIOError(ScanProcessingError):
    """The store, blob storage, or the analysis service could not be reached."""


class UploadError(ScanProcessingError):
    """The analysis service rejected the scan upload or the transport failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AnalysisFailure(ScanProcessingError):
    """The analysis service reported the job as failed."""

    def __init__(self, job_id: str, reason: str) -> None:
        super().__init__(f"Analysis job {job_id} failed: {reason}")
        self.job_id = job_id
        self.reason = reason


class AnalysisTimeoutError(ScanProcessingError):
    """The job did not reach a terminal state within the poll budget."""

    def __init__(self, job_id: str, attempts: int, elapsed_seconds: float, detail: str = "") -> None:
        message = f"Analysis timeout after {attempts} polls ({elapsed_seconds:.0f} seconds)"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.job_id = job_id
        self.attempts = attempts


class PersistenceError(ScanProcessingError):
    """Writing the analysis results or the derived record failed."""
