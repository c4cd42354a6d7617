"""HTTP client for the volumetric analysis service.

Wire protocol:
    POST /upload            multipart (file, age, sex)  -> {"job_id": str}
    GET  /status/{job_id}                              -> {"status": ..., ...}
"""

from dataclasses import dataclass

import httpx
from pydantic import ValidationError

from neurotrack.core.exceptions import AnalysisFailure, TransientIOError, UploadError
from neurotrack.core.logging import get_logger
from neurotrack.services.analysis.status import JobStatus, decode_job_status

logger = get_logger(__name__)

TERMINAL_STATUSES = ("completed", "failed")


@dataclass(frozen=True)
class SubmissionPayload:
    """A scan file plus the demographics the service normalizes against."""

    file_bytes: bytes
    file_name: str
    age: int
    sex: str
    mime_type: str = "application/octet-stream"


class AnalysisGateway:
    """Submit scans to the analysis service and poll job status."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        upload_timeout_seconds: float = 300.0,
        request_timeout_seconds: float = 30.0,
    ) -> None:
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.upload_timeout_seconds = upload_timeout_seconds
        self.request_timeout_seconds = request_timeout_seconds

    async def submit(self, payload: SubmissionPayload) -> str:
        """Upload a scan and return the service's job id.

        Raises:
            UploadError: If the request fails or is rejected
        """
        url = f"{self.base_url}/upload"
        files = {"file": (payload.file_name, payload.file_bytes, payload.mime_type)}
        data = {"age": str(payload.age), "sex": payload.sex}

        logger.info(
            "analysis_upload_started",
            url=url,
            file_name=payload.file_name,
            size_bytes=len(payload.file_bytes),
        )

        try:
            response = await self.client.post(
                url, files=files, data=data, timeout=self.upload_timeout_seconds
            )
        except httpx.HTTPError as e:
            raise UploadError(f"Analysis upload failed: {type(e).__name__}: {e}") from e

        if not response.is_success:
            raise UploadError(
                f"Analysis upload failed: {response.status_code} - {response.text[:500]}",
                status_code=response.status_code,
            )

        try:
            job_id = response.json().get("job_id")
        except (ValueError, AttributeError) as e:
            raise UploadError(f"Analysis upload returned an invalid body: {e}") from e

        if not job_id:
            raise UploadError("Analysis upload returned no job_id")

        logger.info("analysis_job_queued", job_id=job_id)
        return str(job_id)

    async def poll(self, job_id: str) -> JobStatus:
        """Fetch the current status of a job.

        Raises:
            TransientIOError: If the status could not be fetched or decoded;
                the job itself is not known to have failed
            AnalysisFailure: If the service reports a finished job in a shape
                that cannot be decoded
        """
        url = f"{self.base_url}/status/{job_id}"
        try:
            response = await self.client.get(url, timeout=self.request_timeout_seconds)
        except httpx.HTTPError as e:
            raise TransientIOError(f"Status check failed: {type(e).__name__}: {e}") from e

        if not response.is_success:
            raise TransientIOError(f"Status check failed: {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise TransientIOError(f"Status check returned an unreadable body: {e}") from e

        try:
            return decode_job_status(body)
        except ValidationError as e:
            if isinstance(body, dict) and body.get("status") in TERMINAL_STATUSES:
                # The job is finished; polling again returns the same body
                raise AnalysisFailure(
                    job_id, f"unreadable {body['status']} response: {e.error_count()} invalid fields"
                ) from e
            raise TransientIOError(f"Status check returned an unrecognized body: {e}") from e
