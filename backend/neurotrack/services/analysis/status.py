"""Job status responses from the volumetric analysis service.

The service answers `GET /status/{job_id}` with a JSON object whose
`status` field selects the shape of the rest. Responses are decoded once,
at the gateway, into one of the four variants below.
"""

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


def _finding_text(item: Any) -> str:
    """Render one model finding as text; structured findings keep their text field."""
    if isinstance(item, str):
        return item
    if isinstance(item, dict):
        for key in ("text", "finding", "description"):
            if isinstance(item.get(key), str):
                return item[key]
    return json.dumps(item, sort_keys=True, default=str)


class _StatusBase(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)


class Queued(_StatusBase):
    """Job accepted, waiting for a worker."""

    status: Literal["queued"]


class Processing(_StatusBase):
    """Job is running."""

    status: Literal["processing"]


class Completed(_StatusBase):
    """Job finished; carries the analysis payload."""

    status: Literal["completed"]
    volumetric_data: dict[str, Any] = Field(default_factory=dict)
    findings: list[str] = Field(default_factory=list)
    pdf_report_url: str | None = None
    csv_report_url: str | None = None

    @field_validator("volumetric_data", mode="before")
    @classmethod
    def _volumes_as_mapping(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @field_validator("findings", mode="before")
    @classmethod
    def _findings_as_text(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if not isinstance(value, list):
            value = [value]
        return [_finding_text(item) for item in value if item is not None]

    def raw_payload(self) -> dict[str, Any]:
        """The decoded payload, including fields this client does not model."""
        return self.model_dump(mode="json")


class Failed(_StatusBase):
    """Job failed on the service side."""

    status: Literal["failed"]
    error: str | None = None

    @field_validator("error", mode="before")
    @classmethod
    def _error_as_text(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return json.dumps(value, sort_keys=True, default=str)

    @property
    def reason(self) -> str:
        return self.error or "Unknown error"


JobStatus = Annotated[
    Union[Queued, Processing, Completed, Failed],
    Field(discriminator="status"),
]

_job_status_adapter: TypeAdapter[JobStatus] = TypeAdapter(JobStatus)


def decode_job_status(data: Any) -> JobStatus:
    """Decode a status response body.

    Raises:
        pydantic.ValidationError: If the body is not a known status shape
    """
    return _job_status_adapter.validate_python(data)
