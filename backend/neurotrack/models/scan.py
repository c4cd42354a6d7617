"""
MRI scan database model.

Represents one uploaded imaging study queued for automated volumetric
analysis, with the retry bookkeeping the background processor relies on.
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Enum, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from neurotrack.models.base import Base


class ScanStatus(str, PyEnum):
    """Scan processing status."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


def _new_scan_id() -> str:
    return str(uuid4())


class MRIScan(Base):
    """
    MRIScan model representing an uploaded MRI study.

    Created by the upload flow with status=pending and retry_count=0;
    mutated only by the scan processor afterwards and never deleted by it.
    """

    __tablename__ = "mri_scans"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_scan_id)

    patient_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    uploaded_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    session_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Blob reference (not owned by the processor)
    storage_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    original_filename: Mapped[str] = mapped_column(String(512), nullable=False)
    file_size_bytes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    mime_type: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    status: Mapped[ScanStatus] = mapped_column(
        Enum(ScanStatus, name="scanstatus", values_callable=lambda e: [m.value for m in e]),
        default=ScanStatus.PENDING,
        nullable=False,
    )
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Structured analysis payload (set on completion)
    analysis: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        # Queue selection: status + retry_count ordered by created_at
        Index("ix_mri_scans_queue", "status", "retry_count", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<MRIScan(id='{self.id}', patient_id='{self.patient_id}', "
            f"status='{self.status}', retry_count={self.retry_count})>"
        )
