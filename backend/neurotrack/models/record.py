"""
Doctor record database model.

Derived clinical records are summaries generated from completed scan
analyses and consumed by the dashboard's chat context.
"""

from typing import Any, Optional

from sqlalchemy import JSON, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from neurotrack.models.base import Base

MRI_SUMMARY_RECORD = "mri_summary"


class DoctorRecord(Base):
    """
    DoctorRecord model representing a derived clinical record.

    At most one record exists per scan; the unique constraint on
    mri_scan_id enforces it at the database level.
    """

    __tablename__ = "doctor_records"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    mri_scan_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("mri_scans.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    patient_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    doctor_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    session_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    record_type: Mapped[str] = mapped_column(
        String(32), default=MRI_SUMMARY_RECORD, nullable=False
    )
    summary: Mapped[str] = mapped_column(String(512), nullable=False)
    detailed_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # "metadata" is reserved on declarative classes
    record_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column(
        "metadata", JSON, nullable=True
    )

    def __repr__(self) -> str:
        return f"<DoctorRecord(id={self.id}, mri_scan_id='{self.mri_scan_id}')>"
