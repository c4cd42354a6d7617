"""
Patient database model.

Only the demographics the scan processor needs are modeled here; the
full patient record is maintained by the dashboard's CRUD layer.
"""

from datetime import date
from typing import Optional

from sqlalchemy import Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from neurotrack.models.base import Base


class Patient(Base):
    """
    Patient model representing a dashboard patient.

    Age and sex are forwarded to the volumetric analysis service, which
    normalizes structure volumes against them.
    """

    __tablename__ = "patients"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # External patient identifier referenced by scans and records
    patient_id: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )

    name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    birth_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    sex: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

    __table_args__ = (Index("ix_patients_birth_date", "birth_date"),)

    def __repr__(self) -> str:
        return f"<Patient(id={self.id}, patient_id='{self.patient_id}')>"
