"""Turn a completed analysis into persisted scan fields and a doctor record.

Structural flags are derived from the volumetric data with fixed
thresholds, appended to the model's own findings, and written together
with the derived record in a single store transaction.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from neurotrack.core.logging import get_logger
from neurotrack.models.base import utcnow
from neurotrack.models.record import MRI_SUMMARY_RECORD, DoctorRecord
from neurotrack.models.scan import MRIScan
from neurotrack.services.analysis.status import Completed
from neurotrack.services.patients import PatientDemographics
from neurotrack.services.store import ScanStore

logger = get_logger(__name__)

POSSIBLE_ATROPHY = "possible atrophy"
VENTRICULAR_ENLARGEMENT = "ventricular enlargement"


@dataclass(frozen=True)
class StructuralFlag:
    """A threshold rule that fired on the volumetric data."""

    label: str
    structure: str
    volume_mm3: float
    threshold_mm3: float

    def describe(self) -> str:
        comparison = "below" if self.label == POSSIBLE_ATROPHY else "above"
        return (
            f"{self.label}: {self.structure} volume {self.volume_mm3:.0f} mm³ "
            f"{comparison} {self.threshold_mm3:.0f} mm³"
        )


@dataclass
class MaterializedResult:
    """Everything written when a scan completes."""

    analysis: dict[str, Any]
    record: DoctorRecord
    processed_at: datetime
    flags: list[StructuralFlag] = field(default_factory=list)


def structure_volume(volumetric_data: dict[str, Any], structure: str) -> float:
    """Read `<structure>.volume_mm3`, treating anything unusable as 0."""
    entry = volumetric_data.get(structure)
    if not isinstance(entry, dict):
        return 0.0
    value = entry.get("volume_mm3")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def _numbered(items: list[str]) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))


class ResultMaterializer:
    """Build and persist the results of a completed analysis job."""

    def __init__(
        self,
        store: ScanStore,
        model_name: str = "AssemblyNet-1.0.0",
        atrophy_threshold_mm3: float = 7000.0,
        enlargement_threshold_mm3: float = 60000.0,
    ) -> None:
        self.store = store
        self.model_name = model_name
        self.atrophy_threshold_mm3 = atrophy_threshold_mm3
        self.enlargement_threshold_mm3 = enlargement_threshold_mm3

    def structural_flags(self, volumetric_data: dict[str, Any]) -> list[StructuralFlag]:
        """Apply the threshold rules.

        A missing hippocampal volume is not evidence of atrophy, so the
        rule only fires for positive volumes.
        """
        flags: list[StructuralFlag] = []

        hippocampus = structure_volume(volumetric_data, "hippocampus")
        if 0 < hippocampus < self.atrophy_threshold_mm3:
            flags.append(
                StructuralFlag(
                    label=POSSIBLE_ATROPHY,
                    structure="hippocampal",
                    volume_mm3=hippocampus,
                    threshold_mm3=self.atrophy_threshold_mm3,
                )
            )

        ventricles = structure_volume(volumetric_data, "ventricles")
        if ventricles > self.enlargement_threshold_mm3:
            flags.append(
                StructuralFlag(
                    label=VENTRICULAR_ENLARGEMENT,
                    structure="ventricular",
                    volume_mm3=ventricles,
                    threshold_mm3=self.enlargement_threshold_mm3,
                )
            )

        return flags

    def build(
        self,
        scan: MRIScan,
        job_id: str,
        result: Completed,
        demographics: PatientDemographics,
    ) -> MaterializedResult:
        """Assemble the analysis object and the doctor record without writing."""
        processed_at = utcnow()
        volumetric_data = result.volumetric_data
        model_findings = list(result.findings)
        flags = self.structural_flags(volumetric_data)
        flag_labels = [flag.label for flag in flags]

        analysis = {
            "job_id": job_id,
            "model": self.model_name,
            "patient_age": demographics.age,
            "patient_sex": demographics.sex,
            "volumetric_data": volumetric_data,
            "model_findings": model_findings,
            "structural_flags": flag_labels,
            "findings": model_findings + flag_labels,
            "pdf_report_url": result.pdf_report_url,
            "csv_report_url": result.csv_report_url,
            "processed_at": processed_at.isoformat(),
        }

        summary_text = f"MRI volumetric analysis completed using {self.model_name}."
        if model_findings:
            summary_text += f"\n\nKey Findings:\n{_numbered(model_findings)}"
        if flags:
            summary_text += (
                f"\n\nStructural Observations:\n{_numbered([f.describe() for f in flags])}"
            )

        scan_date = scan.created_at.date().isoformat() if scan.created_at else "Unknown"
        content_lines = [
            f"MRI Volumetric Analysis ({self.model_name})",
            f"Patient: {demographics.name or 'Unknown'}",
            f"Age: {demographics.age} years | Sex: {demographics.sex}",
            f"Scan Date: {scan_date}",
            f"File: {scan.original_filename}",
            "",
            summary_text,
        ]
        if result.pdf_report_url:
            content_lines += ["", f"Full Report: {result.pdf_report_url}"]

        record = DoctorRecord(
            mri_scan_id=scan.id,
            patient_id=scan.patient_id,
            doctor_id=scan.uploaded_by,
            session_id=scan.session_id,
            record_type=MRI_SUMMARY_RECORD,
            summary=(
                f"MRI analysis completed: {len(model_findings)} findings, "
                f"{len(flags)} structural observations"
            ),
            detailed_notes=summary_text,
            content="\n".join(content_lines).strip(),
            record_metadata={
                "model": self.model_name,
                "job_id": job_id,
                "volumetric_data": volumetric_data,
                "structural_flags": flag_labels,
                "raw_analysis": result.raw_payload(),
                "patient_age": demographics.age,
                "patient_sex": demographics.sex,
            },
        )

        return MaterializedResult(
            analysis=analysis, record=record, processed_at=processed_at, flags=flags
        )

    async def materialize(
        self,
        scan: MRIScan,
        job_id: str,
        result: Completed,
        demographics: PatientDemographics,
    ) -> MaterializedResult:
        """Build the results and persist them as one unit.

        Raises:
            PersistenceError: If the scan update or record insert fails
        """
        materialized = self.build(scan, job_id, result, demographics)
        await self.store.complete_scan(
            scan.id,
            analysis=materialized.analysis,
            processed_at=materialized.processed_at,
            record=materialized.record,
        )
        logger.info(
            "analysis_materialized",
            scan_id=scan.id,
            job_id=job_id,
            findings=len(result.findings),
            structural_flags=[f.label for f in materialized.flags],
        )
        return materialized
