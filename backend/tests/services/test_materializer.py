"""Tests for result materialization and structural flags."""

from datetime import datetime, timezone

import pytest

from neurotrack.models.record import MRI_SUMMARY_RECORD
from neurotrack.models.scan import MRIScan, ScanStatus
from neurotrack.services.analysis.materializer import (
    POSSIBLE_ATROPHY,
    VENTRICULAR_ENLARGEMENT,
    ResultMaterializer,
    structure_volume,
)
from neurotrack.services.analysis.status import decode_job_status
from neurotrack.services.patients import PatientDemographics

DEMOGRAPHICS = PatientDemographics(age=72, sex="Female", name="Ada Lovelace")


def _scan() -> MRIScan:
    return MRIScan(
        id="S1",
        patient_id="PAT001",
        uploaded_by="doc-1",
        session_id="sess-9",
        storage_path="https://blob.test/scans/brain.nii.gz",
        original_filename="brain.nii.gz",
        status=ScanStatus.PROCESSING,
        retry_count=0,
        created_at=datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc),
    )


def _completed(volumetric_data=None, findings=None, **extra):
    return decode_job_status(
        {
            "status": "completed",
            "volumetric_data": volumetric_data or {},
            "findings": findings or [],
            **extra,
        }
    )


@pytest.fixture
def materializer(store) -> ResultMaterializer:
    return ResultMaterializer(store)


@pytest.mark.parametrize(
    ("volumetric_data", "expected"),
    [
        ({"hippocampus": {"volume_mm3": 6000}}, [POSSIBLE_ATROPHY]),
        ({"hippocampus": {"volume_mm3": 7000}}, []),
        ({"hippocampus": {"volume_mm3": 0}}, []),
        ({}, []),
        ({"ventricles": {"volume_mm3": 65000}}, [VENTRICULAR_ENLARGEMENT]),
        ({"ventricles": {"volume_mm3": 60000}}, []),
        (
            {"hippocampus": {"volume_mm3": 5200}, "ventricles": {"volume_mm3": 71000}},
            [POSSIBLE_ATROPHY, VENTRICULAR_ENLARGEMENT],
        ),
    ],
)
def test_structural_flags(materializer, volumetric_data, expected) -> None:
    flags = materializer.structural_flags(volumetric_data)
    assert [flag.label for flag in flags] == expected


def test_structure_volume_ignores_unusable_values() -> None:
    assert structure_volume({"hippocampus": {"volume_mm3": "6000"}}, "hippocampus") == 0.0
    assert structure_volume({"hippocampus": 6000}, "hippocampus") == 0.0
    assert structure_volume({"hippocampus": {"volume_mm3": 6500.5}}, "hippocampus") == 6500.5


def test_build_analysis_object(materializer) -> None:
    result = _completed(
        {"hippocampus": {"volume_mm3": 6000}},
        ["mild recall deficit"],
        pdf_report_url="https://reports.test/J1.pdf",
    )

    built = materializer.build(_scan(), "J1", result, DEMOGRAPHICS)

    analysis = built.analysis
    assert analysis["job_id"] == "J1"
    assert analysis["model"] == "AssemblyNet-1.0.0"
    assert analysis["patient_age"] == 72
    assert analysis["patient_sex"] == "Female"
    assert analysis["findings"] == ["mild recall deficit", POSSIBLE_ATROPHY]
    assert analysis["structural_flags"] == [POSSIBLE_ATROPHY]
    assert analysis["pdf_report_url"] == "https://reports.test/J1.pdf"
    assert analysis["csv_report_url"] is None
    assert analysis["processed_at"] == built.processed_at.isoformat()


def test_build_doctor_record(materializer) -> None:
    result = _completed({"hippocampus": {"volume_mm3": 6000}}, ["mild recall deficit"])

    record = materializer.build(_scan(), "J1", result, DEMOGRAPHICS).record

    assert record.mri_scan_id == "S1"
    assert record.patient_id == "PAT001"
    assert record.doctor_id == "doc-1"
    assert record.session_id == "sess-9"
    assert record.record_type == MRI_SUMMARY_RECORD
    assert record.summary == "MRI analysis completed: 1 findings, 1 structural observations"
    assert "Key Findings:\n1. mild recall deficit" in record.detailed_notes
    assert "Structural Observations:\n1. possible atrophy" in record.detailed_notes
    assert "Patient: Ada Lovelace" in record.content
    assert "Scan Date: 2026-03-02" in record.content
    assert record.record_metadata["structural_flags"] == [POSSIBLE_ATROPHY]
    assert record.record_metadata["raw_analysis"]["findings"] == ["mild recall deficit"]


def test_build_without_findings_or_flags(materializer) -> None:
    result = _completed({"hippocampus": {"volume_mm3": 8100}})

    built = materializer.build(_scan(), "J2", result, DEMOGRAPHICS)

    assert built.flags == []
    assert built.analysis["findings"] == []
    assert "Key Findings" not in built.record.detailed_notes
    assert "Structural Observations" not in built.record.detailed_notes
