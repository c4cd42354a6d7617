"""
Database models for NeuroTrack.

This module exports all SQLAlchemy models and database utilities.
"""

from neurotrack.models.base import Base, create_engine, create_session_maker
from neurotrack.models.patient import Patient
from neurotrack.models.record import MRI_SUMMARY_RECORD, DoctorRecord
from neurotrack.models.scan import MRIScan, ScanStatus

__all__ = [
    "Base",
    "create_engine",
    "create_session_maker",
    "Patient",
    "MRIScan",
    "ScanStatus",
    "DoctorRecord",
    "MRI_SUMMARY_RECORD",
]
