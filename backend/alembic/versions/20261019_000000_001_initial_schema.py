"""Initial database schema for NeuroTrack

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # Create patients table
    op.create_table(
        "patients",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("patient_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(256), nullable=True),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("sex", sa.String(16), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_patients")),
    )
    op.create_index(op.f("ix_patients_patient_id"), "patients", ["patient_id"], unique=True)
    op.create_index("ix_patients_birth_date", "patients", ["birth_date"], unique=False)

    # Create mri_scans table
    op.create_table(
        "mri_scans",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("patient_id", sa.String(64), nullable=False),
        sa.Column("uploaded_by", sa.String(64), nullable=True),
        sa.Column("session_id", sa.String(64), nullable=True),
        sa.Column("storage_path", sa.String(1024), nullable=False),
        sa.Column("original_filename", sa.String(512), nullable=False),
        sa.Column("file_size_bytes", sa.Integer(), nullable=True),
        sa.Column("mime_type", sa.String(128), nullable=True),
        sa.Column(
            "status",
            sa.Enum("pending", "processing", "completed", "failed", name="scanstatus"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("analysis", sa.JSON(), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_mri_scans")),
    )
    op.create_index(op.f("ix_mri_scans_patient_id"), "mri_scans", ["patient_id"], unique=False)
    op.create_index(
        "ix_mri_scans_queue",
        "mri_scans",
        ["status", "retry_count", "created_at"],
        unique=False,
    )

    # Create doctor_records table
    op.create_table(
        "doctor_records",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("mri_scan_id", sa.String(36), nullable=False),
        sa.Column("patient_id", sa.String(64), nullable=False),
        sa.Column("doctor_id", sa.String(64), nullable=True),
        sa.Column("session_id", sa.String(64), nullable=True),
        sa.Column("record_type", sa.String(32), nullable=False, server_default="mri_summary"),
        sa.Column("summary", sa.String(512), nullable=False),
        sa.Column("detailed_notes", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_doctor_records")),
        sa.UniqueConstraint("mri_scan_id", name=op.f("uq_doctor_records_mri_scan_id")),
        sa.ForeignKeyConstraint(
            ["mri_scan_id"],
            ["mri_scans.id"],
            name=op.f("fk_doctor_records_mri_scan_id_mri_scans"),
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        op.f("ix_doctor_records_patient_id"), "doctor_records", ["patient_id"], unique=False
    )


def downgrade() -> None:
    # Drop tables in reverse order
    op.drop_table("doctor_records")
    op.drop_table("mri_scans")
    op.drop_table("patients")

    # Drop enums
    op.execute("DROP TYPE IF EXISTS scanstatus")
