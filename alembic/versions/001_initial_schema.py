"""Initial schema - evaluation_reports, validated_reports.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "evaluation_reports",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("cert_no", sa.Text(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("overall_status", sa.String(32), nullable=True),
        sa.Column("tolerance_pass", sa.String(32), nullable=True),
        sa.Column("requirements_pass", sa.Boolean(), nullable=True),
        sa.Column("cmc_pass", sa.Boolean(), nullable=True),
        sa.Column("openai_summary", sa.Text(), nullable=True),
        sa.Column("manufacturer", sa.Text(), nullable=True),
        sa.Column("model", sa.Text(), nullable=True),
        sa.Column("equipment_type", sa.Text(), nullable=True),
        sa.Column("customer_name", sa.Text(), nullable=True),
        sa.Column("calibrated_by", sa.Text(), nullable=True),
        sa.Column("report_url", sa.Text(), nullable=True),
        sa.Column("json_data", JSONB(), nullable=True),
        sa.Column("CalibrationId", sa.Text(), nullable=True),
    )
    op.create_index(
        "ix_evaluation_reports_cert_no_created_at",
        "evaluation_reports",
        ["cert_no", "created_at"],
    )

    op.create_table(
        "validated_reports",
        sa.Column("cert_no", sa.Text(), primary_key=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("approved_by", sa.Text(), nullable=False),
        sa.Column("approved_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("CalibrationId", sa.Text(), nullable=True),
        sa.Column("tolerance_errors", JSONB(), nullable=True),
        sa.Column("cmc_errors", JSONB(), nullable=True),
        sa.Column("requirements_errors", JSONB(), nullable=True),
        sa.Column("client_feedback", sa.Text(), nullable=True),
        sa.CheckConstraint("status IN ('APPROVED', 'REJECTED')", name="ck_validated_reports_status"),
    )
    op.create_index("ix_validated_reports_approved_at", "validated_reports", ["approved_at"])


def downgrade() -> None:
    op.drop_index("ix_validated_reports_approved_at", table_name="validated_reports")
    op.drop_table("validated_reports")
    op.drop_index("ix_evaluation_reports_cert_no_created_at", table_name="evaluation_reports")
    op.drop_table("evaluation_reports")
