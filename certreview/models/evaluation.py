"""Evaluation report model - written by the AI evaluation pipeline."""

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from certreview.database import Base, JSONType


class EvaluationReport(Base):
    """AI evaluation results - one row per evaluation run."""

    __tablename__ = "evaluation_reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cert_no: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    overall_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    tolerance_pass: Mapped[str | None] = mapped_column(String(32), nullable=True)  # PASS|FAIL|CANNOT_VERIFY
    requirements_pass: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    cmc_pass: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    openai_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    manufacturer: Mapped[str | None] = mapped_column(Text, nullable=True)
    model: Mapped[str | None] = mapped_column(Text, nullable=True)
    equipment_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    customer_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    calibrated_by: Mapped[str | None] = mapped_column(Text, nullable=True)
    report_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    json_data: Mapped[Any] = mapped_column(JSONType, nullable=True)
    calibration_id: Mapped[str | None] = mapped_column("CalibrationId", Text, nullable=True)

    __table_args__ = (
        Index("ix_evaluation_reports_cert_no_created_at", "cert_no", "created_at"),
    )
