"""Validated report model - reviewer decisions."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from certreview.database import Base, JSONType

STATUS_APPROVED = "APPROVED"
STATUS_REJECTED = "REJECTED"


class ValidatedReport(Base):
    """One decision per certificate, overwritten in place on re-decision."""

    __tablename__ = "validated_reports"

    cert_no: Mapped[str] = mapped_column(Text, primary_key=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)  # APPROVED|REJECTED
    approved_by: Mapped[str] = mapped_column(Text, nullable=False)
    # decision timestamp, used for rejections too
    approved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    calibration_id: Mapped[str | None] = mapped_column("CalibrationId", Text, nullable=True)
    tolerance_errors: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    cmc_errors: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    requirements_errors: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    client_feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
