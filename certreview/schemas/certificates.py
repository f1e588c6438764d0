"""Certificate request/response schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CompareRequest(BaseModel):
    """POST /certificates/compare request."""

    cert_no: str | None = None


class EvaluationReportOut(BaseModel):
    """Stored evaluation row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    cert_no: str
    created_at: datetime
    overall_status: str | None = None
    tolerance_pass: str | None = None
    requirements_pass: bool | None = None
    cmc_pass: bool | None = None
    openai_summary: str | None = None
    manufacturer: str | None = None
    model: str | None = None
    equipment_type: str | None = None
    customer_name: str | None = None
    calibrated_by: str | None = None
    report_url: str | None = None
    json_data: Any = None
    calibration_id: str | None = Field(default=None, serialization_alias="CalibrationId")


class CertificateSummary(BaseModel):
    """Row of GET /certificates/list."""

    cert_no: str
    created_at: datetime
    overall_status: str | None = None
    requirements_pass: bool | None = None
    cmc_pass: bool | None = None
    tolerance_pass: str | None = None
    openai_summary: str | None = None
    openai_services: list[str] = Field(default_factory=list)
    manufacturer: str | None = None
    model: str | None = None
    equipment_type: str | None = None
    customer_name: str | None = None
    calibrated_by: str | None = None


class CertificateInfo(BaseModel):
    """Metadata returned next to a report."""

    cert_no: str
    created_at: datetime
    overall_status: str | None = None
    manufacturer: str | None = None
    model: str | None = None
    equipment_type: str | None = None
    customer_name: str | None = None
    report_url: str | None = None
