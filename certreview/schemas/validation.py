"""Validation request/response schemas.

Required fields are declared optional so that missing input is reported as
400 by the workflow rather than as a 422 from request parsing.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ApproveRequest(BaseModel):
    """POST /validation/approve request."""

    model_config = ConfigDict(populate_by_name=True)

    cert_no: str | None = None
    calibration_id: str | None = Field(default=None, alias="CalibrationId")
    revision_comment: str | None = None
    justification_comment: str | None = None


class ErrorCategory(BaseModel):
    """Rejection reasons for one review area."""

    codes: list[str] = Field(default_factory=list)
    another_reason: str | None = None


class RejectRequest(BaseModel):
    """POST /validation/reject request."""

    cert_no: str | None = None
    tolerance_errors: ErrorCategory | None = None
    cmc_errors: ErrorCategory | None = None
    requirements_errors: ErrorCategory | None = None


class SaveFeedbackRequest(BaseModel):
    """POST /validation/recommendation/save request."""

    cert_no: str | None = None
    client_feedback: str | None = None


class RecommendationRequest(BaseModel):
    """POST /validation/recommendation request."""

    prompt: Any = None
    model: str | None = None


class ValidationRecordOut(BaseModel):
    """Validation record as returned to clients."""

    model_config = ConfigDict(from_attributes=True)

    cert_no: str
    status: str
    approved_by: str
    approved_at: datetime
    calibration_id: str | None = Field(default=None, serialization_alias="CalibrationId")
    tolerance_errors: dict | None = None
    cmc_errors: dict | None = None
    requirements_errors: dict | None = None
    client_feedback: str | None = None
