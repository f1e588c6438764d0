"""Database models."""

from certreview.models.evaluation import EvaluationReport
from certreview.models.validation import STATUS_APPROVED, STATUS_REJECTED, ValidatedReport

__all__ = ["EvaluationReport", "ValidatedReport", "STATUS_APPROVED", "STATUS_REJECTED"]
