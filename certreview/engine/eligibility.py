"""Re-approval eligibility.

A rejected certificate may only be approved again once the evaluation
pipeline has produced a newer evaluation than the rejection. The same
function backs the advisory ``/validation/can-reapprove`` endpoint and the
authoritative re-check inside the approval workflow.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from certreview.models import (
    STATUS_APPROVED,
    STATUS_REJECTED,
    EvaluationReport,
    ValidatedReport,
)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class ReapprovalEligibility:
    can_reapprove: bool
    reason: str
    rejection_date: datetime | None = None
    latest_evaluation_date: datetime | None = None


def evaluate_reapproval(
    validation: ValidatedReport | None,
    latest_evaluation: EvaluationReport | None,
) -> ReapprovalEligibility:
    if validation is None:
        return ReapprovalEligibility(False, "No validation record found")
    if validation.status == STATUS_APPROVED:
        return ReapprovalEligibility(False, "Certificate is already approved")
    if validation.status != STATUS_REJECTED:
        return ReapprovalEligibility(False, "Certificate is not in rejected status")

    rejection_date = as_utc(validation.approved_at)
    if latest_evaluation is None:
        return ReapprovalEligibility(
            False,
            "No evaluation found for this certificate",
            rejection_date=rejection_date,
        )

    evaluation_date = as_utc(latest_evaluation.created_at)
    if evaluation_date > rejection_date:
        reason = "A new evaluation has been generated since the previous rejection"
    else:
        reason = "No newer evaluation found since rejection"
    return ReapprovalEligibility(
        evaluation_date > rejection_date,
        reason,
        rejection_date=rejection_date,
        latest_evaluation_date=evaluation_date,
    )
