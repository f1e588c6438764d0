"""Approval workflow for a single certificate.

States are NONE (no validation record), REJECTED and APPROVED:

- NONE -> APPROVED: insert.
- REJECTED -> APPROVED: only when a newer evaluation exists; conditional
  update keyed on the REJECTED status.
- APPROVED -> anything: refused with a conflict.
- NONE -> REJECTED: insert with error codes.

Phoenix must accept an approval before anything is written locally.
"""

import logging
import re
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from certreview.engine.calibration_id import resolve_calibration_id
from certreview.engine.eligibility import as_utc, evaluate_reapproval
from certreview.errors import (
    AuthenticationError,
    ConflictError,
    ExternalServiceError,
    InternalError,
    NotFoundError,
    PhoenixRejectedError,
    ServiceError,
    ValidationInputError,
)
from certreview.models import (
    STATUS_APPROVED,
    STATUS_REJECTED,
    EvaluationReport,
    ValidatedReport,
)
from certreview.notifications.webhook import WebhookNotifier
from certreview.phoenix.client import PhoenixClient, PhoenixRequestError
from certreview.storage import repositories

logger = logging.getLogger(__name__)

PHOENIX_FAILURE_RE = re.compile(r"\(HTTP \d{3}\)(?::\s*(?P<detail>.+))?$", re.DOTALL)
AMBIGUOUS_REJECTION = "Phoenix rejected the request without a usable reason"

ANOTHER_REASON = "another_reason"
ERROR_CODES = {
    "tolerance": frozenset(
        {
            "error_pdf_extraction",
            "Tolerance_applied_fail",
            "spec_tolerance_applied_fail",
            "unit_conversion_fail",
            ANOTHER_REASON,
        }
    ),
    "cmc": frozenset(
        {
            "error_pdf_extraction",
            "match_equipment_fail",
            "match_parameter_fail",
            "unit_conversion_fail",
            ANOTHER_REASON,
        }
    ),
    "requirements": frozenset(
        {
            "error_pdf_extraction",
            "unit_conversion_fail",
            "traceability_fail",
            "match_group_requeirment_failed",
            "mapping_requeirments_fail",
            "compliant_requeirment_fail",
            "wrong_justification",
            ANOTHER_REASON,
        }
    ),
}
CATEGORY_LABELS = {"tolerance": "Tolerance", "cmc": "CMC", "requirements": "Requirements"}


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def classify_phoenix_failure(
    exc: Exception, cert_no: str, calibration_id: str | None, operation: str = "approval"
) -> ServiceError:
    """Map a Phoenix failure onto the service error taxonomy.

    ``operation`` names the Phoenix call in rejection messages.
    """
    context = {"cert_no": cert_no, "calibration_id": calibration_id}
    if isinstance(exc, AuthenticationError):
        return AuthenticationError(f"Phoenix authentication failed: {exc.message}", **context)
    status_code = exc.status_code if isinstance(exc, PhoenixRequestError) else None
    if status_code in (401, 403):
        return AuthenticationError("Phoenix authentication failed", **context)
    if status_code == 404:
        return NotFoundError("Certificate not found in Phoenix", **context)
    if status_code is not None and 400 <= status_code < 500:
        match = PHOENIX_FAILURE_RE.search(str(exc))
        detail = (match.group("detail") or "").strip() if match else ""
        if detail:
            return PhoenixRejectedError(f"Phoenix rejected the {operation}: {detail}", **context)
        return PhoenixRejectedError(AMBIGUOUS_REJECTION, **context)
    return ExternalServiceError(f"Phoenix request failed: {exc}", **context)


def prepare_errors(errors: dict[str, Any] | None, category: str) -> dict[str, Any] | None:
    """Validate one rejection category and trim it for storage."""
    if errors is None:
        return None
    label = CATEGORY_LABELS[category]
    codes = errors.get("codes") or []
    if not isinstance(codes, list) or not codes:
        raise ValidationInputError(f"{label} errors must include at least one error code")
    for code in codes:
        if code not in ERROR_CODES[category]:
            raise ValidationInputError(f"Invalid {label} error code: {code}")

    another_reason = (errors.get("another_reason") or "").strip()
    if ANOTHER_REASON in codes and not another_reason:
        raise ValidationInputError(f'{label} "another_reason" requires a description')

    prepared: dict[str, Any] = {"codes": list(codes)}
    if another_reason:
        prepared["another_reason"] = another_reason
    return prepared


def years_earlier(value: datetime, years: int) -> datetime:
    try:
        return value.replace(year=value.year - years)
    except ValueError:
        # Feb 29
        return value.replace(year=value.year - years, day=28)


class ApprovalWorkflow:
    """Approve and reject certificates."""

    def __init__(self, phoenix: PhoenixClient, notifier: WebhookNotifier) -> None:
        self.phoenix = phoenix
        self.notifier = notifier

    def _check_can_approve(
        self,
        cert_no: str,
        existing: ValidatedReport | None,
        latest_evaluation: EvaluationReport | None,
    ) -> None:
        if existing is None:
            return
        if existing.status == STATUS_APPROVED:
            raise ConflictError(
                "This certificate has already been approved",
                cert_no=cert_no,
                existing_status=existing.status,
            )
        # Re-derived here; the advisory endpoint's answer is never trusted
        eligibility = evaluate_reapproval(existing, latest_evaluation)
        if not eligibility.can_reapprove:
            raise ConflictError(
                f"Re-approval not allowed: {eligibility.reason}",
                cert_no=cert_no,
                existing_status=existing.status,
                rejection_date=_iso(eligibility.rejection_date),
                latest_evaluation_date=_iso(eligibility.latest_evaluation_date),
            )

    async def approve(
        self,
        db: AsyncSession,
        reviewer: str,
        cert_no: str | None,
        revision_comment: str | None,
        justification_comment: str | None = None,
        calibration_id: str | None = None,
    ) -> ValidatedReport:
        cert_no = (cert_no or "").strip()
        if not cert_no:
            raise ValidationInputError("Certificate number is required")
        revision_comment = (revision_comment or "").strip()
        if not revision_comment:
            raise ValidationInputError("Revision comment is required", cert_no=cert_no)
        justification_comment = (justification_comment or "").strip()

        existing = await repositories.get_validation(db, cert_no)
        latest_evaluation = await repositories.get_latest_evaluation(db, cert_no)
        self._check_can_approve(cert_no, existing, latest_evaluation)
        # No transaction stays open across Phoenix calls; loaded rows survive the commit
        await db.commit()

        try:
            resolved = await resolve_calibration_id(
                cert_no, calibration_id, latest_evaluation, existing, self.phoenix
            )
        except (PhoenixRequestError, AuthenticationError) as exc:
            raise classify_phoenix_failure(
                exc, cert_no, None, operation="certificate lookup"
            ) from exc
        if resolved is None:
            raise ValidationInputError(
                "CalibrationId could not be resolved for this certificate", cert_no=cert_no
            )
        logger.info(
            "Approving %s with CalibrationId %s (from %s)", cert_no, resolved.value, resolved.source
        )

        ai_analysis = (latest_evaluation.openai_summary if latest_evaluation else None) or ""
        try:
            await self.phoenix.approve_calibration(
                resolved.value,
                revision_comment,
                justification_comment=justification_comment,
                ai_analysis=ai_analysis,
            )
        except (PhoenixRequestError, AuthenticationError) as exc:
            error = classify_phoenix_failure(exc, cert_no, resolved.value)
            logger.warning(
                "Phoenix refused approval of %s (CalibrationId %s): %s",
                cert_no,
                resolved.value,
                error.message,
            )
            raise error from exc

        record = await self._persist_approval(db, cert_no, reviewer, resolved.value, existing)
        await self._mirror_calibration_id(db, cert_no, latest_evaluation, resolved.value)
        self.notifier.dispatch(self.notifier.approval_payload(record))
        return record

    async def _persist_approval(
        self,
        db: AsyncSession,
        cert_no: str,
        reviewer: str,
        calibration_id: str,
        existing: ValidatedReport | None,
    ) -> ValidatedReport:
        try:
            if existing is None:
                record = await repositories.insert_validation(
                    db, cert_no, STATUS_APPROVED, reviewer, calibration_id=calibration_id
                )
                await db.commit()
                return record

            updated = await repositories.transition_validation(
                db,
                cert_no,
                expected_status=STATUS_REJECTED,
                status=STATUS_APPROVED,
                approved_by=reviewer,
                calibration_id=calibration_id,
            )
            if not updated:
                await db.rollback()
                logger.error(
                    "Concurrent decision on %s after Phoenix accepted CalibrationId %s",
                    cert_no,
                    calibration_id,
                )
                raise ConflictError(
                    "This certificate was validated concurrently",
                    cert_no=cert_no,
                    calibration_id=calibration_id,
                )
            await db.commit()
            await db.refresh(existing)
            return existing
        except IntegrityError as exc:
            await db.rollback()
            logger.error(
                "Concurrent approval of %s after Phoenix accepted CalibrationId %s",
                cert_no,
                calibration_id,
            )
            raise ConflictError(
                "This certificate has already been validated",
                cert_no=cert_no,
                calibration_id=calibration_id,
            ) from exc
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception(
                "Failed to save approval record for %s (CalibrationId %s)",
                cert_no,
                calibration_id,
            )
            raise InternalError("Failed to save approval record", cert_no=cert_no) from exc

    async def _mirror_calibration_id(
        self,
        db: AsyncSession,
        cert_no: str,
        latest_evaluation: EvaluationReport | None,
        calibration_id: str,
    ) -> None:
        if latest_evaluation is None or latest_evaluation.calibration_id == calibration_id:
            return
        try:
            await repositories.set_evaluation_calibration_id(
                db, latest_evaluation.id, calibration_id
            )
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            logger.warning(
                "Could not store CalibrationId on evaluation for %s", cert_no, exc_info=True
            )

    async def reject(
        self,
        db: AsyncSession,
        reviewer: str,
        cert_no: str | None,
        tolerance_errors: dict[str, Any] | None = None,
        cmc_errors: dict[str, Any] | None = None,
        requirements_errors: dict[str, Any] | None = None,
    ) -> ValidatedReport:
        """
        Record a rejection and push the latest evaluation's timestamp back two
        years so the evaluation pipeline picks the certificate up again.
        """
        cert_no = (cert_no or "").strip()
        if not cert_no:
            raise ValidationInputError("Certificate number is required")
        if tolerance_errors is None and cmc_errors is None and requirements_errors is None:
            raise ValidationInputError(
                "At least one error category must be specified for rejection", cert_no=cert_no
            )
        prepared = {
            "tolerance_errors": prepare_errors(tolerance_errors, "tolerance"),
            "cmc_errors": prepare_errors(cmc_errors, "cmc"),
            "requirements_errors": prepare_errors(requirements_errors, "requirements"),
        }

        existing = await repositories.get_validation(db, cert_no)
        if existing is not None:
            raise ConflictError(
                "This certificate has already been validated",
                cert_no=cert_no,
                existing_status=existing.status,
            )
        latest_evaluation = await repositories.get_latest_evaluation(db, cert_no)
        if latest_evaluation is None:
            raise NotFoundError(
                "Evaluation report not found for this certificate", cert_no=cert_no
            )

        try:
            latest_evaluation.created_at = years_earlier(as_utc(latest_evaluation.created_at), 2)
            record = await repositories.insert_validation(
                db,
                cert_no,
                STATUS_REJECTED,
                reviewer,
                calibration_id=latest_evaluation.calibration_id,
                **prepared,
            )
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            raise ConflictError(
                "This certificate has already been validated", cert_no=cert_no
            ) from exc
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception("Failed to save rejection record for %s", cert_no)
            raise InternalError("Failed to save rejection record", cert_no=cert_no) from exc
        return record


async def save_client_feedback(
    db: AsyncSession, cert_no: str | None, client_feedback: str | None
) -> ValidatedReport:
    """Attach reviewer feedback to an approved certificate."""
    if not cert_no or not isinstance(client_feedback, str):
        raise ValidationInputError("cert_no and client_feedback are required")
    record = await repositories.get_validation(db, cert_no)
    if record is None:
        raise NotFoundError("Validation record not found", cert_no=cert_no)
    if record.status != STATUS_APPROVED:
        raise ValidationInputError(
            "Recommendation can only be saved for approved reports", cert_no=cert_no
        )
    try:
        record.client_feedback = client_feedback
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Failed to save recommendation for %s", cert_no)
        raise InternalError("Failed to save recommendation", cert_no=cert_no) from exc
    return record
