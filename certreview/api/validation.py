"""Validation endpoints - approve, reject, status, history, recommendations."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from openai import AsyncOpenAI, OpenAIError
from sqlalchemy.ext.asyncio import AsyncSession

from certreview.auth.session import ReviewerDep
from certreview.database import get_db
from certreview.engine.eligibility import evaluate_reapproval
from certreview.engine.workflow import ApprovalWorkflow, save_client_feedback
from certreview.errors import ExternalServiceError
from certreview.models import STATUS_APPROVED, STATUS_REJECTED, ValidatedReport
from certreview.notifications.webhook import WebhookNotifier, get_webhook_notifier
from certreview.phoenix.client import PhoenixClient, get_phoenix_client
from certreview.recommendation import get_openai_client, iter_text, open_completion_stream
from certreview.schemas.validation import (
    ApproveRequest,
    RecommendationRequest,
    RejectRequest,
    SaveFeedbackRequest,
    ValidationRecordOut,
)
from certreview.storage.repositories import (
    get_latest_evaluation,
    get_validation,
    list_validated_cert_nos,
    list_validations,
)

logger = logging.getLogger(__name__)

router = APIRouter()

DECISION_STATUSES = (STATUS_APPROVED, STATUS_REJECTED)


def get_approval_workflow(
    phoenix: Annotated[PhoenixClient, Depends(get_phoenix_client)],
    notifier: Annotated[WebhookNotifier, Depends(get_webhook_notifier)],
) -> ApprovalWorkflow:
    return ApprovalWorkflow(phoenix, notifier)


WorkflowDep = Annotated[ApprovalWorkflow, Depends(get_approval_workflow)]


def _record_out(record: ValidatedReport) -> dict:
    return ValidationRecordOut.model_validate(record).model_dump(mode="json", by_alias=True)


def _require_cert_no(cert_no: str | None) -> str:
    if not cert_no or not cert_no.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Certificate number is required",
        )
    return cert_no.strip()


@router.post("/approve")
async def approve_certificate(
    body: ApproveRequest,
    reviewer: ReviewerDep,
    db: Annotated[AsyncSession, Depends(get_db)],
    workflow: WorkflowDep,
):
    """
    Approve a certificate in Phoenix, then record the approval locally.
    A rejected certificate can be approved again once it has a newer evaluation.
    """
    record = await workflow.approve(
        db,
        reviewer.email,
        body.cert_no,
        body.revision_comment,
        justification_comment=body.justification_comment,
        calibration_id=body.calibration_id,
    )
    return {
        "success": True,
        "message": "Report approved successfully",
        "data": _record_out(record),
    }


@router.post("/reject")
async def reject_certificate(
    body: RejectRequest,
    reviewer: ReviewerDep,
    db: Annotated[AsyncSession, Depends(get_db)],
    workflow: WorkflowDep,
):
    """Record a rejection with categorized error codes."""
    record = await workflow.reject(
        db,
        reviewer.email,
        body.cert_no,
        tolerance_errors=body.tolerance_errors.model_dump() if body.tolerance_errors else None,
        cmc_errors=body.cmc_errors.model_dump() if body.cmc_errors else None,
        requirements_errors=(
            body.requirements_errors.model_dump() if body.requirements_errors else None
        ),
    )
    return {
        "success": True,
        "message": "Report rejected successfully. Feedback saved and re-evaluation has been triggered.",
        "data": _record_out(record),
    }


@router.get("/can-reapprove")
async def can_reapprove(
    db: Annotated[AsyncSession, Depends(get_db)],
    cert_no: str | None = None,
):
    """Advisory check: may a rejected certificate be approved again?"""
    cert_no = _require_cert_no(cert_no)
    validation = await get_validation(db, cert_no)
    latest_evaluation = await get_latest_evaluation(db, cert_no)
    eligibility = evaluate_reapproval(validation, latest_evaluation)

    response = {"can_reapprove": eligibility.can_reapprove, "reason": eligibility.reason}
    if eligibility.rejection_date is not None:
        response["rejection_date"] = eligibility.rejection_date.isoformat()
    if eligibility.latest_evaluation_date is not None:
        response["latest_evaluation_date"] = eligibility.latest_evaluation_date.isoformat()
    return response


@router.get("/status")
async def validation_status(
    db: Annotated[AsyncSession, Depends(get_db)],
    cert_no: str | None = None,
):
    """Current decision for a certificate."""
    cert_no = _require_cert_no(cert_no)
    record = await get_validation(db, cert_no)
    if record is None:
        return {"validated": False, "status": None}
    return {"validated": True, **_record_out(record)}


@router.get("/list")
async def list_validated_reports(
    reviewer: ReviewerDep,
    db: Annotated[AsyncSession, Depends(get_db)],
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    search: str | None = None,
    page: int = 1,
    page_size: Annotated[int, Query(alias="pageSize")] = 25,
):
    """Paginated decision history, newest first."""
    page = max(1, page)
    page_size = min(100, max(1, page_size))
    records, count = await list_validations(
        db,
        status=status_filter if status_filter in DECISION_STATUSES else None,
        search=search.strip() if search and search.strip() else None,
        offset=(page - 1) * page_size,
        limit=page_size,
    )
    return {
        "success": True,
        "records": [_record_out(r) for r in records],
        "count": count,
        "page": page,
        "pageSize": page_size,
    }


@router.get("/cert-nos")
async def validated_cert_nos(
    db: Annotated[AsyncSession, Depends(get_db)],
    status_filter: Annotated[str | None, Query(alias="status")] = None,
):
    """Certificate numbers that have a decision, optionally by status."""
    cert_nos = await list_validated_cert_nos(
        db, status=status_filter if status_filter in DECISION_STATUSES else None
    )
    return {"success": True, "certNos": cert_nos}


@router.post("/recommendation")
async def stream_recommendation(
    body: RecommendationRequest,
    client: Annotated[AsyncOpenAI, Depends(get_openai_client)],
):
    """Stream a plain-text completion for the reviewer's prompt."""
    if not body.prompt or not isinstance(body.prompt, str):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing prompt")
    try:
        stream = await open_completion_stream(client, body.prompt, body.model)
    except OpenAIError as exc:
        logger.error("Recommendation stream error: %s", exc)
        raise ExternalServiceError("Recommendation service failed") from exc
    return StreamingResponse(iter_text(stream), media_type="text/plain; charset=utf-8")


@router.post("/recommendation/save")
async def save_recommendation(
    body: SaveFeedbackRequest,
    reviewer: ReviewerDep,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Attach client feedback to an approved certificate."""
    record = await save_client_feedback(db, body.cert_no, body.client_feedback)
    logger.info("Client feedback saved for %s by %s", record.cert_no, reviewer.email)
    return {"success": True, "data": _record_out(record)}
