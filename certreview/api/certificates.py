"""Certificate endpoints - stored evaluations and the live Phoenix list."""

import json
import logging
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from certreview.database import get_db
from certreview.errors import ExternalServiceError, InternalError, NotFoundError
from certreview.models import EvaluationReport
from certreview.phoenix.client import PhoenixClient, PhoenixRequestError, get_phoenix_client
from certreview.schemas.certificates import (
    CertificateInfo,
    CertificateSummary,
    CompareRequest,
    EvaluationReportOut,
)
from certreview.storage.repositories import get_latest_evaluation, list_evaluations

logger = logging.getLogger(__name__)

router = APIRouter()

TOLERANCE_CANNOT_VERIFY = "CANNOT_VERIFY"
STATUS_ATTENTION = "ATTENTION"


def _now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def summarize(report: EvaluationReport) -> CertificateSummary:
    """List row; an unverifiable tolerance check needs attention regardless of overall status."""
    overall_status = report.overall_status
    if report.tolerance_pass == TOLERANCE_CANNOT_VERIFY:
        overall_status = STATUS_ATTENTION
    services = []
    if report.requirements_pass is not None:
        services.append("validate_requeirments")
    if report.cmc_pass is not None:
        services.append("cmc_validate_agents")
    if report.tolerance_pass is not None:
        services.append("validate_tolerance")
    return CertificateSummary(
        cert_no=report.cert_no,
        created_at=report.created_at,
        overall_status=overall_status,
        requirements_pass=report.requirements_pass,
        cmc_pass=report.cmc_pass,
        tolerance_pass=report.tolerance_pass,
        openai_summary=report.openai_summary,
        openai_services=services,
        manufacturer=report.manufacturer,
        model=report.model,
        equipment_type=report.equipment_type,
        customer_name=report.customer_name,
        calibrated_by=report.calibrated_by,
    )


@router.get("/current")
async def current_certificates(
    phoenix: Annotated[PhoenixClient, Depends(get_phoenix_client)],
):
    """Live certificate list from Phoenix."""
    try:
        certificates = await phoenix.get_all_certificates()
    except PhoenixRequestError as exc:
        raise ExternalServiceError(exc.message) from exc
    return {"success": True, "certificates": certificates, "timestamp": _now_iso()}


@router.get("/list")
async def list_certificates(
    db: Annotated[AsyncSession, Depends(get_db)],
    fetch_all: Annotated[bool, Query(alias="all")] = False,
    limit: int = 100,
    offset: int = 0,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    search: str | None = None,
):
    """Stored evaluation summaries, newest first."""
    limit = max(1, limit)
    offset = max(0, offset)
    reports, total = await list_evaluations(
        db,
        status=status_filter if status_filter and status_filter != "all" else None,
        search=search or None,
        offset=offset,
        limit=None if fetch_all else limit,
    )
    return {
        "success": True,
        "certificates": [summarize(r).model_dump(mode="json") for r in reports],
        "total": total,
        "limit": None if fetch_all else limit,
        "offset": None if fetch_all else offset,
    }


@router.post("/compare")
async def compare_certificate(
    body: CompareRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    phoenix: Annotated[PhoenixClient, Depends(get_phoenix_client)],
):
    """Side-by-side view of the stored evaluation and the Phoenix record."""
    if not body.cert_no:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Certificate number is required",
        )
    local = await get_latest_evaluation(db, body.cert_no)
    try:
        phoenix_certs = await phoenix.get_all_certificates()
    except PhoenixRequestError as exc:
        raise ExternalServiceError(exc.message, cert_no=body.cert_no) from exc
    remote = next((c for c in phoenix_certs if c.get("CertNo") == body.cert_no), None)

    return {
        "success": True,
        "comparison": {
            "cert_no": body.cert_no,
            "supabase": (
                EvaluationReportOut.model_validate(local).model_dump(mode="json", by_alias=True)
                if local
                else None
            ),
            "phoenix": remote,
            "exists_in_supabase": local is not None,
            "exists_in_phoenix": remote is not None,
            "timestamp": _now_iso(),
        },
    }


@router.get("/{cert_no:path}/report")
async def certificate_report(
    cert_no: str,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Stored evaluation payload for the report viewer."""
    report = await get_latest_evaluation(db, cert_no)
    if report is None:
        raise NotFoundError("Certificate not found", cert_no=cert_no)
    if not report.json_data:
        raise NotFoundError("No validation results available for this certificate", cert_no=cert_no)

    json_data = report.json_data
    if isinstance(json_data, str):
        try:
            json_data = json.loads(json_data)
        except ValueError as exc:
            logger.error("Error parsing json_data for %s: %s", cert_no, exc)
            raise InternalError("Invalid validation data format", cert_no=cert_no) from exc

    info = CertificateInfo(
        cert_no=report.cert_no,
        created_at=report.created_at,
        overall_status=report.overall_status,
        manufacturer=report.manufacturer,
        model=report.model,
        equipment_type=report.equipment_type,
        customer_name=report.customer_name,
        report_url=report.report_url,
    )
    return {
        "success": True,
        "json_data": json_data,
        "certificate_info": info.model_dump(mode="json"),
    }
