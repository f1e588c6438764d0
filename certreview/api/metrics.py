"""Dashboard metrics."""

from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from certreview.database import get_db
from certreview.engine.coverage import calculate_processing_coverage
from certreview.errors import ExternalServiceError
from certreview.phoenix.client import PhoenixClient, PhoenixRequestError, get_phoenix_client
from certreview.storage.repositories import list_evaluated_cert_nos

router = APIRouter()


@router.get("/coverage")
async def processing_coverage(
    db: Annotated[AsyncSession, Depends(get_db)],
    phoenix: Annotated[PhoenixClient, Depends(get_phoenix_client)],
):
    """How much of the Phoenix certificate universe has been evaluated."""
    try:
        phoenix_certs = await phoenix.get_all_certificates()
    except PhoenixRequestError as exc:
        raise ExternalServiceError(exc.message) from exc
    cert_nos = await list_evaluated_cert_nos(db)
    return {
        "success": True,
        "coverage": calculate_processing_coverage(
            phoenix_certs, [{"cert_no": c} for c in cert_nos]
        ),
        "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
    }
