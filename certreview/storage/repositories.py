"""Repository functions for validated reports and evaluation reports."""

from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from certreview.models import EvaluationReport, ValidatedReport


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def get_validation(db: AsyncSession, cert_no: str) -> ValidatedReport | None:
    """Validation record for a certificate."""
    result = await db.execute(
        select(ValidatedReport).where(ValidatedReport.cert_no == cert_no)
    )
    return result.scalar_one_or_none()


async def get_latest_evaluation(
    db: AsyncSession, cert_no: str
) -> EvaluationReport | None:
    """Most recent evaluation by created_at."""
    result = await db.execute(
        select(EvaluationReport)
        .where(EvaluationReport.cert_no == cert_no)
        .order_by(EvaluationReport.created_at.desc(), EvaluationReport.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def insert_validation(
    db: AsyncSession,
    cert_no: str,
    status: str,
    approved_by: str,
    calibration_id: str | None = None,
    tolerance_errors: dict | None = None,
    cmc_errors: dict | None = None,
    requirements_errors: dict | None = None,
) -> ValidatedReport:
    """Insert a decision. The cert_no primary key rejects a second row."""
    record = ValidatedReport(
        cert_no=cert_no,
        status=status,
        approved_by=approved_by,
        approved_at=utcnow(),
        calibration_id=calibration_id,
        tolerance_errors=tolerance_errors,
        cmc_errors=cmc_errors,
        requirements_errors=requirements_errors,
    )
    db.add(record)
    await db.flush()
    return record


async def transition_validation(
    db: AsyncSession,
    cert_no: str,
    expected_status: str,
    status: str,
    approved_by: str,
    calibration_id: str | None,
) -> bool:
    """
    Compare-and-swap decision update: only applies while the row still has
    expected_status. Error fields are cleared. Returns False when no row matched.
    """
    result = await db.execute(
        update(ValidatedReport)
        .where(
            ValidatedReport.cert_no == cert_no,
            ValidatedReport.status == expected_status,
        )
        .values(
            status=status,
            approved_by=approved_by,
            approved_at=utcnow(),
            calibration_id=calibration_id,
            tolerance_errors=None,
            cmc_errors=None,
            requirements_errors=None,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def set_evaluation_calibration_id(
    db: AsyncSession, evaluation_id: int, calibration_id: str
) -> None:
    await db.execute(
        update(EvaluationReport)
        .where(EvaluationReport.id == evaluation_id)
        .values(calibration_id=calibration_id)
        .execution_options(synchronize_session=False)
    )


async def list_validations(
    db: AsyncSession,
    status: str | None = None,
    search: str | None = None,
    offset: int = 0,
    limit: int = 25,
) -> tuple[Sequence[ValidatedReport], int]:
    """Page of validation records, newest decision first, plus the total count."""
    conditions = []
    if status:
        conditions.append(ValidatedReport.status == status)
    if search:
        term = f"%{search}%"
        conditions.append(
            or_(
                ValidatedReport.cert_no.ilike(term),
                ValidatedReport.approved_by.ilike(term),
            )
        )

    count_result = await db.execute(
        select(func.count()).select_from(ValidatedReport).where(*conditions)
    )
    total = count_result.scalar_one()

    result = await db.execute(
        select(ValidatedReport)
        .where(*conditions)
        .order_by(ValidatedReport.approved_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return result.scalars().all(), total


async def list_validated_cert_nos(
    db: AsyncSession, status: str | None = None
) -> list[str]:
    query = select(ValidatedReport.cert_no)
    if status:
        query = query.where(ValidatedReport.status == status)
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_evaluations(
    db: AsyncSession,
    status: str | None = None,
    search: str | None = None,
    offset: int = 0,
    limit: int | None = 100,
) -> tuple[Sequence[EvaluationReport], int]:
    """Evaluation summaries, newest first. ``limit=None`` returns everything."""
    conditions = []
    if status:
        conditions.append(EvaluationReport.overall_status == status)
    if search:
        term = f"%{search}%"
        conditions.append(
            or_(
                EvaluationReport.cert_no.ilike(term),
                EvaluationReport.manufacturer.ilike(term),
                EvaluationReport.model.ilike(term),
                EvaluationReport.customer_name.ilike(term),
            )
        )

    count_result = await db.execute(
        select(func.count()).select_from(EvaluationReport).where(*conditions)
    )
    total = count_result.scalar_one()

    query = (
        select(EvaluationReport)
        .where(*conditions)
        .order_by(EvaluationReport.created_at.desc())
    )
    if limit is not None:
        query = query.offset(offset).limit(limit)
    result = await db.execute(query)
    return result.scalars().all(), total


async def list_evaluated_cert_nos(db: AsyncSession) -> list[str]:
    result = await db.execute(select(EvaluationReport.cert_no).distinct())
    return list(result.scalars().all())
