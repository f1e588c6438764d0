"""Resolution of the Phoenix calibration identifier for a certificate."""

from collections.abc import Mapping
from typing import Any, NamedTuple

from certreview.models import EvaluationReport, ValidatedReport
from certreview.phoenix.client import PhoenixClient

# Legacy field names Phoenix has used for the same identifier, in lookup order
CALIBRATION_ID_ALIASES = (
    "CalibrationId",
    "CalibrationID",
    "calibrationId",
    "CalibrationGuid",
    "CalibrationGUID",
    "calibration_id",
)


class ResolvedCalibrationId(NamedTuple):
    value: str
    source: str  # request|evaluation|validation|phoenix


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def find_calibration_id(
    record: Any, aliases: tuple[str, ...] = CALIBRATION_ID_ALIASES
) -> str | None:
    """First non-blank value among the alias keys of a mapping."""
    if not isinstance(record, Mapping):
        return None
    for key in aliases:
        value = _clean(record.get(key))
        if value:
            return value
    return None


async def resolve_calibration_id(
    cert_no: str,
    explicit: str | None,
    evaluation: EvaluationReport | None,
    validation: ValidatedReport | None,
    phoenix: PhoenixClient,
) -> ResolvedCalibrationId | None:
    """
    Try each source in priority order and stop at the first non-blank value:
    caller-supplied, latest evaluation, validation record, Phoenix details.
    """
    local_sources = (
        ("request", explicit),
        ("evaluation", evaluation.calibration_id if evaluation else None),
        ("validation", validation.calibration_id if validation else None),
    )
    for source, value in local_sources:
        cleaned = _clean(value)
        if cleaned:
            return ResolvedCalibrationId(cleaned, source)

    details = await phoenix.get_certificate_details(cert_no)
    value = find_calibration_id(details)
    if value:
        return ResolvedCalibrationId(value, "phoenix")
    return None
