"""Tests for CalibrationId resolution."""

import pytest

from certreview.engine.calibration_id import find_calibration_id, resolve_calibration_id
from certreview.models import STATUS_REJECTED, EvaluationReport, ValidatedReport
from tests.conftest import FakePhoenix, utc


@pytest.mark.parametrize(
    "record,expected",
    [
        ({"CalibrationId": "A"}, "A"),
        ({"CalibrationID": "B"}, "B"),
        ({"calibrationId": "C"}, "C"),
        ({"CalibrationGuid": "D"}, "D"),
        ({"CalibrationGUID": "E"}, "E"),
        ({"calibration_id": "F"}, "F"),
        ({"CalibrationId": "  ", "CalibrationGuid": "G"}, "G"),
        ({"CalibrationId": 42}, "42"),
        ({"Id": "not-an-alias"}, None),
        ({}, None),
        (None, None),
        ("CalibrationId", None),
    ],
)
def test_find_calibration_id(record, expected):
    """Aliases are checked in order and blanks are skipped."""
    assert find_calibration_id(record) == expected


async def test_explicit_value_wins():
    """Caller-supplied id beats every stored one and Phoenix is not asked."""
    phoenix = FakePhoenix()
    phoenix.details["CAL-1"] = {"CalibrationId": "P"}
    evaluation = EvaluationReport(cert_no="CAL-1", created_at=utc(2024, 1, 1), calibration_id="E")
    validation = ValidatedReport(
        cert_no="CAL-1", status=STATUS_REJECTED, approved_by="a@x", approved_at=utc(2024, 1, 1),
        calibration_id="V",
    )
    resolved = await resolve_calibration_id("CAL-1", " X ", evaluation, validation, phoenix)
    assert resolved == ("X", "request")
    assert phoenix.detail_calls == []


async def test_falls_through_blank_sources():
    """Blank explicit and evaluation values fall through to the validation record."""
    phoenix = FakePhoenix()
    evaluation = EvaluationReport(cert_no="CAL-1", created_at=utc(2024, 1, 1), calibration_id="")
    validation = ValidatedReport(
        cert_no="CAL-1", status=STATUS_REJECTED, approved_by="a@x", approved_at=utc(2024, 1, 1),
        calibration_id="V",
    )
    resolved = await resolve_calibration_id("CAL-1", "   ", evaluation, validation, phoenix)
    assert resolved.value == "V"
    assert resolved.source == "validation"


async def test_phoenix_details_last():
    """Phoenix details are consulted only when nothing local is set."""
    phoenix = FakePhoenix()
    phoenix.details["CAL-1"] = {"CalibrationGuid": "G-1"}
    resolved = await resolve_calibration_id("CAL-1", None, None, None, phoenix)
    assert resolved == ("G-1", "phoenix")
    assert phoenix.detail_calls == ["CAL-1"]


async def test_unresolvable():
    """None when no source has a value."""
    resolved = await resolve_calibration_id("CAL-1", None, None, None, FakePhoenix())
    assert resolved is None
