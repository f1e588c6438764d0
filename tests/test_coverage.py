"""Unit tests for Phoenix vs local coverage."""

from certreview.engine.coverage import calculate_processing_coverage, compare_certificates

PHOENIX = [{"CertNo": "A"}, {"CertNo": "B"}, {"CertNo": "C"}]
LOCAL = [{"cert_no": "B"}, {"cert_no": "C"}, {"cert_no": "OLD"}]


def test_compare_splits_sets():
    """Matched, current and historical are disjoint views."""
    result = compare_certificates(PHOENIX, LOCAL)
    assert [c["CertNo"] for c in result["matched"]] == ["B", "C"]
    assert [c["CertNo"] for c in result["current"]] == ["A"]
    assert [c["cert_no"] for c in result["historical"]] == ["OLD"]
    assert result["total"] == {
        "phoenix": 3,
        "supabase": 3,
        "current": 1,
        "historical": 1,
        "matched": 2,
    }


def test_processing_coverage():
    """Rate is matched over Phoenix total, in percent."""
    coverage = calculate_processing_coverage(PHOENIX, LOCAL)
    assert coverage["matching"] == 2
    assert coverage["pendingProcessing"] == 1
    assert abs(coverage["processingRate"] - 66.666) < 0.01


def test_processing_coverage_empty_phoenix():
    """No division by zero."""
    coverage = calculate_processing_coverage([], LOCAL)
    assert coverage["processingRate"] == 0
    assert coverage["totalSupabase"] == 3
