"""Phoenix vs local evaluation coverage."""

from collections.abc import Mapping, Sequence
from typing import Any


def compare_certificates(
    phoenix_certs: Sequence[Mapping[str, Any]],
    local_certs: Sequence[Mapping[str, Any]],
) -> dict[str, Any]:
    """
    Split certificates into matched (in both), current (Phoenix only, not yet
    evaluated) and historical (evaluated, no longer listed by Phoenix).
    """
    phoenix_cert_nos = {cert.get("CertNo") for cert in phoenix_certs}
    local_cert_nos = {cert.get("cert_no") for cert in local_certs}

    matched = [cert for cert in phoenix_certs if cert.get("CertNo") in local_cert_nos]
    current = [cert for cert in phoenix_certs if cert.get("CertNo") not in local_cert_nos]
    historical = [cert for cert in local_certs if cert.get("cert_no") not in phoenix_cert_nos]

    return {
        "total": {
            "phoenix": len(phoenix_certs),
            "supabase": len(local_certs),
            "current": len(current),
            "historical": len(historical),
            "matched": len(matched),
        },
        "current": current,
        "historical": historical,
        "matched": matched,
    }


def calculate_processing_coverage(
    phoenix_certs: Sequence[Mapping[str, Any]],
    local_certs: Sequence[Mapping[str, Any]],
) -> dict[str, Any]:
    totals = compare_certificates(phoenix_certs, local_certs)["total"]
    return {
        "totalPhoenix": totals["phoenix"],
        "totalSupabase": totals["supabase"],
        "matching": totals["matched"],
        "pendingProcessing": totals["current"],
        "processingRate": (
            totals["matched"] / totals["phoenix"] * 100 if totals["phoenix"] > 0 else 0
        ),
    }
