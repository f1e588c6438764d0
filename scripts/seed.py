#!/usr/bin/env python3
"""
Seed script: inserts demo evaluation reports and prints a reviewer session token.
Run after migrations: python scripts/seed.py [reviewer-email]
"""

import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from certreview.auth.session import issue_session_token
from certreview.database import async_session_maker
from certreview.models import EvaluationReport

DEMO_REPORTS = [
    {
        "cert_no": "CAL-001",
        "overall_status": "PASS",
        "tolerance_pass": "PASS",
        "requirements_pass": True,
        "cmc_pass": True,
        "openai_summary": "All measurements within tolerance; CMC and requirements satisfied.",
        "manufacturer": "Fluke",
        "model": "87V",
        "equipment_type": "Digital Multimeter",
        "customer_name": "Demo Customer",
        "calibrated_by": "tech@example.com",
        "calibration_id": "C-9",
    },
    {
        "cert_no": "CAL-002",
        "overall_status": "FAIL",
        "tolerance_pass": "CANNOT_VERIFY",
        "requirements_pass": True,
        "cmc_pass": False,
        "openai_summary": "Tolerance could not be verified for the 10 V range.",
        "manufacturer": "Keysight",
        "model": "34465A",
        "equipment_type": "Digital Multimeter",
        "customer_name": "Demo Customer",
        "calibrated_by": "tech@example.com",
        "calibration_id": None,
    },
]


async def seed(reviewer_email: str):
    now = datetime.now(timezone.utc)
    async with async_session_maker() as session:
        for offset, data in enumerate(DEMO_REPORTS):
            result = await session.execute(
                select(EvaluationReport.id).where(EvaluationReport.cert_no == data["cert_no"])
            )
            if result.first():
                print(f"{data['cert_no']} already seeded, skipping.")
                continue
            session.add(
                EvaluationReport(
                    created_at=now - timedelta(hours=offset),
                    json_data={"cert_no": data["cert_no"], "summary": data["openai_summary"]},
                    **data,
                )
            )
        await session.commit()

    print("Seed complete!")
    token = issue_session_token(reviewer_email, name="Demo Reviewer")
    print(f"Reviewer: {reviewer_email}")
    print(f"Use: Authorization: Bearer {token}")
    print("Example: curl -X POST http://localhost:8000/validation/approve \\")
    print('  -H "Authorization: Bearer ' + token + '" \\')
    print('  -H "Content-Type: application/json" \\')
    print('  -d \'{"cert_no":"CAL-001","revision_comment":"looks good"}\'')


if __name__ == "__main__":
    asyncio.run(seed(sys.argv[1] if len(sys.argv) > 1 else "reviewer@example.com"))
