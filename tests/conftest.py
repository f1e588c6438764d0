"""Shared fixtures: SQLite-backed sessions, a fake Phoenix, and an HTTP client."""

from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from certreview.auth.session import issue_session_token
from certreview.config import Settings
from certreview.database import Base, get_db
from certreview.main import app
from certreview.models import EvaluationReport, ValidatedReport
from certreview.notifications.webhook import WebhookNotifier, get_webhook_notifier
from certreview.phoenix.client import get_phoenix_client

REVIEWER = "reviewer@example.com"


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class FakePhoenix:
    """Records calls; optionally fails approvals or detail lookups."""

    def __init__(self):
        self.details: dict[str, dict] = {}
        self.certificates: list[dict] = []
        self.approve_error: Exception | None = None
        self.details_error: Exception | None = None
        self.list_error: Exception | None = None
        self.approve_calls: list[dict] = []
        self.detail_calls: list[str] = []
        # awaited while an approval is "in flight" at Phoenix
        self.on_approve = None

    async def get_certificate_details(self, cert_no):
        self.detail_calls.append(cert_no)
        if self.details_error:
            raise self.details_error
        return self.details.get(cert_no, {})

    async def get_all_certificates(self):
        if self.list_error:
            raise self.list_error
        return self.certificates

    async def approve_calibration(
        self, calibration_id, revision_comment, justification_comment=None, ai_analysis=None
    ):
        self.approve_calls.append(
            {
                "calibration_id": calibration_id,
                "revision_comment": revision_comment,
                "justification_comment": justification_comment,
                "ai_analysis": ai_analysis,
            }
        )
        if self.on_approve:
            await self.on_approve(calibration_id)
        if self.approve_error:
            raise self.approve_error


@pytest.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    await engine.dispose()


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def phoenix():
    return FakePhoenix()


@pytest.fixture
def notifier():
    return WebhookNotifier(Settings(webhook_enabled=False))


@pytest.fixture
async def seed(session_maker):
    """Insert rows through a separate session, like the evaluation pipeline would."""

    async def _seed(*rows):
        async with session_maker() as session:
            session.add_all(rows)
            await session.commit()

    return _seed


def evaluation(cert_no, created_at, **kwargs) -> EvaluationReport:
    return EvaluationReport(cert_no=cert_no, created_at=created_at, **kwargs)


def validation(cert_no, status, approved_at, **kwargs) -> ValidatedReport:
    kwargs.setdefault("approved_by", "first@example.com")
    return ValidatedReport(cert_no=cert_no, status=status, approved_at=approved_at, **kwargs)


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {issue_session_token(REVIEWER)}"}


@pytest.fixture
async def client(session_maker, phoenix, notifier):
    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_phoenix_client] = lambda: phoenix
    app.dependency_overrides[get_webhook_notifier] = lambda: notifier
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
