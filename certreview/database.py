"""Engine, session factory and column types shared by the models."""

import ssl
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from certreview.config import settings

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")

# libpq-style query options asyncpg rejects as connect kwargs
_SSL_QUERY_KEYS = ("sslmode", "ssl")


def _supabase_ssl_context() -> ssl.SSLContext:
    """Encrypted but unverified; the Supabase pooler chain fails verification on some hosts."""
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


def resolve_database_url(database_url: str) -> tuple[str, dict[str, Any]]:
    """Split a configured URL into an asyncpg-safe URL and its connect_args."""
    url = make_url(database_url)
    connect_args: dict[str, Any] = {}
    if not any(key in url.query for key in _SSL_QUERY_KEYS):
        return database_url, connect_args
    url = url.difference_update_query(_SSL_QUERY_KEYS)
    if "supabase" in (url.host or ""):
        connect_args["ssl"] = _supabase_ssl_context()
    return url.render_as_string(hide_password=False), connect_args


def build_engine(database_url: str, **kwargs: Any) -> AsyncEngine:
    url, connect_args = resolve_database_url(database_url)
    return create_async_engine(url, connect_args=connect_args, **kwargs)


class Base(DeclarativeBase):
    pass


engine = build_engine(settings.database_url, echo=settings.log_level.upper() == "DEBUG")

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; commits on success, rolls back on error."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
