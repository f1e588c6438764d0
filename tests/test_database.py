"""Tests for database URL handling."""

import ssl

from certreview.database import resolve_database_url


def test_plain_url_untouched():
    url = "postgresql+asyncpg://app:pw@localhost:5432/certreview"
    assert resolve_database_url(url) == (url, {})


def test_sslmode_stripped_for_supabase():
    """asyncpg gets an SSL context instead of the libpq query option."""
    url, connect_args = resolve_database_url(
        "postgresql+asyncpg://app:pw@db.abc.supabase.co:5432/postgres?sslmode=require"
    )
    assert url == "postgresql+asyncpg://app:pw@db.abc.supabase.co:5432/postgres"
    assert isinstance(connect_args["ssl"], ssl.SSLContext)


def test_sslmode_stripped_elsewhere():
    url, connect_args = resolve_database_url(
        "postgresql+asyncpg://app:pw@db.internal/certreview?sslmode=disable&application_name=cr"
    )
    assert url == "postgresql+asyncpg://app:pw@db.internal/certreview?application_name=cr"
    assert connect_args == {}
