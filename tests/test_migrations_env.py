"""Tests for migrations/env_helpers.py DATABASE_URL conversion."""

from __future__ import annotations

import pytest

from migrations.env_helpers import get_database_url


class TestGetDatabaseUrl:
    def test_missing_raises(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(RuntimeError, match="DATABASE_URL"):
            get_database_url()

    def test_postgres_scheme_normalized(self, monkeypatch):
        monkeypatch.delenv("DB_PASSWORD", raising=False)
        monkeypatch.setenv("DATABASE_URL", "postgres://u:p@h:5432/db")
        assert get_database_url() == "postgresql+psycopg2://u:p@h:5432/db"

    def test_password_injected_into_url(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://u@h/db")
        monkeypatch.setenv("DB_PASSWORD", "from-env")
        assert get_database_url() == "postgresql+psycopg2://u:from-env@h/db"

    def test_url_password_wins(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@h/db")
        monkeypatch.setenv("DB_PASSWORD", "from-env")
        assert get_database_url() == "postgresql+psycopg2://u:p@h/db"

    def test_libpq_dsn_tcp(self, monkeypatch):
        monkeypatch.delenv("DB_PASSWORD", raising=False)
        monkeypatch.setenv("DATABASE_URL", "dbname=db user=u password=pw host=10.0.0.1 port=5433")
        assert get_database_url() == "postgresql+psycopg2://u:pw@10.0.0.1:5433/db"

    def test_libpq_dsn_password_from_env(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "dbname=db user=u host=h")
        monkeypatch.setenv("DB_PASSWORD", "from-env")
        assert get_database_url() == "postgresql+psycopg2://u:from-env@h/db"

    def test_libpq_dsn_unix_socket(self, monkeypatch):
        monkeypatch.delenv("DB_PASSWORD", raising=False)
        monkeypatch.setenv("DATABASE_URL", "dbname=db user=u password=pw host=/cloudsql/p:r:i")
        url = get_database_url()
        assert url.startswith("postgresql+psycopg2://u:pw@/db?host=")
        assert "cloudsql" in url
