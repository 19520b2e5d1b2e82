"""Tests for migrations/env_helpers.py DSN-to-URL conversion."""

from __future__ import annotations

import os
import sys
from unittest.mock import patch

import pytest

# Make migrations importable without an Alembic context
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from migrations.env_helpers import dsn_to_url, get_database_url, parse_libpq_dsn  # noqa: E402


class TestParseLibpqDsn:
    def test_plain_pairs(self):
        assert parse_libpq_dsn("dbname=bedbook user=app host=db") == {
            "dbname": "bedbook",
            "user": "app",
            "host": "db",
        }

    def test_quoted_value_with_spaces(self):
        assert parse_libpq_dsn("password='p@ss w0rd' host=h")["password"] == "p@ss w0rd"

    def test_escaped_quote(self):
        assert parse_libpq_dsn(r"password='it\'s' host=h")["password"] == "it's"


class TestDsnToUrl:
    def test_unix_socket(self, monkeypatch):
        monkeypatch.delenv("DB_PASSWORD", raising=False)
        dsn = "dbname=bedbook user=app password=s3cret host=/var/run/postgresql"
        assert dsn_to_url(dsn) == (
            "postgresql+psycopg2://app:s3cret@/bedbook?host=%2Fvar%2Frun%2Fpostgresql"
        )

    def test_tcp_host(self):
        dsn = "dbname=bedbook user=admin password=pw host=localhost port=5432"
        assert dsn_to_url(dsn) == "postgresql+psycopg2://admin:pw@localhost:5432/bedbook"

    def test_default_port(self):
        dsn = "dbname=db user=u password=p host=myhost"
        assert dsn_to_url(dsn) == "postgresql+psycopg2://u:p@myhost:5432/db"

    def test_special_chars_encoded(self):
        dsn = "dbname=db user=u@domain password=p@ss=word host=h port=5432"
        result = dsn_to_url(dsn)
        assert "u%40domain" in result
        assert "p%40ss%3Dword" in result

    def test_db_password_env_fallback(self, monkeypatch):
        monkeypatch.setenv("DB_PASSWORD", "from-env")
        assert "from-env" in dsn_to_url("dbname=db user=u host=h port=5432")

    def test_db_password_env_not_used_when_dsn_has_password(self, monkeypatch):
        monkeypatch.setenv("DB_PASSWORD", "from-env")
        result = dsn_to_url("dbname=db user=u password=from-dsn host=h port=5432")
        assert "from-dsn" in result
        assert "from-env" not in result


class TestGetDatabaseUrl:
    def test_url_passthrough(self):
        with patch.dict(os.environ, {"DATABASE_URL": "postgresql+psycopg2://u:p@h/db"}, clear=True):
            assert get_database_url() == "postgresql+psycopg2://u:p@h/db"

    def test_dsn_converted(self):
        with patch.dict(os.environ, {"DATABASE_URL": "dbname=bedbook user=u password=p host=h"}, clear=True):
            assert get_database_url() == "postgresql+psycopg2://u:p@h:5432/bedbook"

    def test_missing_raises(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(RuntimeError, match="DATABASE_URL is required"):
                get_database_url()

    def test_postgres_scheme_normalized(self):
        with patch.dict(os.environ, {"DATABASE_URL": "postgres://u:p@h/db"}, clear=True):
            assert get_database_url() == "postgresql+psycopg2://u:p@h/db"

    def test_postgresql_scheme_gets_driver(self):
        with patch.dict(os.environ, {"DATABASE_URL": "postgresql://u:p@h/db"}, clear=True):
            assert get_database_url().startswith("postgresql+psycopg2://")

    def test_url_db_password_fallback(self):
        env = {"DATABASE_URL": "postgresql://u@h:5433/db", "DB_PASSWORD": "secret"}
        with patch.dict(os.environ, env, clear=True):
            assert get_database_url() == "postgresql+psycopg2://u:secret@h:5433/db"

    def test_already_has_driver_not_doubled(self):
        with patch.dict(os.environ, {"DATABASE_URL": "postgresql+psycopg2://u:p@h/db"}, clear=True):
            assert get_database_url().count("+psycopg2") == 1
