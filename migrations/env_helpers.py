"""Database URL helpers for Alembic migrations.

Kept apart from env.py so they can be tested without alembic.context.
DATABASE_URL may be a URL or a libpq key=value DSN (the same value the
service itself connects with); DB_PASSWORD fills in a missing password.
"""

from __future__ import annotations

import os

from psycopg2.extensions import parse_dsn
from sqlalchemy.engine import URL, make_url

DRIVERNAME = "postgresql+psycopg2"


def _from_url(raw: str, password: str | None) -> URL:
    if raw.startswith("postgres://"):
        raw = "postgresql://" + raw[len("postgres://"):]
    url = make_url(raw).set(drivername=DRIVERNAME)
    if password and not url.password:
        url = url.set(password=password)
    return url


def _from_libpq_dsn(dsn: str, password: str | None) -> URL:
    tokens = parse_dsn(dsn)
    host = tokens.get("host", "localhost")
    query = {}
    if host.startswith("/"):
        # Unix socket directory goes in the query string
        query["host"] = host
        host = None
    return URL.create(
        DRIVERNAME,
        username=tokens.get("user"),
        password=tokens.get("password") or password or None,
        host=host,
        port=int(tokens["port"]) if tokens.get("port") else None,
        database=tokens.get("dbname"),
        query=query,
    )


def get_database_url() -> str:
    """SQLAlchemy URL (password included) for DATABASE_URL.

    Raises:
        RuntimeError: If DATABASE_URL is not set.
    """
    raw = os.environ.get("DATABASE_URL")
    if not raw:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    password = os.environ.get("DB_PASSWORD") or None
    url = _from_url(raw, password) if "://" in raw else _from_libpq_dsn(raw, password)
    return url.render_as_string(hide_password=False)
