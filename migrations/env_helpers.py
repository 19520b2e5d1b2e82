"""Database URL helpers for Alembic migrations.

The application connects with psycopg2, which accepts both URLs and libpq
``key=value`` DSNs in DATABASE_URL. SQLAlchemy (used by Alembic) only takes
URLs, so DSNs are converted here. Kept apart from env.py so they can be
tested without an Alembic context.
"""

from __future__ import annotations

import os
import re
from urllib.parse import quote_plus, urlparse, urlunparse

SQLALCHEMY_SCHEME = "postgresql+psycopg2://"

_DSN_TOKEN = re.compile(r"(\w+)=('(?:\\.|[^'\\])*'|\S*)")
_ESCAPE = re.compile(r"\\(.)")


def parse_libpq_dsn(dsn: str) -> dict[str, str]:
    """Parse a libpq DSN into a dict; single-quoted values may hold spaces and escapes."""
    tokens: dict[str, str] = {}
    for key, raw in _DSN_TOKEN.findall(dsn):
        if raw.startswith("'") and raw.endswith("'") and len(raw) >= 2:
            raw = _ESCAPE.sub(r"\1", raw[1:-1])
        tokens[key] = raw
    return tokens


def dsn_to_url(dsn: str) -> str:
    """Convert a libpq DSN to a SQLAlchemy URL.

    A host starting with ``/`` is a unix socket directory and travels as the
    ``host`` query parameter. DB_PASSWORD fills in a missing password.
    """
    tokens = parse_libpq_dsn(dsn)
    password = tokens.get("password") or os.environ.get("DB_PASSWORD", "")

    user = quote_plus(tokens.get("user", ""))
    credentials = f"{user}:{quote_plus(password)}"
    dbname = quote_plus(tokens.get("dbname", ""))
    host = tokens.get("host", "localhost")

    if host.startswith("/"):
        return f"{SQLALCHEMY_SCHEME}{credentials}@/{dbname}?host={quote_plus(host)}"

    port = tokens.get("port", "5432")
    return f"{SQLALCHEMY_SCHEME}{credentials}@{host}:{port}/{dbname}"


def _with_password(url: str, password: str) -> str:
    parsed = urlparse(url)
    if parsed.password:
        return url
    netloc = f"{quote_plus(parsed.username or '')}:{quote_plus(password)}@{parsed.hostname}"
    if parsed.port:
        netloc += f":{parsed.port}"
    return urlunparse(parsed._replace(netloc=netloc))


def get_database_url() -> str:
    """SQLAlchemy URL for DATABASE_URL, in either URL or DSN form."""
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    if "://" not in url:
        return dsn_to_url(url)

    scheme, rest = url.split("://", 1)
    if scheme in ("postgres", "postgresql"):
        url = SQLALCHEMY_SCHEME + rest

    db_password = os.environ.get("DB_PASSWORD", "")
    if db_password:
        url = _with_password(url, db_password)
    return url
