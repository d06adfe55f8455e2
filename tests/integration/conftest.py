"""Integration test fixtures.

Applies the family roster migrations against an ephemeral PostgreSQL
database provided by pytest-postgresql before any integration test runs.
"""

from __future__ import annotations

from pathlib import Path

import psycopg
import pytest
from pytest_postgresql import factories

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).parent.parent.parent
MIGRATIONS = [
    PROJECT_ROOT / "migrations" / "0001_family_core.sql",
]

# ---------------------------------------------------------------------------
# pytest-postgresql process fixture
# ---------------------------------------------------------------------------

postgresql_proc = factories.postgresql_proc()
postgresql = factories.postgresql("postgresql_proc")


# ---------------------------------------------------------------------------
# Schema fixture: applies all migrations once per test
# ---------------------------------------------------------------------------

@pytest.fixture(scope="function")
def db_conn(postgresql):
    """Return a psycopg connection with schema applied.

    Each test gets a fresh schema via function scope so tests are isolated.
    """
    dsn = (
        f"host={postgresql.info.host} "
        f"port={postgresql.info.port} "
        f"dbname={postgresql.info.dbname} "
        f"user={postgresql.info.user} "
        f"password={postgresql.info.password or ''}"
    )
    conn = psycopg.connect(dsn, autocommit=True)
    try:
        for migration in MIGRATIONS:
            sql = migration.read_text(encoding="utf-8")
            conn.execute(sql)
        conn.autocommit = False
        yield conn, dsn
    finally:
        conn.close()


@pytest.fixture
def programs(db_conn) -> dict[str, int]:
    """Seed a small program catalog; returns display_name -> id."""
    conn, _ = db_conn
    ids: dict[str, int] = {}
    for category, name, archived in (
        ("gymnastics", "Tumbling", False),
        ("gymnastics", "Artistic", False),
        ("ninja", "Ninja Zone", False),
        ("cheer", "Retired Cheer", True),
    ):
        row = conn.execute(
            "INSERT INTO program (category, display_name, archived) VALUES (%s, %s, %s) RETURNING id",
            (category, name, archived),
        ).fetchone()
        ids[name] = row[0]
    conn.commit()
    return ids
