"""Initial schema (SQL-only).

Inventory (areas, buildings, rooms, beds), booking requests with
attachments, occupants with the bed overlap exclusion constraint, and the
occupant history log.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from pathlib import Path

from alembic import op

revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

_SQL_FILE = Path(__file__).resolve().parents[1] / "sql" / "001_initial.sql"

_TABLES = (
    "occupant_logs",
    "occupants",
    "booking_attachments",
    "bookings",
    "beds",
    "rooms",
    "buildings",
    "areas",
)


def upgrade() -> None:
    # exec_driver_sql sends the file as one statement batch
    conn = op.get_bind()
    conn.exec_driver_sql(_SQL_FILE.read_text(encoding="utf-8"))


def downgrade() -> None:
    for table in _TABLES:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
