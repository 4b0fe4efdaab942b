"""Create commitments table.

Revision ID: 001_commitments
Revises:
Create Date: 2026-10-17
"""
from __future__ import annotations

from alembic import op

revision = "001_commitments"
down_revision = None
branch_labels = None
depends_on = None

UPGRADE_SQL = """
CREATE TABLE commitments (
    id                  BIGSERIAL PRIMARY KEY,
    participant         TEXT NOT NULL,
    committed_at        TIMESTAMPTZ NOT NULL,
    description         VARCHAR(1000) NOT NULL,
    to_be_completed_at  TIMESTAMPTZ NULL,
    message_content     VARCHAR(2000) NOT NULL,
    calendar_event_id   TEXT NULL,
    created_at          TIMESTAMPTZ NOT NULL DEFAULT now(),
    CONSTRAINT uq_commitments_identity
        UNIQUE (committed_at, participant, message_content)
);

CREATE INDEX ix_commitments_participant_due
    ON commitments (participant, to_be_completed_at);

CREATE INDEX ix_commitments_due
    ON commitments (to_be_completed_at);
"""


def upgrade() -> None:
    conn = op.get_bind()
    conn.exec_driver_sql(UPGRADE_SQL)


def downgrade() -> None:
    conn = op.get_bind()
    conn.exec_driver_sql("DROP TABLE IF EXISTS commitments;")
