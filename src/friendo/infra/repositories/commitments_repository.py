"""Commitments repository - persistence for commitment records.

Uses raw SQL with psycopg2 (no ORM). Identity key:
UNIQUE (committed_at, participant, message_content) - see migration 001.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from friendo.domain.models import CommitmentRecord

_COLUMNS = """
    id, participant, committed_at, description, to_be_completed_at,
    message_content, calendar_event_id, created_at
"""


def _row_to_record(row: tuple[Any, ...]) -> CommitmentRecord:
    return CommitmentRecord(
        id=row[0],
        participant=row[1],
        committed_at=row[2],
        description=row[3],
        to_be_completed_at=row[4],
        message_content=row[5],
        calendar_event_id=row[6],
        created_at=row[7],
    )


def insert_commitment(
    cur: PgCursor,
    *,
    participant: str,
    committed_at: datetime,
    description: str,
    to_be_completed_at: datetime | None,
    message_content: str,
    calendar_event_id: str | None,
) -> CommitmentRecord:
    """Insert a commitment and return the stored row.

    Raises:
        psycopg2.errors.UniqueViolation: If the identity key already exists.
    """
    cur.execute(
        f"""
        INSERT INTO commitments (
            participant, committed_at, description, to_be_completed_at,
            message_content, calendar_event_id
        )
        VALUES (%s, %s, %s, %s, %s, %s)
        RETURNING {_COLUMNS}
        """,
        (
            participant,
            committed_at,
            description,
            to_be_completed_at,
            message_content,
            calendar_event_id,
        ),
    )
    return _row_to_record(cur.fetchone())


def get_commitment(
    cur: PgCursor,
    commitment_id: int,
    *,
    participant: str | None = None,
    for_update: bool = False,
) -> CommitmentRecord | None:
    """Fetch a commitment by id, optionally scoped to one participant.

    Args:
        cur: Database cursor.
        commitment_id: Commitment id.
        participant: When given, rows of other participants are not returned.
        for_update: Lock the row until the transaction ends.

    Returns:
        The record, or None if not found.
    """
    query = f"""
        SELECT {_COLUMNS}
        FROM commitments
        WHERE id = %s
          AND (%s::text IS NULL OR participant = %s)
    """
    if for_update:
        query += " FOR UPDATE"
    cur.execute(query, (commitment_id, participant, participant))
    row = cur.fetchone()
    return _row_to_record(row) if row is not None else None


def find_by_identity(
    cur: PgCursor,
    *,
    committed_at: datetime,
    participant: str,
    message_content: str,
) -> CommitmentRecord | None:
    """Fetch the commitment holding the given identity key, if any."""
    cur.execute(
        f"""
        SELECT {_COLUMNS}
        FROM commitments
        WHERE committed_at = %s AND participant = %s AND message_content = %s
        """,
        (committed_at, participant, message_content),
    )
    row = cur.fetchone()
    return _row_to_record(row) if row is not None else None


def list_open_for_participant(
    cur: PgCursor,
    participant: str,
    now: datetime,
) -> list[CommitmentRecord]:
    """Commitments of ``participant`` due strictly after ``now``, soonest first."""
    cur.execute(
        f"""
        SELECT {_COLUMNS}
        FROM commitments
        WHERE participant = %s AND to_be_completed_at > %s
        ORDER BY to_be_completed_at, id
        """,
        (participant, now),
    )
    return [_row_to_record(row) for row in cur.fetchall()]


def list_due_after(cur: PgCursor, after: datetime) -> list[CommitmentRecord]:
    """All commitments due strictly after ``after``, soonest first."""
    cur.execute(
        f"""
        SELECT {_COLUMNS}
        FROM commitments
        WHERE to_be_completed_at > %s
        ORDER BY to_be_completed_at, id
        """,
        (after,),
    )
    return [_row_to_record(row) for row in cur.fetchall()]


def update_commitment(cur: PgCursor, record: CommitmentRecord) -> bool:
    """Write the mutable fields of ``record``.

    Returns:
        True if a row was updated, False if the id no longer exists.

    Raises:
        psycopg2.errors.UniqueViolation: If the new values collide with
            another commitment's identity key.
    """
    cur.execute(
        """
        UPDATE commitments
        SET committed_at = %s,
            description = %s,
            to_be_completed_at = %s,
            calendar_event_id = %s
        WHERE id = %s
        """,
        (
            record.committed_at,
            record.description,
            record.to_be_completed_at,
            record.calendar_event_id,
            record.id,
        ),
    )
    return cur.rowcount > 0


def delete_commitment(cur: PgCursor, commitment_id: int) -> bool:
    """Delete a commitment. Returns True if a row was deleted."""
    cur.execute("DELETE FROM commitments WHERE id = %s", (commitment_id,))
    return cur.rowcount > 0
