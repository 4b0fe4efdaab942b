"""Shared test helpers for the context service tests.

This module contains helpers that can be imported by both conftest.py and
individual test files. These are NOT fixtures - they are regular functions
and in-memory fakes of the external capabilities and the commitment store.
"""

from __future__ import annotations

import copy
import importlib
from contextlib import ExitStack, contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator
from unittest.mock import MagicMock, patch

from psycopg2 import errors as pg_errors

from friendo.domain.errors import CalendarFailure
from friendo.domain.models import CalendarEvent, CommitmentRecord
from friendo.whatsapp.models import WhatsAppMessage

PARTICIPANT = "9876543210"

_REPOSITORY_FUNCTIONS = (
    "insert_commitment",
    "get_commitment",
    "find_by_identity",
    "list_open_for_participant",
    "list_due_after",
    "update_commitment",
    "delete_commitment",
)


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def make_message(
    content: str = "I'll send the report tomorrow",
    *,
    participant_id: str = PARTICIPANT,
    sender_name: str = "Asha",
    from_me: bool = False,
    sent_at: datetime | None = None,
) -> WhatsAppMessage:
    return WhatsAppMessage(
        participant_id=participant_id,
        sender_name=sender_name,
        from_me=from_me,
        content=content,
        sent_at=sent_at or utc(2023, 10, 1, 9, 0),
    )


def make_record(
    record_id: int = 1,
    *,
    participant: str = PARTICIPANT,
    description: str = "send report",
    committed_at: datetime | None = None,
    to_be_completed_at: datetime | None = None,
    message_content: str = "I'll send the report tomorrow",
    calendar_event_id: str | None = "evt-existing",
) -> CommitmentRecord:
    return CommitmentRecord(
        id=record_id,
        participant=participant,
        committed_at=committed_at or utc(2023, 10, 1, 9, 0),
        description=description,
        to_be_completed_at=to_be_completed_at,
        message_content=message_content,
        calendar_event_id=calendar_event_id,
        created_at=utc(2023, 10, 1, 9, 1),
    )


class FakeCommitmentTable:
    """In-memory stand-in for the commitments table.

    Mirrors the repository functions' signatures, including the identity
    UNIQUE constraint (raises psycopg2's UniqueViolation). ``fail_with``
    makes every call raise the given database error.
    """

    def __init__(self, *records: CommitmentRecord) -> None:
        self.rows: dict[int, CommitmentRecord] = {r.id: r for r in records}
        self._next_id = max(self.rows, default=0) + 1
        self.fail_with: Exception | None = None
        self.bypass_identity_lookup = False

    def _check_failure(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def _identity_taken(self, record: CommitmentRecord) -> bool:
        return any(
            other.id != record.id
            and other.committed_at == record.committed_at
            and other.participant == record.participant
            and other.message_content == record.message_content
            for other in self.rows.values()
        )

    def insert_commitment(self, cur: Any, **fields: Any) -> CommitmentRecord:
        self._check_failure()
        record = CommitmentRecord(
            id=self._next_id,
            created_at=utc(2023, 10, 1, 9, 1),
            **fields,
        )
        if self._identity_taken(record):
            raise pg_errors.UniqueViolation("duplicate key value violates unique constraint")
        self.rows[record.id] = record
        self._next_id += 1
        return record

    def get_commitment(
        self,
        cur: Any,
        commitment_id: int,
        *,
        participant: str | None = None,
        for_update: bool = False,
    ) -> CommitmentRecord | None:
        self._check_failure()
        record = self.rows.get(commitment_id)
        if record is None or (participant is not None and record.participant != participant):
            return None
        return record

    def find_by_identity(
        self,
        cur: Any,
        *,
        committed_at: datetime,
        participant: str,
        message_content: str,
    ) -> CommitmentRecord | None:
        self._check_failure()
        if self.bypass_identity_lookup:
            return None
        for record in self.rows.values():
            if (
                record.committed_at == committed_at
                and record.participant == participant
                and record.message_content == message_content
            ):
                return record
        return None

    def list_open_for_participant(
        self, cur: Any, participant: str, now: datetime
    ) -> list[CommitmentRecord]:
        self._check_failure()
        return sorted(
            (
                r
                for r in self.rows.values()
                if r.participant == participant
                and r.to_be_completed_at is not None
                and r.to_be_completed_at > now
            ),
            key=lambda r: (r.to_be_completed_at, r.id),
        )

    def list_due_after(self, cur: Any, after: datetime) -> list[CommitmentRecord]:
        self._check_failure()
        return sorted(
            (
                r
                for r in self.rows.values()
                if r.to_be_completed_at is not None and r.to_be_completed_at > after
            ),
            key=lambda r: (r.to_be_completed_at, r.id),
        )

    def update_commitment(self, cur: Any, record: CommitmentRecord) -> bool:
        self._check_failure()
        if record.id not in self.rows:
            return False
        if self._identity_taken(record):
            raise pg_errors.UniqueViolation("duplicate key value violates unique constraint")
        self.rows[record.id] = record
        return True

    def delete_commitment(self, cur: Any, commitment_id: int) -> bool:
        self._check_failure()
        return self.rows.pop(commitment_id, None) is not None

    @contextmanager
    def txn(self) -> Iterator[MagicMock]:
        """Transaction over the table: rolled back when the block raises."""
        saved_rows = copy.copy(self.rows)
        saved_next_id = self._next_id
        try:
            yield MagicMock()
        except Exception:
            self.rows = saved_rows
            self._next_id = saved_next_id
            raise


@contextmanager
def patch_commitments_table(table: FakeCommitmentTable, *modules: str) -> Iterator[None]:
    """Route ``txn`` and the repository calls of ``modules`` to ``table``."""
    with ExitStack() as stack:
        for module_name in modules:
            module = importlib.import_module(module_name)
            stack.enter_context(
                patch.object(module, "txn", side_effect=lambda *a, **k: table.txn())
            )
            for name in _REPOSITORY_FUNCTIONS:
                if hasattr(module, name):
                    stack.enter_context(
                        patch.object(module, name, side_effect=getattr(table, name))
                    )
        yield


class FakeCalendar:
    """Calendar capability keeping events in a dict.

    ``fail_on`` names operations ("create", "update", "delete") that raise
    CalendarFailure.
    """

    def __init__(self, *, fail_on: tuple[str, ...] = ()) -> None:
        self.events: dict[str, CalendarEvent] = {}
        self.calls: list[tuple[str, str | None]] = []
        self.fail_on = fail_on
        self._counter = 0

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise CalendarFailure(f"calendar {operation} failed")

    def create_event(self, event: CalendarEvent) -> str:
        self.calls.append(("create", None))
        self._maybe_fail("create")
        self._counter += 1
        event_id = f"evt-{self._counter}"
        self.events[event_id] = event
        return event_id

    def update_event(self, event_id: str, event: CalendarEvent) -> str:
        self.calls.append(("update", event_id))
        self._maybe_fail("update")
        self.events[event_id] = event
        return event_id

    def delete_event(self, event_id: str) -> None:
        self.calls.append(("delete", event_id))
        self._maybe_fail("delete")
        self.events.pop(event_id, None)


class FakeCompletion:
    """Completion capability returning a canned answer (or raising it)."""

    def __init__(self, answer: dict[str, Any] | None | Exception) -> None:
        self.answer = answer
        self.prompts: list[str] = []

    def complete(self, prompt: str) -> dict[str, Any] | None:
        self.prompts.append(prompt)
        if isinstance(self.answer, Exception):
            raise self.answer
        return self.answer
