"""Commitment action state machine.

A commitment either exists in the store or it does not; there is no status
column. Transitions:

- CREATE: calendar event first, then the row carrying its event id.
- CHANGE: row updated and calendar event updated inside one transaction;
  a calendar failure rolls the row change back. If the row update fails
  after the calendar write, a newly created event is deleted again and an
  updated one is reported as ``calendar_diverged_event_id``.
- CANCEL: calendar event deleted, then the row, inside one transaction;
  a calendar failure leaves the row in place for a retry.

Calendar and store are never covered by one transaction. Consistency comes
from the call order above. Known gap: if the INSERT of a CREATE fails for a
reason other than a duplicate, the calendar event stays behind; its id is
reported as ``orphan_calendar_event_id`` in the wide event.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from typing import Iterator, Protocol

import psycopg2
from psycopg2 import errors as pg_errors

from friendo.infra.db import txn
from friendo.infra.repositories.commitments_repository import (
    delete_commitment,
    find_by_identity,
    get_commitment,
    insert_commitment,
    update_commitment,
)
from friendo.infra.time import ensure_utc
from friendo.observability.commitment_context import enrich_commitment
from friendo.observability.logging import get_logger
from friendo.observability.redaction import safe_log_context
from friendo.whatsapp.models import WhatsAppMessage

from .errors import (
    CalendarFailure,
    CommitmentNotFound,
    DuplicateCommitment,
    MissingActionId,
    PersistenceFailure,
)
from .models import ActionType, CalendarEvent, Commitment, CommitmentAction, CommitmentRecord

logger = get_logger(__name__)


class CalendarCapability(Protocol):
    """Calendar operations the router depends on."""

    def create_event(self, event: CalendarEvent) -> str: ...

    def update_event(self, event_id: str, event: CalendarEvent) -> str: ...

    def delete_event(self, event_id: str) -> None: ...


def participant_display_name(message: WhatsAppMessage) -> str:
    """Name of the other party, for calendar descriptions."""
    if message.from_me or not message.sender_name:
        return message.participant_id
    return message.sender_name


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Translate database errors raised in the block into domain errors."""
    try:
        yield
    except pg_errors.UniqueViolation as exc:
        raise DuplicateCommitment(f"{operation} collides with an existing commitment") from exc
    except psycopg2.Error as exc:
        logger.error(
            "commitment store failure",
            extra={
                "extra_fields": safe_log_context(
                    operation=operation,
                    error_type=type(exc).__name__,
                )
            },
        )
        raise PersistenceFailure(f"{operation} failed in the commitment store") from exc


class ActionRouter:
    """Applies CREATE / CHANGE / CANCEL to the store and the calendar."""

    def __init__(self, calendar: CalendarCapability) -> None:
        self._calendar = calendar

    def route(self, action: CommitmentAction, message: WhatsAppMessage) -> CommitmentRecord:
        """Apply ``action`` for the participant of ``message``.

        Returns:
            The created, updated or deleted record.

        Raises:
            MissingActionId, CommitmentNotFound, DuplicateCommitment:
                Domain failures; nothing was persisted.
            CalendarFailure, PersistenceFailure: Infrastructure failures.
        """
        if action.type is ActionType.CREATE:
            return self.create(message, action.commitment)
        if action.type is ActionType.CHANGE:
            return self.change(message, action)
        return self.cancel(message, action)

    def create(self, message: WhatsAppMessage, commitment: Commitment) -> CommitmentRecord:
        committed_at = ensure_utc(commitment.committed_at)

        with _store_errors("duplicate check"):
            with txn() as cur:
                existing = find_by_identity(
                    cur,
                    committed_at=committed_at,
                    participant=message.participant_id,
                    message_content=message.content,
                )
        if existing is not None:
            enrich_commitment(commitment_id=existing.id)
            raise DuplicateCommitment(f"commitment {existing.id} already recorded for this message")

        event = CalendarEvent.from_commitment(commitment, participant_display_name(message))
        event_id = self._calendar.create_event(event)
        enrich_commitment(calendar_event_id=event_id)

        try:
            with txn() as cur:
                record = insert_commitment(
                    cur,
                    participant=message.participant_id,
                    committed_at=committed_at,
                    description=commitment.description,
                    to_be_completed_at=commitment.to_be_completed_at,
                    message_content=message.content,
                    calendar_event_id=event_id,
                )
        except pg_errors.UniqueViolation as exc:
            self._compensate_created_event(event_id)
            raise DuplicateCommitment("a concurrent cycle stored this commitment first") from exc
        except psycopg2.Error as exc:
            enrich_commitment(orphan_calendar_event_id=event_id)
            logger.error(
                "commitment insert failed after calendar event was created",
                extra={
                    "extra_fields": safe_log_context(
                        event_id=event_id,
                        error_type=type(exc).__name__,
                    )
                },
            )
            raise PersistenceFailure("failed to store commitment") from exc

        enrich_commitment(commitment_id=record.id, calendar_event_id=event_id, success=True)
        return record

    def change(self, message: WhatsAppMessage, action: CommitmentAction) -> CommitmentRecord:
        commitment_id = self._require_id(action)
        event = CalendarEvent.from_commitment(action.commitment, participant_display_name(message))

        with _store_errors("change"):
            with txn() as cur:
                record = get_commitment(
                    cur,
                    commitment_id,
                    participant=message.participant_id,
                    for_update=True,
                )
                if record is None:
                    raise CommitmentNotFound(commitment_id)

                if record.calendar_event_id is None:
                    new_event_id = self._calendar.create_event(event)
                else:
                    new_event_id = self._calendar.update_event(record.calendar_event_id, event)

                updated = replace(
                    record.with_commitment(action.commitment),
                    calendar_event_id=new_event_id,
                )
                try:
                    stored = update_commitment(cur, updated)
                except psycopg2.Error:
                    self._report_unstored_change(record, new_event_id)
                    raise
                if not stored:
                    self._report_unstored_change(record, new_event_id)
                    raise CommitmentNotFound(commitment_id)

        enrich_commitment(commitment_id=updated.id, calendar_event_id=new_event_id, success=True)
        return updated

    def cancel(self, message: WhatsAppMessage, action: CommitmentAction) -> CommitmentRecord:
        commitment_id = self._require_id(action)

        with _store_errors("cancel"):
            with txn() as cur:
                record = get_commitment(
                    cur,
                    commitment_id,
                    participant=message.participant_id,
                    for_update=True,
                )
                if record is None:
                    raise CommitmentNotFound(commitment_id)

                if record.calendar_event_id is not None:
                    self._calendar.delete_event(record.calendar_event_id)
                delete_commitment(cur, record.id)

        enrich_commitment(
            commitment_id=record.id,
            calendar_event_id=record.calendar_event_id,
            success=True,
        )
        return record

    @staticmethod
    def _require_id(action: CommitmentAction) -> int:
        if action.id is None:
            raise MissingActionId(f"id is required for {action.type.value} action")
        return action.id

    def _report_unstored_change(self, record: CommitmentRecord, event_id: str) -> None:
        """Calendar was written but the row change rolled back."""
        if record.calendar_event_id is None:
            self._compensate_created_event(event_id)
            return
        enrich_commitment(calendar_diverged_event_id=event_id)
        logger.error(
            "calendar event updated but commitment change was not stored",
            extra={
                "extra_fields": safe_log_context(
                    commitment_id=record.id,
                    event_id=event_id,
                )
            },
        )

    def _compensate_created_event(self, event_id: str) -> None:
        try:
            self._calendar.delete_event(event_id)
        except CalendarFailure:
            enrich_commitment(calendar_compensated=False, orphan_calendar_event_id=event_id)
            logger.error(
                "could not remove calendar event of duplicate commitment",
                extra={"extra_fields": safe_log_context(event_id=event_id)},
            )
            return
        enrich_commitment(calendar_compensated=True)
