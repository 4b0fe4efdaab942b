"""Commitment service - administrative reads and deletes.

Rules:
- Listing returns commitments due strictly after the cutoff, soonest first.
- Deleting an absent id is a no-op.
- Delete order is record first (committed), calendar event second; a calendar
  failure propagates with the record already gone.
"""

from __future__ import annotations

from datetime import datetime

from friendo.domain.action_router import CalendarCapability
from friendo.domain.models import CommitmentRecord
from friendo.infra.db import txn
from friendo.infra.repositories.commitments_repository import (
    delete_commitment,
    get_commitment,
    list_due_after,
)
from friendo.infra.time import ensure_utc, utc_now
from friendo.observability.logging import get_logger
from friendo.observability.redaction import safe_log_context

logger = get_logger(__name__)


class CommitmentService:
    def __init__(self, calendar: CalendarCapability) -> None:
        self._calendar = calendar

    def list_due_after(self, after: datetime | None = None) -> list[CommitmentRecord]:
        """Commitments due strictly after ``after`` (default: now)."""
        cutoff = ensure_utc(after) if after is not None else utc_now()
        with txn() as cur:
            return list_due_after(cur, cutoff)

    def delete_by_commitment_id(self, commitment_id: int) -> bool:
        """Delete the commitment and its calendar event.

        Returns:
            True if a record was deleted, False if the id did not exist.

        Raises:
            CalendarFailure: If the event could not be removed. The record is
                already deleted at that point.
        """
        with txn() as cur:
            record = get_commitment(cur, commitment_id, for_update=True)
            if record is None:
                logger.warning(
                    "commitment to delete not found",
                    extra={"extra_fields": safe_log_context(commitment_id=commitment_id)},
                )
                return False
            delete_commitment(cur, commitment_id)

        if record.calendar_event_id is not None:
            self._calendar.delete_event(record.calendar_event_id)

        logger.info(
            "commitment deleted",
            extra={
                "extra_fields": safe_log_context(
                    commitment_id=commitment_id,
                    event_id=record.calendar_event_id,
                )
            },
        )
        return True
