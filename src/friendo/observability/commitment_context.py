"""Wide event payload for one commitment resolution cycle."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from .redaction import mask_participant, redact_string
from .wide_event import Mergeable, enrich

COMMITMENT_MANAGEMENT_KEY = "commitmentManagement"


@dataclass(frozen=True)
class CommitmentManagementContext(Mergeable):
    """Partial view of a resolution cycle; unset fields are None."""

    participant_id: str | None = None
    sender_name: str | None = None
    from_me: bool | None = None
    message_content: str | None = None
    message_sent_at: datetime | None = None
    message_received_at: datetime | None = None
    history_snapshot_size: int | None = None
    open_commitments_snapshot_size: int | None = None
    open_commitment_ids: tuple[int, ...] | None = None
    prompt: str | None = None
    action_type: str | None = None
    commitment_id: int | None = None
    commitment_description: str | None = None
    committed_at: datetime | None = None
    to_be_completed_at: datetime | None = None
    model_to_be_completed_at: datetime | None = None
    calendar_event_id: str | None = None
    orphan_calendar_event_id: str | None = None
    calendar_diverged_event_id: str | None = None
    calendar_compensated: bool | None = None
    success: bool | None = None
    failure_reason: str | None = None
    failure_detail: str | None = None
    validation_errors: str | None = None

    def redacted(self) -> CommitmentManagementContext:
        def _text(value: str | None) -> str | None:
            return redact_string(value) if value is not None else None

        return replace(
            self,
            participant_id=mask_participant(self.participant_id),
            message_content=_text(self.message_content),
            prompt=_text(self.prompt),
            commitment_description=_text(self.commitment_description),
        )


def enrich_commitment(**fields: object) -> None:
    """Shorthand for enriching the commitment management entry."""
    enrich(COMMITMENT_MANAGEMENT_KEY, CommitmentManagementContext(**fields))  # type: ignore[arg-type]
