"""Commitment domain models.

Commitment and CommitmentAction are parsed from the model's JSON answer
(pydantic, camelCase aliases). CommitmentRecord is the stored row;
CalendarEvent is what gets mirrored into the calendar.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from friendo.infra.time import ensure_utc

DEFAULT_EVENT_DURATION = timedelta(minutes=30)


class ActionType(str, Enum):
    CREATE = "CREATE"
    CHANGE = "CHANGE"
    CANCEL = "CANCEL"


class Commitment(BaseModel):
    """A promise detected in the conversation."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    committed_at: datetime = Field(alias="committedAt")
    description: str = Field(alias="description")
    to_be_completed_at: datetime | None = Field(default=None, alias="toBeCompletedAt")

    @field_validator("description")
    @classmethod
    def _description_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("description must not be blank")
        return value.strip()


class CommitmentAction(BaseModel):
    """The model's decision for the latest message.

    ``id`` references an existing commitment for CHANGE/CANCEL (its absence
    is reported separately as MissingActionId) and must be null for CREATE.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    type: ActionType
    commitment: Commitment
    id: int | None = None

    @model_validator(mode="after")
    def _create_has_no_id(self) -> CommitmentAction:
        if self.type is ActionType.CREATE and self.id is not None:
            raise ValueError("id must be null for CREATE")
        return self


@dataclass(frozen=True)
class CommitmentRecord:
    """Stored commitment row."""

    id: int
    participant: str
    committed_at: datetime
    description: str
    to_be_completed_at: datetime | None
    message_content: str
    calendar_event_id: str | None
    created_at: datetime

    def with_commitment(self, commitment: Commitment) -> CommitmentRecord:
        """Copy with the commitment fields replaced (identity and id kept)."""
        return replace(
            self,
            committed_at=ensure_utc(commitment.committed_at),
            description=commitment.description,
            to_be_completed_at=commitment.to_be_completed_at,
        )


@dataclass(frozen=True)
class CalendarEvent:
    summary: str
    description: str
    start_time: datetime
    end_time: datetime | None = None

    @property
    def effective_end_time(self) -> datetime:
        if self.end_time is None:
            return self.start_time + DEFAULT_EVENT_DURATION
        return self.end_time

    @classmethod
    def from_commitment(cls, commitment: Commitment, participant_name: str) -> CalendarEvent:
        """Event for a commitment; starts when it is due.

        Commitments without a due time start at ``committed_at``.
        """
        start = commitment.to_be_completed_at or commitment.committed_at
        return cls(
            summary=commitment.description,
            description=f"Commitment with {participant_name}: {commitment.description}",
            start_time=ensure_utc(start),
        )
