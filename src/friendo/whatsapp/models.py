"""WhatsApp message models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from friendo.infra.time import ensure_utc


@dataclass(frozen=True)
class WhatsAppMessage:
    """One chat message exchanged with a participant.

    ``participant_id`` identifies the other side of the conversation (the
    10-digit mobile number), for messages in both directions; ``from_me``
    tells which side sent it.
    """

    participant_id: str
    sender_name: str
    from_me: bool
    content: str
    sent_at: datetime


class InboundMessagePayload(BaseModel):
    """Wire form published by the WhatsApp bridge (camelCase JSON)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    participant_mobile_number: str = Field(alias="participantMobileNumber", min_length=1)
    sender_name: str = Field(default="", alias="senderName")
    from_me: bool = Field(alias="fromMe")
    content: str = Field(alias="content")
    sent_at: datetime = Field(alias="sentAt")

    @field_validator("sent_at")
    @classmethod
    def _sent_at_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def to_message(self) -> WhatsAppMessage:
        return WhatsAppMessage(
            participant_id=self.participant_mobile_number,
            sender_name=self.sender_name,
            from_me=self.from_me,
            content=self.content,
            sent_at=self.sent_at,
        )
