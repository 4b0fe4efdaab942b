"""Commitment resolution cycle for one inbound message.

Steps:
1. Record message metadata in the wide event.
2. Load the participant's window and open commitments.
3. Render the prompt.
4. Ask the completion capability for an action.
5. Validate it, normalize its due time to UTC, route it.

Domain failures end the cycle with a recorded reason; infrastructure
failures are recorded and re-raised (see friendo.domain.errors). Any other
exception is recorded as "UnexpectedError" and re-raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Protocol

import psycopg2
from pydantic import ValidationError

from friendo.infra.db import txn
from friendo.infra.repositories.commitments_repository import list_open_for_participant
from friendo.infra.time import model_wall_clock_to_utc, utc_now
from friendo.observability.commitment_context import enrich_commitment
from friendo.observability.logging import get_logger
from friendo.observability.redaction import safe_log_context
from friendo.whatsapp.models import WhatsAppMessage
from friendo.whatsapp.window_store import MessageWindowStore

from .action_router import ActionRouter
from .errors import (
    CommitmentError,
    EmptyModelResponse,
    InvalidModelResponse,
    PersistenceFailure,
)
from .models import CommitmentAction, CommitmentRecord
from .prompts import build_open_commitments_snapshot, build_prompt, build_snapshot

logger = get_logger(__name__)

UNEXPECTED_ERROR = "UnexpectedError"


class CompletionCapability(Protocol):
    """Prompt in, decoded JSON object (or None) out."""

    def complete(self, prompt: str) -> dict[str, Any] | None: ...


@dataclass(frozen=True)
class ResolutionOutcome:
    """Result of one cycle, mirrored in the wide event."""

    success: bool
    failure_reason: str | None = None
    record: CommitmentRecord | None = None


class CommitmentResolver:
    """Message handler that turns conversation turns into commitment changes.

    Args:
        window_store: Source of the participant's recent messages.
        completion: Model capability.
        router: Action state machine.
        time_zone: Zone the model reads and writes wall-clock times in.
        clock: Current UTC time (injectable for tests).
    """

    def __init__(
        self,
        window_store: MessageWindowStore,
        completion: CompletionCapability,
        router: ActionRouter,
        *,
        time_zone: str,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._window_store = window_store
        self._completion = completion
        self._router = router
        self._time_zone = time_zone
        self._clock = clock

    def on_message(self, message: WhatsAppMessage) -> ResolutionOutcome:
        enrich_commitment(
            participant_id=message.participant_id,
            sender_name=message.sender_name,
            from_me=message.from_me,
            message_content=message.content,
            message_sent_at=message.sent_at,
        )
        try:
            record = self._resolve(message)
        except CommitmentError as exc:
            self._record_failure(exc)
            if not exc.recoverable:
                raise
            return ResolutionOutcome(success=False, failure_reason=exc.reason)
        except Exception as exc:
            enrich_commitment(
                success=False,
                failure_reason=UNEXPECTED_ERROR,
                failure_detail=type(exc).__name__,
            )
            logger.exception(
                "commitment resolution crashed",
                extra={"extra_fields": safe_log_context(error_type=type(exc).__name__)},
            )
            raise

        return ResolutionOutcome(success=True, record=record)

    def _resolve(self, message: WhatsAppMessage) -> CommitmentRecord:
        history = self._window_store.get_messages(message.participant_id)
        open_commitments = self._open_commitments(message.participant_id)

        prompt = build_prompt(
            build_snapshot(history, self._time_zone),
            build_open_commitments_snapshot(open_commitments, self._time_zone),
            time_zone=self._time_zone,
        )
        enrich_commitment(
            history_snapshot_size=len(history),
            open_commitments_snapshot_size=len(open_commitments),
            open_commitment_ids=tuple(record.id for record in open_commitments),
            prompt=prompt,
        )

        payload = self._completion.complete(prompt)
        if payload is None:
            raise EmptyModelResponse("model returned no commitment action")

        action = self._validate(payload)
        action = self._normalize(action)
        enrich_commitment(
            action_type=action.type.value,
            commitment_id=action.id,
            commitment_description=action.commitment.description,
            committed_at=action.commitment.committed_at,
            to_be_completed_at=action.commitment.to_be_completed_at,
        )
        return self._router.route(action, message)

    def _open_commitments(self, participant_id: str) -> list[CommitmentRecord]:
        try:
            with txn() as cur:
                return list_open_for_participant(cur, participant_id, self._clock())
        except psycopg2.Error as exc:
            raise PersistenceFailure("failed to load open commitments") from exc

    @staticmethod
    def _validate(payload: dict[str, Any]) -> CommitmentAction:
        try:
            return CommitmentAction.model_validate(payload)
        except ValidationError as exc:
            errors = "; ".join(
                f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
                for error in exc.errors()
            )
            raise InvalidModelResponse("model answer failed validation", errors=errors) from exc

    def _normalize(self, action: CommitmentAction) -> CommitmentAction:
        """Convert the model's wall-clock timestamps into true UTC."""
        update: dict[str, datetime] = {
            "committed_at": model_wall_clock_to_utc(
                action.commitment.committed_at, self._time_zone
            )
        }
        due = action.commitment.to_be_completed_at
        if due is not None:
            enrich_commitment(model_to_be_completed_at=due)
            update["to_be_completed_at"] = model_wall_clock_to_utc(due, self._time_zone)
        commitment = action.commitment.model_copy(update=update)
        return action.model_copy(update={"commitment": commitment})

    @staticmethod
    def _record_failure(exc: CommitmentError) -> None:
        enrich_commitment(
            success=False,
            failure_reason=exc.reason,
            failure_detail=str(exc),
            validation_errors=getattr(exc, "errors", None),
        )
        log = logger.warning if exc.recoverable else logger.error
        log(
            "commitment resolution failed",
            extra={"extra_fields": safe_log_context(reason=exc.reason)},
        )
