"""Administrative commitment endpoints.

GET    /commitments?to_be_completed_after=...  → list due commitments
DELETE /commitments/{id}                       → delete record + calendar event (204)

Every route requires X-Admin-Token matching ADMIN_API_TOKEN (fail-closed).
"""

from __future__ import annotations

import hmac
from datetime import datetime

from fastapi import APIRouter, Depends, Header, HTTPException, Path, Query, Response
from pydantic import BaseModel

from friendo.domain.errors import CalendarFailure
from friendo.domain.models import CommitmentRecord
from friendo.infra.settings import get_settings
from friendo.observability.correlation import get_correlation_id
from friendo.observability.logging import get_logger
from friendo.observability.redaction import safe_log_context
from friendo.services.commitment_service import CommitmentService
from friendo.services.wiring import build_commitment_service

logger = get_logger(__name__)

_commitment_service: CommitmentService | None = None


def _get_commitment_service() -> CommitmentService:
    """Get commitment service instance (allows test injection)."""
    if _commitment_service is not None:
        return _commitment_service
    return build_commitment_service()


def _set_commitment_service(service: CommitmentService | None) -> None:
    """Override the commitment service (tests); None restores the wired one."""
    global _commitment_service
    _commitment_service = service


def require_admin_token(
    x_admin_token: str | None = Header(None, alias="X-Admin-Token"),
) -> None:
    """Reject the request unless the admin token matches (fail-closed)."""
    expected = get_settings().admin_token
    if not expected:
        logger.error(
            "ADMIN_API_TOKEN not configured - rejecting admin request (fail-closed)",
            extra={"extra_fields": safe_log_context(correlationId=get_correlation_id())},
        )
        raise HTTPException(status_code=401, detail="unauthorized")
    if not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        logger.warning(
            "admin token mismatch",
            extra={"extra_fields": safe_log_context(correlationId=get_correlation_id())},
        )
        raise HTTPException(status_code=401, detail="unauthorized")


router = APIRouter(
    prefix="/commitments",
    tags=["commitments"],
    dependencies=[Depends(require_admin_token)],
)


# ── Schemas ───────────────────────────────────────────────────────────────────


class CommitmentOut(BaseModel):
    id: int
    participant: str
    committed_at: datetime
    description: str
    to_be_completed_at: datetime | None
    calendar_event_id: str | None
    created_at: datetime | None


def _record_to_out(record: CommitmentRecord) -> CommitmentOut:
    return CommitmentOut(
        id=record.id,
        participant=record.participant,
        committed_at=record.committed_at,
        description=record.description,
        to_be_completed_at=record.to_be_completed_at,
        calendar_event_id=record.calendar_event_id,
        created_at=record.created_at,
    )


# ── Routes ────────────────────────────────────────────────────────────────────


@router.get("", response_model=list[CommitmentOut])
def list_commitments(
    to_be_completed_after: datetime | None = Query(default=None),
) -> list[CommitmentOut]:
    """List commitments due strictly after the cutoff (default: now)."""
    records = _get_commitment_service().list_due_after(to_be_completed_after)
    return [_record_to_out(record) for record in records]


@router.delete("/{commitment_id}", status_code=204)
def delete_commitment(commitment_id: int = Path(..., ge=1)) -> Response:
    """Delete a commitment and its calendar event.

    Returns:
        204 when deleted, 404 when no such commitment exists.
        500 when the calendar event could not be removed (record already gone).
    """
    try:
        deleted = _get_commitment_service().delete_by_commitment_id(commitment_id)
    except CalendarFailure as exc:
        logger.error(
            "calendar cleanup failed after commitment deletion",
            extra={"extra_fields": safe_log_context(commitment_id=commitment_id)},
        )
        raise HTTPException(status_code=500, detail="calendar event deletion failed") from exc

    if not deleted:
        raise HTTPException(status_code=404, detail="commitment not found")
    return Response(status_code=204)

