"""WhatsApp webhook routes - inbound messages from the WhatsApp bridge.

The bridge delivers at least once and retries on any non-2xx answer. A
message is acknowledged with 2xx only when its resolution cycle finished,
including cycles that ended in a recorded domain failure. Infrastructure
failures answer 500 so the bridge redelivers.

Security:
- X-Webhook-Secret compared in constant time (fail-closed outside local).
- Logs carry a masked participant number, never message text.
"""

from __future__ import annotations

import hmac

from fastapi import APIRouter, Header, Response

from friendo.domain.dispatch import MessageDispatcher
from friendo.infra.settings import Settings, get_settings
from friendo.observability.correlation import get_correlation_id
from friendo.observability.logging import get_logger
from friendo.observability.redaction import mask_participant, safe_log_context
from friendo.services.wiring import build_dispatcher
from friendo.whatsapp.models import InboundMessagePayload

router = APIRouter(prefix="/webhooks/whatsapp", tags=["webhooks"])

logger = get_logger(__name__)

_dispatcher: MessageDispatcher | None = None


def _get_dispatcher() -> MessageDispatcher:
    """Get dispatcher instance (allows test injection)."""
    if _dispatcher is not None:
        return _dispatcher
    return build_dispatcher()


def _set_dispatcher(dispatcher: MessageDispatcher | None) -> None:
    """Override the dispatcher (tests); None restores the wired one."""
    global _dispatcher
    _dispatcher = dispatcher


def _secret_ok(settings: Settings, provided: str | None) -> bool:
    correlation_id = get_correlation_id()
    expected = settings.webhook_secret
    if not expected:
        if settings.is_local:
            logger.warning(
                "WHATSAPP_WEBHOOK_SECRET not set - skipping validation (local dev)",
                extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
            )
            return True
        logger.error(
            "WHATSAPP_WEBHOOK_SECRET not configured - rejecting webhook (fail-closed)",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return False
    if not provided or not hmac.compare_digest(provided, expected):
        logger.warning(
            "whatsapp webhook secret mismatch",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return False
    return True


@router.post("/messages")
def whatsapp_message_webhook(
    payload: InboundMessagePayload,
    x_webhook_secret: str | None = Header(None, alias="X-Webhook-Secret"),
) -> Response:
    """Receive one chat message and run its resolution cycle.

    Returns:
        200 "ok" when the cycle completed (domain failures included).
        200 "ignored" when the participant is not whitelisted.
        401 if secret validation fails.
        422 if the body is malformed (FastAPI validation).
        500 "processing failed" if an external capability or the store failed.
    """
    settings = get_settings()
    if not _secret_ok(settings, x_webhook_secret):
        return Response(status_code=401, content="unauthorized")

    message = payload.to_message()
    masked = mask_participant(message.participant_id)

    if settings.participant_whitelist and (
        message.participant_id not in settings.participant_whitelist
    ):
        logger.info(
            "message from non-whitelisted participant ignored",
            extra={"extra_fields": safe_log_context(participant=masked)},
        )
        return Response(status_code=200, content="ignored")

    logger.info(
        "whatsapp message received",
        extra={
            "extra_fields": safe_log_context(
                participant=masked,
                from_me=message.from_me,
                content_chars=len(message.content),
            )
        },
    )

    try:
        _get_dispatcher().dispatch(message)
    except Exception:
        logger.exception(
            "whatsapp message processing failed",
            extra={"extra_fields": safe_log_context(participant=masked)},
        )
        return Response(status_code=500, content="processing failed")

    return Response(status_code=200, content="ok")
