"""Inbound message dispatch.

One dispatch = one resolution cycle: the message is appended to its
participant's window, then every registered handler runs in order, all inside
a single wide-event scope and correlation id. Cycles of the same participant
never overlap. A redelivery of the window's newest message is not appended
a second time.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence

from friendo.infra.keyed_locks import KeyedLocks
from friendo.infra.time import utc_now
from friendo.observability.commitment_context import enrich_commitment
from friendo.observability.correlation import correlation_scope
from friendo.observability.logging import get_logger
from friendo.observability.redaction import safe_log_context
from friendo.observability.wide_event import wide_event_scope
from friendo.whatsapp.models import WhatsAppMessage
from friendo.whatsapp.window_store import MessageWindowStore

logger = get_logger(__name__)

DISPATCH_OPERATION = "whatsapp.dispatch"


class MessageHandler(Protocol):
    """Consumer of inbound messages, run after the window is updated."""

    def on_message(self, message: WhatsAppMessage) -> Any: ...


class MessageDispatcher:
    """Fan-out of inbound messages to the window store and handlers.

    Args:
        window_store: Store that receives every message first.
        handlers: Handlers run in order for every message.
        redact_wide_events: Mask participant data in the emitted wide event.
    """

    def __init__(
        self,
        window_store: MessageWindowStore,
        handlers: Sequence[MessageHandler],
        *,
        redact_wide_events: bool = True,
    ) -> None:
        self._window_store = window_store
        self._handlers = tuple(handlers)
        self._redact = redact_wide_events
        self._participant_locks = KeyedLocks()

    @property
    def window_store(self) -> MessageWindowStore:
        return self._window_store

    def dispatch(self, message: WhatsAppMessage) -> list[Any]:
        """Run one cycle for ``message`` and return each handler's result.

        Exceptions raised by a handler propagate after the wide event has
        been emitted; later handlers do not run.
        """
        with correlation_scope() as correlation_id:
            with wide_event_scope(DISPATCH_OPERATION, redact=self._redact):
                enrich_commitment(message_received_at=utc_now())
                with self._participant_locks.hold(message.participant_id):
                    self._append_unless_redelivered(message)
                    results = [handler.on_message(message) for handler in self._handlers]

        logger.info(
            "message dispatched",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id,
                    handlers=len(self._handlers),
                )
            },
        )
        return results

    def _append_unless_redelivered(self, message: WhatsAppMessage) -> None:
        """Add ``message`` unless it is already the newest entry of its window."""
        history = self._window_store.get_messages(message.participant_id)
        if history and history[-1] == message:
            logger.info(
                "redelivered message not appended to window",
                extra={"extra_fields": safe_log_context(window_size=len(history))},
            )
            return
        self._window_store.add(message)
