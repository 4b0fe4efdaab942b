"""Bounded per-participant message history.

Each participant owns a FIFO window of the most recent messages. Appends go to
the tail; once the window is over capacity the oldest messages are evicted
from the head. A capacity of zero or less keeps every window empty.
"""

from __future__ import annotations

import threading
from collections import deque

from friendo.infra.keyed_locks import KeyedLocks
from friendo.observability.logging import get_logger
from friendo.observability.redaction import safe_log_context

from .models import WhatsAppMessage

logger = get_logger(__name__)


class MessageWindowStore:
    """Thread-safe map of participant id -> bounded message window.

    Window creation is guarded by a store-wide lock; every mutation or read
    of one window holds that participant's lock, so appends for one
    participant are never lost and windows of different participants do not
    contend.
    """

    def __init__(self, max_window_size: int) -> None:
        self._max_window_size = max_window_size
        self._windows: dict[str, deque[WhatsAppMessage]] = {}
        self._guard = threading.Lock()
        self._locks = KeyedLocks()

    @property
    def max_window_size(self) -> int:
        return self._max_window_size

    def _window(self, participant_id: str) -> deque[WhatsAppMessage]:
        with self._guard:
            window = self._windows.get(participant_id)
            if window is None:
                window = deque()
                self._windows[participant_id] = window
            return window

    def add(self, message: WhatsAppMessage) -> None:
        """Append ``message`` to its participant's window, evicting the oldest."""
        window = self._window(message.participant_id)
        capacity = max(self._max_window_size, 0)
        with self._locks.hold(message.participant_id):
            window.append(message)
            evicted = 0
            while len(window) > capacity:
                window.popleft()
                evicted += 1
            size = len(window)

        logger.debug(
            "message added to window",
            extra={
                "extra_fields": safe_log_context(
                    window_size=size,
                    evicted=evicted,
                )
            },
        )

    def get_messages(self, participant_id: str) -> tuple[WhatsAppMessage, ...]:
        """Oldest-first snapshot of the window; empty for unknown participants."""
        window = self._windows.get(participant_id)
        if window is None:
            return ()
        with self._locks.hold(participant_id):
            return tuple(window)

    def clear(self) -> None:
        """Drop every window."""
        with self._guard:
            self._windows.clear()
