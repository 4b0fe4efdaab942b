"""Tests for message dispatch."""

import threading
import time
from unittest.mock import patch

import pytest

from friendo.domain.dispatch import DISPATCH_OPERATION, MessageDispatcher
from friendo.observability.commitment_context import (
    COMMITMENT_MANAGEMENT_KEY,
    enrich_commitment,
)
from friendo.observability.correlation import get_correlation_id
from friendo.whatsapp.window_store import MessageWindowStore

from .helpers import make_message, utc


class _RecordingHandler:
    def __init__(self, name, log, store=None):
        self.name = name
        self.log = log
        self.store = store

    def on_message(self, message):
        seen = len(self.store.get_messages(message.participant_id)) if self.store else None
        self.log.append((self.name, message.content, seen, get_correlation_id()))
        return self.name


def _capture_wide_events():
    events = []
    return events, patch(
        "friendo.observability.wide_event.log_wide_event",
        side_effect=lambda op, ctx, redact=True: events.append((op, dict(ctx))),
    )


class TestDispatch:
    def test_window_updated_before_handlers_run_in_order(self):
        store = MessageWindowStore(max_window_size=5)
        log = []
        dispatcher = MessageDispatcher(
            store,
            (_RecordingHandler("first", log, store), _RecordingHandler("second", log, store)),
        )

        results = dispatcher.dispatch(make_message("hi"))

        assert results == ["first", "second"]
        assert [(name, seen) for name, _, seen, _ in log] == [("first", 1), ("second", 1)]

    def test_cycle_has_correlation_id(self):
        log = []
        dispatcher = MessageDispatcher(
            MessageWindowStore(5), (_RecordingHandler("h", log),)
        )
        dispatcher.dispatch(make_message())
        assert log[0][3]
        assert get_correlation_id() == ""

    def test_emits_one_wide_event(self):
        class _Handler:
            def on_message(self, message):
                enrich_commitment(success=True)

        events, patcher = _capture_wide_events()
        with patcher:
            MessageDispatcher(MessageWindowStore(5), (_Handler(),)).dispatch(make_message())

        assert len(events) == 1
        operation, context = events[0]
        assert operation == DISPATCH_OPERATION
        assert context[COMMITMENT_MANAGEMENT_KEY].success is True
        assert context[COMMITMENT_MANAGEMENT_KEY].message_received_at is not None

    def test_handler_error_propagates_after_emit(self):
        class _Failing:
            def on_message(self, message):
                raise RuntimeError("boom")

        log = []
        events, patcher = _capture_wide_events()
        with patcher:
            dispatcher = MessageDispatcher(
                MessageWindowStore(5), (_Failing(), _RecordingHandler("never", log))
            )
            with pytest.raises(RuntimeError):
                dispatcher.dispatch(make_message())

        assert len(events) == 1
        assert log == []


class TestRedelivery:
    def test_redelivered_message_is_not_appended_twice(self):
        class _FailOnce:
            def __init__(self):
                self.calls = 0

            def on_message(self, message):
                self.calls += 1
                if self.calls == 1:
                    raise RuntimeError("calendar down")

        store = MessageWindowStore(5)
        handler = _FailOnce()
        dispatcher = MessageDispatcher(store, (handler,))
        message = make_message("see you at 5")

        with pytest.raises(RuntimeError):
            dispatcher.dispatch(message)
        dispatcher.dispatch(message)

        assert handler.calls == 2
        assert store.get_messages(message.participant_id) == (message,)

    def test_repeated_text_at_new_time_is_appended(self):
        store = MessageWindowStore(5)
        dispatcher = MessageDispatcher(store, ())
        first = make_message("ok", sent_at=utc(2023, 10, 1, 9, 0))
        second = make_message("ok", sent_at=utc(2023, 10, 1, 9, 1))

        dispatcher.dispatch(first)
        dispatcher.dispatch(second)

        assert store.get_messages(first.participant_id) == (first, second)


class TestSerialization:
    def test_same_participant_cycles_do_not_overlap(self):
        active = {"count": 0, "max": 0}
        guard = threading.Lock()

        class _Slow:
            def on_message(self, message):
                with guard:
                    active["count"] += 1
                    active["max"] = max(active["max"], active["count"])
                time.sleep(0.02)
                with guard:
                    active["count"] -= 1

        dispatcher = MessageDispatcher(MessageWindowStore(50), (_Slow(),))
        threads = [
            threading.Thread(target=dispatcher.dispatch, args=(make_message(f"m{i}"),))
            for i in range(5)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert active["max"] == 1
        assert len(dispatcher.window_store.get_messages("9876543210")) == 5

    def test_different_participants_run_concurrently(self):
        barrier = threading.Barrier(2, timeout=5)

        class _Rendezvous:
            def on_message(self, message):
                barrier.wait()

        dispatcher = MessageDispatcher(MessageWindowStore(5), (_Rendezvous(),))
        errors = []

        def run(participant):
            try:
                dispatcher.dispatch(make_message(participant_id=participant))
            except threading.BrokenBarrierError as exc:
                errors.append(exc)

        threads = [threading.Thread(target=run, args=(p,)) for p in ("1111111111", "2222222222")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
