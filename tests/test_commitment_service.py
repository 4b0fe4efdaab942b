"""Tests for the administrative commitment service."""

import pytest

from friendo.domain.errors import CalendarFailure
from friendo.services.commitment_service import CommitmentService

from .helpers import (
    FakeCalendar,
    FakeCommitmentTable,
    make_record,
    patch_commitments_table,
    utc,
)

SERVICE_MODULE = "friendo.services.commitment_service"


class TestListDueAfter:
    def test_returns_strictly_later_soonest_first(self):
        table = FakeCommitmentTable(
            make_record(1, to_be_completed_at=utc(2023, 10, 5), message_content="a"),
            make_record(2, to_be_completed_at=utc(2023, 10, 3), message_content="b"),
            make_record(3, to_be_completed_at=utc(2023, 10, 2), message_content="c"),
            make_record(4, to_be_completed_at=None, message_content="d"),
        )
        with patch_commitments_table(table, SERVICE_MODULE):
            records = CommitmentService(FakeCalendar()).list_due_after(utc(2023, 10, 2))

        assert [r.id for r in records] == [2, 1]

    def test_defaults_to_now(self):
        table = FakeCommitmentTable(
            make_record(1, to_be_completed_at=utc(2000, 1, 1)),
            make_record(2, to_be_completed_at=utc(2999, 1, 1), message_content="later"),
        )
        with patch_commitments_table(table, SERVICE_MODULE):
            records = CommitmentService(FakeCalendar()).list_due_after()

        assert [r.id for r in records] == [2]


class TestDeleteByCommitmentId:
    def test_deletes_record_and_event(self):
        table = FakeCommitmentTable(make_record(42, calendar_event_id="evt-42"))
        calendar = FakeCalendar()
        with patch_commitments_table(table, SERVICE_MODULE):
            deleted = CommitmentService(calendar).delete_by_commitment_id(42)

        assert deleted is True
        assert table.rows == {}
        assert calendar.calls == [("delete", "evt-42")]

    def test_absent_id_is_noop(self):
        table = FakeCommitmentTable(make_record(1))
        calendar = FakeCalendar()
        with patch_commitments_table(table, SERVICE_MODULE):
            deleted = CommitmentService(calendar).delete_by_commitment_id(42)

        assert deleted is False
        assert list(table.rows) == [1]
        assert calendar.calls == []

    def test_calendar_failure_propagates_after_record_is_gone(self):
        table = FakeCommitmentTable(make_record(42, calendar_event_id="evt-42"))
        with patch_commitments_table(table, SERVICE_MODULE):
            with pytest.raises(CalendarFailure):
                CommitmentService(FakeCalendar(fail_on=("delete",))).delete_by_commitment_id(42)

        assert table.rows == {}

    def test_record_without_event_skips_calendar(self):
        table = FakeCommitmentTable(make_record(42, calendar_event_id=None))
        calendar = FakeCalendar()
        with patch_commitments_table(table, SERVICE_MODULE):
            CommitmentService(calendar).delete_by_commitment_id(42)

        assert calendar.calls == []
