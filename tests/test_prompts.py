"""Tests for prompt rendering."""

from friendo.domain.prompts import (
    build_open_commitments_snapshot,
    build_prompt,
    build_snapshot,
    format_message,
    format_open_commitment,
)

from .helpers import make_message, make_record, utc

TZ = "Asia/Kolkata"


class TestMessageSnapshot:
    def test_format_message_uses_local_time_and_sender(self):
        message = make_message("on my way", sent_at=utc(2023, 10, 2, 4, 30))
        assert format_message(message, TZ) == "[2023-10-02 10:00:00] Asha: on my way"

    def test_snapshot_is_oldest_first_one_per_line(self):
        messages = [
            make_message("first", sent_at=utc(2023, 10, 2, 4, 30)),
            make_message("second", sent_at=utc(2023, 10, 2, 4, 31), sender_name="Me"),
        ]
        assert build_snapshot(messages, TZ) == (
            "[2023-10-02 10:00:00] Asha: first\n[2023-10-02 10:01:00] Me: second"
        )

    def test_empty_window_renders_empty(self):
        assert build_snapshot([], TZ) == ""


class TestOpenCommitmentsSnapshot:
    def test_format_open_commitment(self):
        record = make_record(7, to_be_completed_at=utc(2023, 10, 3, 11, 30))
        assert format_open_commitment(record, TZ) == (
            "ID:7|Participant:9876543210|Description:send report"
            "|ToBeCompletedAt:2023-10-03T17:00:00"
        )

    def test_records_joined_with_separator(self):
        records = [
            make_record(1, description="a", to_be_completed_at=utc(2023, 10, 3)),
            make_record(2, description="b", to_be_completed_at=utc(2023, 10, 4)),
        ]
        rendered = build_open_commitments_snapshot(records, TZ)
        assert rendered.count(" || ") == 1
        assert rendered.startswith("ID:1|")
        assert "ID:2|" in rendered.split(" || ")[1]

    def test_missing_due_time_rendered_as_unspecified(self):
        record = make_record(3, to_be_completed_at=None)
        assert format_open_commitment(record, TZ).endswith("ToBeCompletedAt:unspecified")


class TestBuildPrompt:
    def test_embeds_both_snapshots_and_zone(self):
        prompt = build_prompt("[t] Asha: hi", "ID:1|x", time_zone=TZ)
        assert "[t] Asha: hi" in prompt
        assert "ID:1|x" in prompt
        assert "Asia/Kolkata" in prompt

    def test_empty_open_commitments_marked(self):
        prompt = build_prompt("conversation", "", time_zone=TZ)
        assert "(none)" in prompt

    def test_describes_output_shape_and_defaults(self):
        prompt = build_prompt("c", "", time_zone=TZ)
        for token in ("CREATE", "CHANGE", "CANCEL", "committedAt", "toBeCompletedAt"):
            assert token in prompt
        for default in ("09:00", "13:00", "16:00", "19:00", "12:00"):
            assert default in prompt

    def test_is_deterministic(self):
        assert build_prompt("c", "o", time_zone=TZ) == build_prompt("c", "o", time_zone=TZ)
