"""Tests for regex schedule slot extraction and merging."""

from __future__ import annotations

from datetime import date

import pytest

from chatroute.nlu.slots import (
    PartialSchedule,
    extract_attendees,
    extract_date,
    extract_partial_schedule,
    extract_time,
    extract_title,
    merge_schedule,
    normalize_time,
)

TODAY = date(2025, 1, 31)


class TestExtractDate:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("on 2025-09-18 please", "2025-09-18"),
            ("on 9/8/2025", "2025-09-08"),
            ("12/25/2026 works", "2026-12-25"),
            ("tomorrow at noon", "2025-02-01"),
            ("Tomorrow", "2025-02-01"),
            ("next week sometime", None),
            ("", None),
        ],
    )
    def test_formats(self, text, expected):
        assert extract_date(text, today=TODAY) == expected

    def test_iso_wins_over_tomorrow(self):
        assert extract_date("tomorrow, i.e. 2025-02-01", today=date(2020, 1, 1)) == "2025-02-01"


class TestExtractTime:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("at 3pm", "15:00"),
            ("at 3 PM", "15:00"),
            ("9:30 am", "09:30"),
            ("14:00", "14:00"),
            ("12am", "00:00"),
            ("12pm", "12:00"),
            ("2025-09-18 at 14:00", "14:00"),
            ("9/18/2025 at 9:30 am", "09:30"),
            ("on 2025-09-18", None),
            ("on 9/18/2025", None),
            ("at 25:00", None),
            ("no time here", None),
        ],
    )
    def test_formats(self, text, expected):
        assert extract_time(text) == expected

    def test_normalize_time(self):
        assert normalize_time(7, 5, "pm") == "19:05"
        assert normalize_time(24) is None
        assert normalize_time(10, 60) is None


class TestExtractAttendees:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("meet with Alex tomorrow 3pm", ["Alex"]),
            ("call with alex@x.io, Bob and Sam at 10", ["alex@x.io", "Bob", "Sam"]),
            ("sync with Dana & Lee on friday", ["Dana", "Lee"]),
            ("lunch with Andrea. Bring snacks", ["Andrea"]),
            ("lunch with Sandy for an hour", ["Sandy"]),
            ("meet with a", None),
            ("no one else", None),
        ],
    )
    def test_attendees(self, text, expected):
        assert extract_attendees(text) == expected

    def test_and_inside_name_kept(self):
        assert extract_attendees("chat with Brandon") == ["Brandon"]


class TestExtractTitle:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("schedule a meeting with Alex tomorrow 3pm", "Meeting with Alex"),
            ("Schedule a call with dana lee at 3", "Call with Dana lee"),
            ("schedule the sync with Dana Lee Smith Jr on monday", "Sync with Dana lee smith"),
            ("schedule discussion with marketing", "Discussion with Marketing"),
            ("book a meeting", None),
            ("schedule a meeting with bob@x.io", None),
        ],
    )
    def test_titles(self, text, expected):
        assert extract_title(text) == expected


class TestPartialSchedule:
    def test_end_to_end(self):
        partial = extract_partial_schedule("schedule a meeting with Alex tomorrow 3pm", today=TODAY)
        assert partial == PartialSchedule(
            title="Meeting with Alex", date="2025-02-01", time="15:00", attendees=["Alex"]
        )
        assert partial.is_viable
        assert partial.missing() == []

    def test_empty(self):
        partial = extract_partial_schedule("hello there", today=TODAY)
        assert partial.is_empty
        assert partial.missing() == ["title", "date"]

    def test_to_event_defaults(self):
        event = PartialSchedule(title="Sync", date="2025-01-01").to_event()
        assert event.time == ""
        assert event.duration_minutes == 30
        assert event.attendees == []
        assert event.notes == ""


class TestMergeSchedule:
    def test_merge_onto_nothing(self):
        incoming = PartialSchedule(title="Sync")
        assert merge_schedule(None, incoming) == incoming

    def test_none_never_overwrites(self):
        base = PartialSchedule(title="Sync", date="2025-01-01", time="09:00")
        merged = merge_schedule(base, PartialSchedule(attendees=["Alex"]))
        assert merged == PartialSchedule(title="Sync", date="2025-01-01", time="09:00", attendees=["Alex"])

    def test_incoming_values_win(self):
        base = PartialSchedule(title="Sync", time="09:00")
        merged = merge_schedule(base, PartialSchedule(time="10:00"))
        assert merged.time == "10:00"
        assert merged.title == "Sync"

    def test_merge_with_empty_is_identity(self):
        base = PartialSchedule(title="Sync", date="2025-01-01")
        assert merge_schedule(base, PartialSchedule()) == base

    def test_base_not_mutated(self):
        base = PartialSchedule(title="Sync")
        merge_schedule(base, PartialSchedule(title="Other"))
        assert base.title == "Sync"
