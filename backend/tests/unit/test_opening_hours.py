# backend/tests/unit/test_opening_hours.py
"""
Unit tests for opening-hours validation.

2026-03-04 is a Wednesday (schedule key "3").
"""

from datetime import datetime, timezone

import pytest

from studiobook.services.opening_hours import day_key, is_within_opening_hours, parse_hhmm

WEEKDAY_HOURS = {
    "3": {"enabled": True, "slots": [{"start": "09:00", "end": "17:00"}]},
    "4": {"enabled": False, "slots": [{"start": "09:00", "end": "17:00"}]},
    "5": {
        "enabled": True,
        "slots": [{"start": "06:00", "end": "10:00"}, {"start": "16:00", "end": "20:00"}],
    },
}


def _utc(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, day, hour, minute, tzinfo=timezone.utc)


class TestParseHHMM:
    def test_parses_minutes_since_midnight(self):
        assert parse_hhmm("00:00") == 0
        assert parse_hhmm("09:30") == 570
        assert parse_hhmm("24:00") == 1440

    @pytest.mark.parametrize("value", ["", "9", "25:00", "10:60", "24:01", "ab:cd"])
    def test_rejects_malformed_values(self, value):
        with pytest.raises(ValueError):
            parse_hhmm(value)


def test_day_key_uses_sunday_as_zero():
    assert day_key(datetime(2026, 3, 1, 12, 0)) == "0"  # Sunday
    assert day_key(datetime(2026, 3, 2, 12, 0)) == "1"  # Monday
    assert day_key(datetime(2026, 3, 7, 12, 0)) == "6"  # Saturday


class TestIsWithinOpeningHours:
    def test_no_schedule_means_unrestricted(self):
        assert is_within_opening_hours(None, _utc(4, 3), 60).valid
        assert is_within_opening_hours({}, _utc(4, 3), 60).valid

    def test_session_inside_slot(self):
        assert is_within_opening_hours(WEEKDAY_HOURS, _utc(4, 10), 60).valid

    def test_session_ending_exactly_at_close_fits(self):
        assert is_within_opening_hours(WEEKDAY_HOURS, _utc(4, 16), 60).valid

    def test_session_running_past_close_is_rejected(self):
        result = is_within_opening_hours(WEEKDAY_HOURS, _utc(4, 16, 30), 60)

        assert not result.valid
        assert "outside studio operating hours" in result.reason
        assert "Wednesday 09:00-17:00" in result.reason

    def test_session_before_open_is_rejected(self):
        assert not is_within_opening_hours(WEEKDAY_HOURS, _utc(4, 8, 30), 60).valid

    def test_disabled_day_is_closed(self):
        result = is_within_opening_hours(WEEKDAY_HOURS, _utc(5, 10), 60)

        assert not result.valid
        assert result.reason == "The studio is closed on Thursday"

    def test_missing_day_is_closed(self):
        result = is_within_opening_hours(WEEKDAY_HOURS, _utc(2, 10), 60)

        assert not result.valid
        assert "Monday" in result.reason

    def test_split_day_requires_a_single_slot_to_contain_the_session(self):
        assert is_within_opening_hours(WEEKDAY_HOURS, _utc(6, 7), 60).valid
        assert is_within_opening_hours(WEEKDAY_HOURS, _utc(6, 17), 60).valid
        # Spans the midday gap
        assert not is_within_opening_hours(WEEKDAY_HOURS, _utc(6, 9, 30), 60).valid

    def test_hours_are_evaluated_in_studio_local_time(self):
        # 15:00 UTC is 10:00 in New York (EST, before DST starts on 2026-03-08)
        assert is_within_opening_hours(
            WEEKDAY_HOURS, _utc(4, 15), 60, "America/New_York"
        ).valid
        # 22:00 UTC is 17:00 local; a 60 minute session runs past close
        assert not is_within_opening_hours(
            WEEKDAY_HOURS, _utc(4, 22), 60, "America/New_York"
        ).valid

    def test_malformed_slot_is_skipped(self):
        hours = {
            "3": {
                "enabled": True,
                "slots": [{"start": "nope", "end": "17:00"}, {"start": "09:00", "end": "17:00"}],
            }
        }
        assert is_within_opening_hours(hours, _utc(4, 10), 60).valid

    def test_unknown_timezone_falls_back_to_utc(self):
        assert is_within_opening_hours(WEEKDAY_HOURS, _utc(4, 10), 60, "Mars/Olympus").valid
