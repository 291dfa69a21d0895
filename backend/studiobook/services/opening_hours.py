# backend/studiobook/services/opening_hours.py
"""
Opening-hours validation.

Studio schedules are stored as a JSON object keyed by weekday ("0" is
Sunday through "6" Saturday), each entry holding ``enabled`` and a list of
``{"start": "HH:MM", "end": "HH:MM"}`` slots in studio-local time. A booking
fits when its whole [start, start + duration) interval, at minute
granularity, lies inside one enabled slot of the day it starts on.
"""

from dataclasses import dataclass
from datetime import date, datetime
import logging
from typing import Any, List, Mapping, Optional, Tuple

from ..core.timezone_utils import to_studio_local

logger = logging.getLogger(__name__)

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


@dataclass(frozen=True)
class OpeningHoursResult:
    valid: bool
    reason: Optional[str] = None


def parse_hhmm(value: str) -> int:
    """
    Convert "HH:MM" to minutes since midnight.

    "24:00" is accepted as the end of the day.
    """
    hours_text, sep, minutes_text = (value or "").strip().partition(":")
    if not sep:
        raise ValueError(f"Invalid time of day: {value!r}")
    hours, minutes = int(hours_text), int(minutes_text)
    if not (0 <= minutes < 60) or not (0 <= hours <= 24) or (hours == 24 and minutes):
        raise ValueError(f"Invalid time of day: {value!r}")
    return hours * 60 + minutes


def day_key(local_day: date) -> str:
    """Schedule key for a local date or datetime; Python's Monday=0 becomes "1"."""
    return str((local_day.weekday() + 1) % 7)


def _enabled_slots(day: Mapping[str, Any]) -> List[Tuple[str, str]]:
    slots = []
    for slot in day.get("slots") or []:
        start, end = slot.get("start"), slot.get("end")
        if start and end:
            slots.append((start, end))
    return slots


def is_within_opening_hours(
    opening_hours: Optional[Mapping[str, Any]],
    start: datetime,
    duration_minutes: int,
    tz_name: Optional[str] = None,
) -> OpeningHoursResult:
    """
    Check a requested interval against a studio's weekly schedule.

    An empty or missing schedule means the studio has not restricted hours.
    """
    if not opening_hours:
        return OpeningHoursResult(valid=True)

    local_start = to_studio_local(start, tz_name)
    key = day_key(local_start)
    day_name = DAY_NAMES[int(key)]

    day = opening_hours.get(key)
    if not day or not day.get("enabled"):
        return OpeningHoursResult(valid=False, reason=f"The studio is closed on {day_name}")

    start_minutes = local_start.hour * 60 + local_start.minute
    end_minutes = start_minutes + duration_minutes

    slots = _enabled_slots(day)
    for slot_start, slot_end in slots:
        try:
            if parse_hhmm(slot_start) <= start_minutes and end_minutes <= parse_hhmm(slot_end):
                return OpeningHoursResult(valid=True)
        except ValueError:
            logger.warning("Ignoring malformed opening-hours slot %s-%s", slot_start, slot_end)

    ranges = ", ".join(f"{day_name} {slot_start}-{slot_end}" for slot_start, slot_end in slots)
    return OpeningHoursResult(
        valid=False,
        reason=f"The selected time is outside studio operating hours ({ranges})",
    )


def slots_for_date(
    opening_hours: Optional[Mapping[str, Any]], on_date: date
) -> Optional[List[Tuple[str, str]]]:
    """
    Opening slots for a studio-local calendar date.

    None means the studio has no schedule (any time may be booked); an empty
    list means it is closed that day. Malformed slots are left out.
    """
    if not opening_hours:
        return None
    day = opening_hours.get(day_key(on_date))
    if not day or not day.get("enabled"):
        return []

    slots = []
    for slot_start, slot_end in _enabled_slots(day):
        try:
            if parse_hhmm(slot_start) < parse_hhmm(slot_end):
                slots.append((slot_start, slot_end))
        except ValueError:
            logger.warning("Ignoring malformed opening-hours slot %s-%s", slot_start, slot_end)
    return sorted(slots, key=lambda slot: parse_hhmm(slot[0]))
