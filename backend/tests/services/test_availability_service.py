# backend/tests/services/test_availability_service.py
"""
A client's view of one trainer's day: opening slots and busy intervals.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from studiobook.core.exceptions import NotFoundException
from studiobook.core.ulid_helper import generate_ulid
from studiobook.models.booking import BookingStatus
from studiobook.models.studio import Profile, ProfileRole

WEDNESDAY = date(2026, 3, 4)
WEEKDAY_HOURS = {
    str(day): {"enabled": True, "slots": [{"start": "09:00", "end": "17:00"}]}
    for day in range(1, 6)
}


class TestBusyIntervals:
    def test_lists_blocking_bookings_without_client_identity(
        self, seed, availability_service, world, session_start, now
    ):
        other = seed.client(world.studio)
        seed.booking(world.client, world.trainer.id, session_start)
        seed.booking(
            world.client,
            world.trainer.id,
            session_start + timedelta(hours=2),
            status=BookingStatus.CANCELLED.value,
        )
        seed.booking(
            world.client,
            world.trainer.id,
            session_start + timedelta(hours=4),
            status=BookingStatus.SOFT_HOLD.value,
            hold_expiry=now - timedelta(minutes=1),
        )
        seed.booking(
            other,
            world.trainer.id,
            session_start + timedelta(hours=6),
            status=BookingStatus.SOFT_HOLD.value,
            hold_expiry=now + timedelta(minutes=30),
        )
        seed.booking(other, world.trainer.id, session_start + timedelta(days=1))
        seed.booking(world.client, world.owner_id, session_start)

        day = availability_service.get_trainer_day(world.client.id, world.trainer.id, WEDNESDAY)

        assert day.busy == [
            {"starts_at": "2026-03-04T10:00:00+00:00", "ends_at": "2026-03-04T11:00:00+00:00"},
            {"starts_at": "2026-03-04T16:00:00+00:00", "ends_at": "2026-03-04T17:00:00+00:00"},
        ]
        assert all(set(interval) == {"starts_at", "ends_at"} for interval in day.busy)

    def test_day_follows_studio_timezone(self, seed, availability_service):
        studio = seed.studio(timezone="America/New_York")
        trainer = seed.trainer(studio)
        client = seed.client(studio, invited_by=trainer.id)
        # 21:00 on Wednesday in New York
        seed.booking(client, trainer.id, datetime(2026, 3, 5, 2, 0, tzinfo=timezone.utc))
        # 23:00 on Tuesday in New York
        seed.booking(client, trainer.id, datetime(2026, 3, 4, 4, 0, tzinfo=timezone.utc))

        day = availability_service.get_trainer_day(client.id, trainer.id, WEDNESDAY)

        assert day.timezone == "America/New_York"
        assert [interval["starts_at"] for interval in day.busy] == ["2026-03-05T02:00:00+00:00"]


class TestOpeningSlots:
    def test_open_day(self, seed, availability_service):
        studio = seed.studio(opening_hours=WEEKDAY_HOURS)
        trainer = seed.trainer(studio)
        client = seed.client(studio, invited_by=trainer.id)

        day = availability_service.get_trainer_day(client.id, trainer.id, WEDNESDAY)

        assert day.opening_hours_restricted is True
        assert day.open_slots == [{"start": "09:00", "end": "17:00"}]

    def test_closed_day(self, seed, availability_service):
        studio = seed.studio(opening_hours=WEEKDAY_HOURS)
        trainer = seed.trainer(studio)
        client = seed.client(studio, invited_by=trainer.id)

        day = availability_service.get_trainer_day(client.id, trainer.id, date(2026, 3, 8))

        assert day.opening_hours_restricted is True
        assert day.open_slots == []

    def test_studio_without_schedule_is_unrestricted(self, availability_service, world):
        day = availability_service.get_trainer_day(world.client.id, world.trainer.id, WEDNESDAY)

        assert day.opening_hours_restricted is False
        assert day.open_slots == []
        assert day.timezone == "UTC"


class TestScope:
    def test_trainer_of_another_studio_is_not_found(self, seed, availability_service, world):
        outsider = seed.trainer(seed.studio(name="Elsewhere"))

        with pytest.raises(NotFoundException):
            availability_service.get_trainer_day(world.client.id, outsider.id, WEDNESDAY)

    def test_unknown_client(self, availability_service, world):
        with pytest.raises(NotFoundException):
            availability_service.get_trainer_day("missing", world.trainer.id, WEDNESDAY)

    def test_solo_practitioner_without_studio_row(
        self, db, seed, availability_service, session_start
    ):
        practitioner = Profile(id=generate_ulid(), role=ProfileRole.SOLO_PRACTITIONER.value)
        db.add(practitioner)
        db.commit()
        client = seed.client(studio_id=practitioner.id)
        seed.booking(client, practitioner.id, session_start)

        day = availability_service.get_trainer_day(client.id, practitioner.id, WEDNESDAY)

        assert day.opening_hours_restricted is False
        assert len(day.busy) == 1
