# backend/tests/unit/test_booking_model.py
"""
Booking status machine and interval helpers, without a database.
"""

from datetime import datetime, timedelta, timezone

import pytest

from studiobook.core.exceptions import InvalidStatusTransitionException
from studiobook.models.booking import Booking, BookingRequest, BookingRequestStatus, BookingStatus

START = datetime(2026, 3, 4, 10, 0, tzinfo=timezone.utc)
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _booking(status: BookingStatus = BookingStatus.CONFIRMED, **fields) -> Booking:
    return Booking(
        id="01JBOOKING00000000000000AA",
        client_id="client",
        trainer_id="trainer",
        scheduled_at=START,
        duration=60,
        status=status.value,
        **fields,
    )


def test_ends_at_is_derived_from_duration():
    booking = _booking()

    assert booking.ends_at == START + timedelta(minutes=60)
    assert booking.end_utc == START + timedelta(minutes=60)


def test_naive_times_are_read_as_utc():
    booking = _booking()
    booking.scheduled_at = START.replace(tzinfo=None)

    assert booking.start_utc == START


class TestTransitions:
    @pytest.mark.parametrize(
        "current, target",
        [
            (BookingStatus.SOFT_HOLD, BookingStatus.CONFIRMED),
            (BookingStatus.SOFT_HOLD, BookingStatus.CANCELLED),
            (BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN),
            (BookingStatus.CONFIRMED, BookingStatus.COMPLETED),
            (BookingStatus.CONFIRMED, BookingStatus.NO_SHOW),
            (BookingStatus.CONFIRMED, BookingStatus.LATE),
            (BookingStatus.CHECKED_IN, BookingStatus.COMPLETED),
        ],
    )
    def test_allowed(self, current, target):
        booking = _booking(current)

        booking.transition_to(target, NOW)

        assert booking.status == target.value

    @pytest.mark.parametrize(
        "current, target",
        [
            (BookingStatus.COMPLETED, BookingStatus.CHECKED_IN),
            (BookingStatus.CANCELLED, BookingStatus.CONFIRMED),
            (BookingStatus.NO_SHOW, BookingStatus.COMPLETED),
            (BookingStatus.CHECKED_IN, BookingStatus.SOFT_HOLD),
            (BookingStatus.CONFIRMED, BookingStatus.SOFT_HOLD),
            (BookingStatus.LATE, BookingStatus.CANCELLED),
        ],
    )
    def test_forbidden(self, current, target):
        booking = _booking(current)

        with pytest.raises(InvalidStatusTransitionException) as exc_info:
            booking.transition_to(target, NOW)

        assert exc_info.value.code == "INVALID_STATUS_TRANSITION"
        assert booking.status == current.value

    def test_confirming_a_hold_clears_its_expiry(self):
        booking = _booking(BookingStatus.SOFT_HOLD, hold_expiry=NOW + timedelta(minutes=30))

        booking.transition_to(BookingStatus.CONFIRMED, NOW)

        assert booking.hold_expiry is None

    def test_timestamps_are_recorded(self):
        booking = _booking()

        booking.transition_to(BookingStatus.CHECKED_IN, NOW)
        booking.transition_to(BookingStatus.COMPLETED, NOW + timedelta(hours=1))

        assert booking.checked_in_at == NOW
        assert booking.completed_at == NOW + timedelta(hours=1)

    def test_cancel_records_actor_and_reason(self):
        booking = _booking()

        booking.cancel(NOW, cancelled_by="client", reason="Sick")

        assert booking.status == BookingStatus.CANCELLED.value
        assert booking.cancelled_at == NOW
        assert booking.cancelled_by == "client"
        assert booking.cancellation_reason == "Sick"


class TestSlotBlocking:
    def test_confirmed_blocks(self):
        assert _booking().blocks_slot(NOW)

    def test_live_hold_blocks(self):
        booking = _booking(BookingStatus.SOFT_HOLD, hold_expiry=NOW + timedelta(minutes=5))

        assert booking.blocks_slot(NOW)
        assert not booking.hold_has_expired(NOW)

    def test_expired_hold_does_not_block(self):
        booking = _booking(BookingStatus.SOFT_HOLD, hold_expiry=NOW - timedelta(minutes=1))

        assert booking.hold_has_expired(NOW)
        assert not booking.blocks_slot(NOW)

    @pytest.mark.parametrize(
        "status", [BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW]
    )
    def test_terminal_statuses_do_not_block(self, status):
        booking = _booking(status)

        assert booking.is_terminal
        assert not booking.blocks_slot(NOW)


def test_booking_request_is_open_until_expiry():
    request = BookingRequest(
        status=BookingRequestStatus.PENDING.value,
        expires_at=NOW + timedelta(hours=1),
        preferred_times=[START.isoformat()],
    )

    assert request.is_open(NOW)
    assert not request.is_open(NOW + timedelta(hours=1))
    assert request.preferred_datetimes() == [START]
