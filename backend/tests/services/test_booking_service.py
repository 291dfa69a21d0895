# backend/tests/services/test_booking_service.py
"""
Client self-booking and client cancellation.
"""

from datetime import timedelta
from types import SimpleNamespace

import pytest

from studiobook.core.exceptions import (
    BookingConflictException,
    BusinessRuleException,
    CancellationWindowException,
    ForbiddenException,
    InsufficientCreditsException,
    NotFoundException,
    OutsideOpeningHoursException,
    ValidationException,
)
from studiobook.models.booking import Booking, BookingStatus
from studiobook.models.credit import CreditUsage, CreditUsageReason
from studiobook.models.notification import ScheduledNotification

WEEKDAY_HOURS = {
    str(day): {"enabled": True, "slots": [{"start": "09:00", "end": "17:00"}]}
    for day in range(1, 6)
}


def _studio_setup(seed, credits=5, **studio_fields):
    studio = seed.studio(**studio_fields)
    trainer = seed.trainer(studio)
    client = seed.client(studio)
    service = seed.service(studio)
    if credits:
        seed.lot(client, credits)
    return SimpleNamespace(studio=studio, trainer=trainer, client=client, service=service)


def _book(booking_service, w, start, service=None):
    return booking_service.create_booking(
        w.client.id, (service or w.service).id, w.trainer.id, start
    )


class TestCreateBooking:
    def test_books_debits_and_notifies(self, db, booking_service, world, session_start, sender):
        result = _book(booking_service, world, session_start)

        booking = result.booking
        assert booking.status == BookingStatus.CONFIRMED.value
        assert booking.studio_id == world.studio.id
        assert booking.end_utc == session_start + timedelta(hours=1)
        assert result.remaining_credits == 4

        [usage] = (
            db.query(CreditUsage)
            .filter(
                CreditUsage.booking_id == booking.id,
                CreditUsage.reason == CreditUsageReason.BOOKING.value,
            )
            .all()
        )
        assert usage.credits_used == 1
        assert usage.client_package_id == world.lot.id

        assert sender.types() == ["booking_confirmation"]
        reminders = (
            db.query(ScheduledNotification)
            .filter(ScheduledNotification.booking_id == booking.id)
            .all()
        )
        assert sorted(r.notification_type for r in reminders) == ["reminder_24h", "reminder_2h"]

    def test_self_booking_disabled(self, db, seed, booking_service, session_start):
        w = _studio_setup(seed)
        w.client.self_booking_allowed = False
        db.commit()

        with pytest.raises(ForbiddenException) as exc_info:
            _book(booking_service, w, session_start)

        assert exc_info.value.code == "SELF_BOOKING_DISABLED"

    def test_trainer_led_studio_requires_request(self, seed, booking_service, session_start):
        w = _studio_setup(seed, booking_model="trainer-led")

        with pytest.raises(ForbiddenException) as exc_info:
            _book(booking_service, w, session_start)

        assert exc_info.value.code == "TRAINER_APPROVAL_REQUIRED"

    def test_service_of_other_studio_looks_missing(self, seed, booking_service, world, session_start):
        foreign_service = seed.service(seed.studio(name="Elsewhere"))

        with pytest.raises(NotFoundException):
            _book(booking_service, world, session_start, service=foreign_service)

    @pytest.mark.parametrize("fields", [{"is_active": False}, {"is_public": False}])
    def test_unavailable_service(self, seed, booking_service, world, session_start, fields):
        service = seed.service(world.studio, **fields)

        with pytest.raises(ValidationException) as exc_info:
            _book(booking_service, world, session_start, service=service)

        assert exc_info.value.code == "SERVICE_UNAVAILABLE"

    def test_trainer_of_other_studio_looks_missing(self, seed, booking_service, world, session_start):
        outsider = seed.trainer(seed.studio(name="Elsewhere"))

        with pytest.raises(NotFoundException):
            booking_service.create_booking(
                world.client.id, world.service.id, outsider.id, session_start
            )

    def test_insufficient_credits(self, db, seed, booking_service, session_start):
        w = _studio_setup(seed, credits=1)
        pricey = seed.service(w.studio, credits_required=2)

        with pytest.raises(InsufficientCreditsException) as exc_info:
            _book(booking_service, w, session_start, service=pricey)

        assert exc_info.value.details == {"required": 2, "available": 1}
        assert db.query(Booking).filter(Booking.client_id == w.client.id).count() == 0

    def test_outside_opening_hours(self, seed, booking_service, session_start):
        w = _studio_setup(seed, opening_hours=WEEKDAY_HOURS)

        # Wednesday 16:30 for an hour runs past the 17:00 close
        with pytest.raises(OutsideOpeningHoursException):
            _book(booking_service, w, session_start.replace(hour=16, minute=30))

        assert _book(booking_service, w, session_start).booking.id

    def test_conflict_reports_overlapping_interval(
        self, seed, booking_service, world, session_start
    ):
        other_client = seed.client(world.studio)
        seed.booking(other_client, world.trainer.id, session_start)

        with pytest.raises(BookingConflictException) as exc_info:
            _book(booking_service, world, session_start + timedelta(minutes=30))

        [conflict] = exc_info.value.details["conflicts"]
        assert conflict["starts_at"] == session_start.isoformat()
        assert "client_id" not in conflict

    def test_back_to_back_is_allowed(self, booking_service, world, session_start):
        _book(booking_service, world, session_start)

        result = _book(booking_service, world, session_start + timedelta(hours=1))

        assert result.remaining_credits == 3

    def test_expired_hold_is_released_for_new_booking(
        self, db, seed, booking_service, world, session_start, now
    ):
        other_client = seed.client(world.studio)
        hold = seed.booking(
            other_client,
            world.trainer.id,
            session_start,
            status=BookingStatus.SOFT_HOLD.value,
            hold_expiry=now - timedelta(minutes=5),
        )

        result = _book(booking_service, world, session_start)

        assert result.booking.status == BookingStatus.CONFIRMED.value
        db.refresh(hold)
        assert hold.status == BookingStatus.CANCELLED.value
        assert hold.cancellation_reason == "Soft hold expired"

    def test_failed_debit_leaves_no_booking(
        self, db, seed, booking_service, session_start, monkeypatch
    ):
        w = _studio_setup(seed, credits=0)
        # Let the pre-check through so the debit inside the transaction fails
        monkeypatch.setattr(
            booking_service.credit_service, "ensure_available", lambda *args, **kwargs: None
        )

        with pytest.raises(InsufficientCreditsException):
            _book(booking_service, w, session_start)

        assert db.query(Booking).filter(Booking.client_id == w.client.id).count() == 0


class TestClientBookings:
    def test_lists_and_loads_own_bookings(self, seed, booking_service, world, session_start):
        result = _book(booking_service, world, session_start)

        bookings = booking_service.get_client_bookings(world.client.id, upcoming_only=True)

        assert [b.id for b in bookings] == [result.booking.id]
        assert booking_service.get_booking_for_client(world.client.id, result.booking.id)
        with pytest.raises(NotFoundException):
            booking_service.get_booking_for_client(seed.client(world.studio).id, result.booking.id)


class TestCancelBooking:
    def test_outside_window_refunds_everything(self, db, booking_service, world, session_start, sender):
        booking = _book(booking_service, world, session_start).booking

        result = booking_service.cancel_booking(world.client.id, booking.id, reason="Sick")

        assert result.refund_percent == 100
        assert result.credits_refunded == 1
        assert result.booking.status == BookingStatus.CANCELLED.value
        assert result.booking.cancelled_by == world.client.id
        db.refresh(world.lot)
        assert world.lot.sessions_remaining == 5
        assert "booking_cancelled" in sender.types()
        pending = (
            db.query(ScheduledNotification)
            .filter(
                ScheduledNotification.booking_id == booking.id,
                ScheduledNotification.status == "pending",
            )
            .count()
        )
        assert pending == 0

    def test_late_cancellation_uses_refund_tier(
        self, seed, booking_service, world, session_start, clock
    ):
        double = seed.service(world.studio, credits_required=2)
        booking = _book(booking_service, world, session_start, service=double).booking

        clock.set(session_start - timedelta(hours=10))
        result = booking_service.cancel_booking(world.client.id, booking.id)

        assert result.refund_percent == 50
        assert result.credits_refunded == 1

    def test_late_cancellation_without_tiers_is_refused(
        self, db, seed, booking_service, session_start, clock
    ):
        w = _studio_setup(seed, cancellation_policy={"no_show_action": "charge_full"})
        booking = _book(booking_service, w, session_start).booking

        clock.set(session_start - timedelta(hours=5))
        with pytest.raises(CancellationWindowException) as exc_info:
            booking_service.cancel_booking(w.client.id, booking.id)

        assert exc_info.value.code == "WITHIN_WINDOW_NO_POLICY"
        db.refresh(booking)
        assert booking.status == BookingStatus.CONFIRMED.value

    def test_no_matching_tier_cancels_without_refund(
        self, seed, booking_service, session_start, clock
    ):
        w = _studio_setup(
            seed,
            cancellation_policy={
                "refund_tiers": [{"hours_before_session": 6, "refund_percent": 50}]
            },
        )
        booking = _book(booking_service, w, session_start).booking

        clock.set(session_start - timedelta(hours=10))
        result = booking_service.cancel_booking(w.client.id, booking.id)

        assert result.booking.status == BookingStatus.CANCELLED.value
        assert result.refund_percent == 0
        assert result.credits_refunded == 0

    def test_other_clients_booking_looks_missing(self, seed, booking_service, world, session_start):
        booking = _book(booking_service, world, session_start).booking
        stranger = seed.client(world.studio)

        with pytest.raises(NotFoundException):
            booking_service.cancel_booking(stranger.id, booking.id)

    def test_cancelling_twice_refunds_once(self, db, booking_service, world, session_start):
        booking = _book(booking_service, world, session_start).booking
        booking_service.cancel_booking(world.client.id, booking.id)

        again = booking_service.cancel_booking(world.client.id, booking.id)

        assert again.already_cancelled
        assert again.credits_refunded == 0
        db.refresh(world.lot)
        assert world.lot.sessions_remaining == 5

    def test_completed_booking_cannot_be_cancelled(self, seed, booking_service, world, session_start):
        booking = seed.booking(
            world.client, world.trainer.id, session_start, status=BookingStatus.COMPLETED.value
        )

        with pytest.raises(BusinessRuleException) as exc_info:
            booking_service.cancel_booking(world.client.id, booking.id)

        assert exc_info.value.code == "BOOKING_NOT_CANCELLABLE"
