# backend/tests/services/test_booking_request_service.py
"""
Booking requests for trainer-led studios.
"""

from datetime import timedelta
from types import SimpleNamespace

import pytest

from studiobook.core.exceptions import (
    BookingConflictException,
    BusinessRuleException,
    NotFoundException,
    ValidationException,
)
from studiobook.models.booking import BookingRequestStatus, BookingStatus


@pytest.fixture
def led(seed):
    """A trainer-led studio whose client holds 5 credits."""
    studio = seed.studio(booking_model="trainer-led")
    trainer = seed.trainer(studio)
    client = seed.client(studio)
    service = seed.service(studio)
    lot = seed.lot(client, 5)
    return SimpleNamespace(
        studio=studio, trainer=trainer, client=client, service=service, lot=lot
    )


@pytest.fixture
def pending(request_service, led, session_start):
    return request_service.create_request(
        led.client.id,
        led.service.id,
        led.trainer.id,
        [session_start, session_start + timedelta(days=1)],
        notes="Mornings are best",
    )


class TestCreateRequest:
    def test_creates_pending_request_and_tells_trainer(
        self, pending, led, session_start, now, sender
    ):
        assert pending.status == BookingRequestStatus.PENDING.value
        assert pending.studio_id == led.studio.id
        assert pending.preferred_datetimes()[0] == session_start
        assert pending.expires_at == now + timedelta(hours=48)

        [(notification_type, recipient, data)] = sender.sent
        assert notification_type == "booking_request_received"
        assert recipient == led.trainer.id
        assert data["request_id"] == pending.id

    @pytest.mark.parametrize(
        "times, code",
        [
            ([], "NO_PREFERRED_TIMES"),
            ([timedelta(hours=-1)], "PREFERRED_TIME_IN_PAST"),
        ],
    )
    def test_rejects_bad_preferred_times(self, request_service, led, now, times, code):
        with pytest.raises(ValidationException) as exc_info:
            request_service.create_request(
                led.client.id, led.service.id, led.trainer.id, [now + t for t in times]
            )

        assert exc_info.value.code == code

    def test_trainer_must_be_in_scope(self, seed, request_service, led, session_start):
        outsider = seed.trainer(seed.studio(name="Elsewhere"))

        with pytest.raises(NotFoundException):
            request_service.create_request(
                led.client.id, led.service.id, outsider.id, [session_start]
            )


class TestRespond:
    def test_accept_books_first_preferred_time(
        self, db, request_service, pending, led, session_start, sender
    ):
        result = request_service.accept_request(led.trainer.id, pending.id)

        assert result.booking.status == BookingStatus.CONFIRMED.value
        assert result.booking.start_utc == session_start
        assert result.remaining_credits == 4

        db.refresh(pending)
        assert pending.status == BookingRequestStatus.ACCEPTED.value
        assert pending.booking_id == result.booking.id
        assert pending.responded_by == led.trainer.id
        assert "booking_request_accepted" in sender.types()
        assert "booking_confirmation" in sender.types()

    def test_accept_alternative_time(self, request_service, pending, led, session_start):
        alternative = session_start + timedelta(days=1)

        result = request_service.accept_request(led.trainer.id, pending.id, alternative)

        assert result.booking.start_utc == alternative

    def test_accept_twice_fails(self, request_service, pending, led):
        request_service.accept_request(led.trainer.id, pending.id)

        with pytest.raises(BusinessRuleException) as exc_info:
            request_service.accept_request(led.trainer.id, pending.id)

        assert exc_info.value.code == "REQUEST_NOT_PENDING"

    def test_accept_after_expiry_fails(self, request_service, led, session_start, now, clock):
        request = request_service.create_request(
            led.client.id,
            led.service.id,
            led.trainer.id,
            [session_start],
            expires_at=now + timedelta(hours=1),
        )
        clock.advance(hours=2)

        with pytest.raises(BusinessRuleException) as exc_info:
            request_service.accept_request(led.trainer.id, request.id)

        assert exc_info.value.code == "REQUEST_EXPIRED"

    def test_accept_into_taken_slot_leaves_request_pending(
        self, db, seed, request_service, pending, led, session_start
    ):
        seed.booking(seed.client(led.studio), led.trainer.id, session_start)

        with pytest.raises(BookingConflictException):
            request_service.accept_request(led.trainer.id, pending.id)

        db.refresh(pending)
        assert pending.status == BookingRequestStatus.PENDING.value

    def test_decline(self, request_service, pending, led, sender):
        declined = request_service.decline_request(led.trainer.id, pending.id, "Fully booked")

        assert declined.status == BookingRequestStatus.DECLINED.value
        assert declined.decline_reason == "Fully booked"
        assert sender.for_type("booking_request_declined")[0][1] == led.client.id

    def test_unrelated_staff_cannot_respond(self, seed, request_service, pending):
        outsider = seed.trainer(seed.studio(name="Elsewhere"))

        with pytest.raises(NotFoundException):
            request_service.decline_request(outsider.id, pending.id)


class TestListingAndExpiry:
    def test_lists_requests_for_managed_trainers(self, request_service, pending, led):
        request_service.decline_request(led.trainer.id, pending.id)

        assert [r.id for r in request_service.list_requests(led.studio.owner_id)] == [pending.id]
        assert request_service.list_requests(
            led.trainer.id, BookingRequestStatus.PENDING
        ) == []
        assert [r.id for r in request_service.list_client_requests(led.client.id)] == [pending.id]

    def test_expire_stale_requests(self, db, request_service, pending, clock):
        clock.advance(hours=49)

        assert request_service.expire_stale_requests() == 1

        db.refresh(pending)
        assert pending.status == BookingRequestStatus.EXPIRED.value
        assert request_service.expire_stale_requests() == 0
