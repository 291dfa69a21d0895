# backend/tests/services/test_notification_service.py
"""
Notification delivery never fails the caller; reminders are queued and
withdrawn with their booking.
"""

from datetime import timedelta

from studiobook.models.notification import ScheduledNotification, ScheduledNotificationStatus
from studiobook.services.notification_service import NotificationService, reminder_type


class FailingSender:
    def send(self, notification_type, recipient_id, template_data):
        raise ConnectionError("mail relay unavailable")


def _queued(db, booking_id):
    return (
        db.query(ScheduledNotification)
        .filter(ScheduledNotification.booking_id == booking_id)
        .order_by(ScheduledNotification.scheduled_for)
        .all()
    )


def test_failed_delivery_is_reported_not_raised(db, clock):
    service = NotificationService(db, sender=FailingSender(), clock=clock)

    assert service.send("booking_confirmation", "client-1", {}) is False


def test_reminder_type_names():
    assert reminder_type(24) == "reminder_24h"
    assert reminder_type(2) == "reminder_2h"


def test_confirmation_queues_future_reminders(
    db, seed, notification_service, world, session_start, sender
):
    booking = seed.booking(world.client, world.trainer.id, session_start)

    assert notification_service.notify_booking_confirmed(booking, service_name="PT") is True

    [(notification_type, recipient, data)] = sender.sent
    assert notification_type == "booking_confirmation"
    assert recipient == world.client.id
    assert data["service_name"] == "PT"
    queued = _queued(db, booking.id)
    assert [item.notification_type for item in queued] == ["reminder_24h", "reminder_2h"]
    assert queued[0].payload["booking_id"] == booking.id


def test_offsets_already_passed_are_skipped(
    db, seed, notification_service, world, now
):
    soon = now + timedelta(hours=5)
    booking = seed.booking(world.client, world.trainer.id, soon)

    assert notification_service.schedule_booking_reminders(booking) == 1

    [reminder] = _queued(db, booking.id)
    assert reminder.notification_type == "reminder_2h"


def test_cancellation_withdraws_reminders(
    db, seed, notification_service, world, session_start, sender
):
    booking = seed.booking(world.client, world.trainer.id, session_start)
    notification_service.schedule_booking_reminders(booking)

    notification_service.notify_booking_cancelled(booking, credits_refunded=1)

    statuses = {item.status for item in _queued(db, booking.id)}
    assert statuses == {ScheduledNotificationStatus.CANCELLED.value}
    assert sender.for_type("booking_cancelled")[0][2]["credits_refunded"] == 1


def test_undeliverable_reminder_is_marked_failed(db, seed, world, session_start, clock):
    service = NotificationService(db, sender=FailingSender(), clock=clock)
    booking = seed.booking(world.client, world.trainer.id, session_start)
    service.schedule_booking_reminders(booking)
    clock.set(session_start - timedelta(hours=24))

    assert service.dispatch_due() == 0

    first = _queued(db, booking.id)[0]
    db.refresh(first)
    assert first.status == ScheduledNotificationStatus.FAILED.value
    assert first.last_error == "delivery failed"
