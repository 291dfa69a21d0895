# backend/studiobook/services/notification_service.py
"""
Notification Service

Fire-and-forget delivery of booking notifications. A failed send is logged
and reported as False; it never rolls back or fails the booking operation
that triggered it. Session reminders are queued with a due time and sent
later by ``dispatch_due``.
"""

from datetime import timedelta
import logging
from typing import Any, Dict, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.exceptions import RepositoryException, ServiceException
from ..models.booking import Booking
from ..models.notification import NotificationType, ScheduledNotificationStatus
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class NotificationSender(Protocol):
    def send(self, notification_type: str, recipient_id: str, template_data: Dict[str, Any]) -> None:
        ...


class LoggingNotificationSender:
    """Default sender: writes the notification to the application log."""

    def send(self, notification_type: str, recipient_id: str, template_data: Dict[str, Any]) -> None:
        logger.info(
            "Notification %s -> %s: %s", notification_type, recipient_id, template_data
        )


def reminder_type(offset_hours: int) -> str:
    return f"reminder_{offset_hours}h"


def booking_template_data(booking: Booking, **extra: Any) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "booking_id": booking.id,
        "trainer_id": booking.trainer_id,
        "service_id": booking.service_id,
        "scheduled_at": booking.start_utc.isoformat(),
        "duration": booking.duration,
        "status": booking.status,
    }
    data.update(extra)
    return data


class NotificationService(BaseService):
    def __init__(
        self,
        db: Session,
        sender: Optional[NotificationSender] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(db, clock)
        self.sender: NotificationSender = sender or LoggingNotificationSender()
        self.repository = RepositoryFactory.create_notification_repository(db)

    def send(
        self, notification_type: str, recipient_id: str, template_data: Dict[str, Any]
    ) -> bool:
        """Deliver one notification; failures are logged, never raised."""
        try:
            self.sender.send(notification_type, recipient_id, template_data)
            return True
        except Exception as e:
            self.logger.error(
                f"Failed to send {notification_type} to {recipient_id}: {str(e)}", exc_info=True
            )
            return False

    @BaseService.measure_operation("notify_booking_confirmed")
    def notify_booking_confirmed(self, booking: Booking, **extra: Any) -> bool:
        sent = self.send(
            NotificationType.BOOKING_CONFIRMATION.value,
            booking.client_id,
            booking_template_data(booking, **extra),
        )
        self.schedule_booking_reminders(booking)
        return sent

    @BaseService.measure_operation("notify_booking_cancelled")
    def notify_booking_cancelled(self, booking: Booking, credits_refunded: int = 0) -> bool:
        self.cancel_booking_reminders(booking.id)
        return self.send(
            NotificationType.BOOKING_CANCELLED.value,
            booking.client_id,
            booking_template_data(booking, credits_refunded=credits_refunded),
        )

    def schedule_booking_reminders(self, booking: Booking) -> int:
        """
        Queue one reminder per configured offset that is still in the future.

        Returns the number queued; 0 when queueing failed (logged).
        """
        now = self.clock.now()
        queued = 0
        try:
            with self.transaction():
                for offset in sorted(set(settings.reminder_offsets_hours), reverse=True):
                    due = booking.start_utc - timedelta(hours=offset)
                    if due <= now:
                        continue
                    self.repository.create(
                        booking_id=booking.id,
                        recipient_id=booking.client_id,
                        notification_type=reminder_type(offset),
                        scheduled_for=due,
                        payload=booking_template_data(booking),
                    )
                    queued += 1
        except (RepositoryException, ServiceException, SQLAlchemyError) as e:
            self.logger.error(f"Failed to queue reminders for booking {booking.id}: {str(e)}")
            return 0
        return queued

    def cancel_booking_reminders(self, booking_id: str, use_transaction: bool = True) -> int:
        if not use_transaction:
            return self.repository.cancel_pending_for_booking(booking_id)
        try:
            with self.transaction():
                return self.repository.cancel_pending_for_booking(booking_id)
        except (RepositoryException, ServiceException, SQLAlchemyError) as e:
            self.logger.error(f"Failed to cancel reminders for booking {booking_id}: {str(e)}")
            return 0

    @BaseService.measure_operation("dispatch_due_notifications")
    def dispatch_due(self) -> int:
        """Send every queued notification whose due time has passed."""
        now = self.clock.now()
        sent = 0
        with self.transaction():
            for item in self.repository.get_due(now):
                if self.send(item.notification_type, item.recipient_id, dict(item.payload or {})):
                    item.status = ScheduledNotificationStatus.SENT.value
                    item.sent_at = now
                    sent += 1
                else:
                    item.status = ScheduledNotificationStatus.FAILED.value
                    item.last_error = "delivery failed"
        return sent
