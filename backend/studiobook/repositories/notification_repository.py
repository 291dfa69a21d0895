# backend/studiobook/repositories/notification_repository.py
"""
Notification Repository

Queue of scheduled notifications (session reminders).
"""

from datetime import datetime
import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.notification import ScheduledNotification, ScheduledNotificationStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class NotificationRepository(BaseRepository[ScheduledNotification]):
    def __init__(self, db: Session):
        super().__init__(db, ScheduledNotification)
        self.logger = logging.getLogger(__name__)

    def get_due(self, now: datetime, limit: int = 200) -> List[ScheduledNotification]:
        query = (
            self._build_query()
            .filter(
                ScheduledNotification.status == ScheduledNotificationStatus.PENDING.value,
                ScheduledNotification.scheduled_for <= now,
            )
            .order_by(ScheduledNotification.scheduled_for, ScheduledNotification.id)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return self._execute_query(query)

    def get_pending_for_booking(self, booking_id: str) -> List[ScheduledNotification]:
        query = self._build_query().filter(
            ScheduledNotification.booking_id == booking_id,
            ScheduledNotification.status == ScheduledNotificationStatus.PENDING.value,
        )
        return self._execute_query(query)

    def cancel_pending_for_booking(self, booking_id: str) -> int:
        try:
            count = (
                self.db.query(ScheduledNotification)
                .filter(
                    ScheduledNotification.booking_id == booking_id,
                    ScheduledNotification.status == ScheduledNotificationStatus.PENDING.value,
                )
                .update(
                    {ScheduledNotification.status: ScheduledNotificationStatus.CANCELLED.value},
                    synchronize_session="fetch",
                )
            )
            return int(count or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error cancelling reminders for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to cancel reminders: {str(e)}") from e
