# backend/studiobook/models/notification.py
"""
Queued notifications (session reminders).

Immediate notifications go straight to the sender; reminders are written
here with a due time and picked up by the maintenance dispatcher.
"""

from enum import Enum

from sqlalchemy import CheckConstraint, Column, DateTime, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from ..core.ulid_helper import generate_ulid
from ..database import Base


class NotificationType(str, Enum):
    BOOKING_CONFIRMATION = "booking_confirmation"
    BOOKING_CANCELLED = "booking_cancelled"
    REMINDER_24H = "reminder_24h"
    REMINDER_2H = "reminder_2h"
    BOOKING_REQUEST_RECEIVED = "booking_request_received"
    BOOKING_REQUEST_ACCEPTED = "booking_request_accepted"
    BOOKING_REQUEST_DECLINED = "booking_request_declined"


class ScheduledNotificationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ScheduledNotification(Base):
    __tablename__ = "notification_queue"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    booking_id = Column(String(26), nullable=True, index=True)
    recipient_id = Column(String(26), nullable=False)
    notification_type = Column(String(40), nullable=False)
    scheduled_for = Column(DateTime(timezone=True), nullable=False)
    payload = Column(JSONB(astext_type=Text()).with_variant(JSON(), "sqlite"), nullable=True)
    status = Column(String(20), nullable=False, default=ScheduledNotificationStatus.PENDING.value)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'sent', 'cancelled', 'failed')",
            name="ck_notification_queue_status",
        ),
        Index("ix_notification_queue_due", "status", "scheduled_for"),
    )

    def __repr__(self) -> str:
        return (
            f"<ScheduledNotification {self.id}: {self.notification_type} "
            f"for={self.recipient_id} at={self.scheduled_for} status={self.status}>"
        )
