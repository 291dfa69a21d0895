# backend/studiobook/models/booking.py
"""
Booking and booking request models.

A booking stores its own interval (scheduled_at, duration) plus a
denormalized ends_at so PostgreSQL can enforce "no overlapping blocking
bookings per trainer" with an exclusion constraint on
tstzrange(scheduled_at, ends_at, '[)'). The constraint itself lives in the
alembic migration; SQLite test databases rely on the service-level check.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
import logging
from typing import Any, Dict, FrozenSet, List, Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from ..core.exceptions import InvalidStatusTransitionException
from ..core.timezone_utils import ensure_utc
from ..core.ulid_helper import generate_ulid
from ..database import Base

logger = logging.getLogger(__name__)

OVERLAP_CONSTRAINT_NAME = "bookings_no_overlap_per_trainer"


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    CONFIRMED = "confirmed"
    SOFT_HOLD = "soft-hold"  # Tentative, expires at hold_expiry
    CHECKED_IN = "checked-in"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"
    LATE = "late"


# Statuses that occupy the trainer's time
BLOCKING_STATUSES: FrozenSet[str] = frozenset(
    {
        BookingStatus.CONFIRMED.value,
        BookingStatus.SOFT_HOLD.value,
        BookingStatus.CHECKED_IN.value,
    }
)

TERMINAL_STATUSES: FrozenSet[str] = frozenset(
    {
        BookingStatus.CANCELLED.value,
        BookingStatus.COMPLETED.value,
        BookingStatus.NO_SHOW.value,
        BookingStatus.LATE.value,
    }
)

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    BookingStatus.SOFT_HOLD.value: frozenset(
        {
            BookingStatus.CONFIRMED.value,
            BookingStatus.CHECKED_IN.value,
            BookingStatus.CANCELLED.value,
            BookingStatus.NO_SHOW.value,
            BookingStatus.LATE.value,
        }
    ),
    BookingStatus.CONFIRMED.value: frozenset(
        {
            BookingStatus.CHECKED_IN.value,
            BookingStatus.COMPLETED.value,
            BookingStatus.CANCELLED.value,
            BookingStatus.NO_SHOW.value,
            BookingStatus.LATE.value,
        }
    ),
    BookingStatus.CHECKED_IN.value: frozenset(
        {
            BookingStatus.COMPLETED.value,
            BookingStatus.CANCELLED.value,
            BookingStatus.NO_SHOW.value,
            BookingStatus.LATE.value,
        }
    ),
}


class Booking(Base):
    """A client's session with a trainer."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    client_id = Column(String(26), nullable=False, index=True)
    trainer_id = Column(String(26), nullable=False, index=True)
    service_id = Column(String(26), nullable=True, index=True)
    studio_id = Column(String(26), nullable=True, index=True)

    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    duration = Column(Integer, nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False)

    status = Column(
        String(20), nullable=False, default=BookingStatus.CONFIRMED.value, index=True
    )
    hold_expiry = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(26), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(String(26), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('confirmed', 'soft-hold', 'checked-in', 'completed', "
            "'cancelled', 'no-show', 'late')",
            name="ck_bookings_status",
        ),
        CheckConstraint("duration > 0", name="ck_bookings_duration_positive"),
        CheckConstraint("ends_at > scheduled_at", name="ck_bookings_time_order"),
        Index("ix_bookings_trainer_schedule", "trainer_id", "scheduled_at"),
        Index("ix_bookings_client_schedule", "client_id", "scheduled_at"),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = BookingStatus.CONFIRMED.value
        if self.ends_at is None and self.scheduled_at is not None and self.duration:
            self.ends_at = self.scheduled_at + timedelta(minutes=self.duration)

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: client={self.client_id}, trainer={self.trainer_id}, "
            f"at={self.scheduled_at}, {self.duration}m, status={self.status}>"
        )

    @property
    def start_utc(self) -> datetime:
        return ensure_utc(self.scheduled_at)

    @property
    def end_utc(self) -> datetime:
        return self.start_utc + timedelta(minutes=self.duration)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def hold_has_expired(self, now: datetime) -> bool:
        """A soft-hold whose expiry has passed no longer occupies the slot."""
        if self.status != BookingStatus.SOFT_HOLD.value or self.hold_expiry is None:
            return False
        return ensure_utc(self.hold_expiry) <= now

    def blocks_slot(self, now: datetime) -> bool:
        return self.status in BLOCKING_STATUSES and not self.hold_has_expired(now)

    def transition_to(self, target: BookingStatus, when: Optional[datetime] = None) -> None:
        """Move to ``target`` or raise if the state machine forbids it."""
        current = self.status
        if target.value not in ALLOWED_TRANSITIONS.get(current, frozenset()):
            raise InvalidStatusTransitionException(current, target.value)

        when = when or datetime.now(timezone.utc)
        self.status = target.value
        if target == BookingStatus.CONFIRMED:
            self.hold_expiry = None
        elif target == BookingStatus.CHECKED_IN:
            self.checked_in_at = when
        elif target == BookingStatus.COMPLETED:
            self.completed_at = when
        logger.info(f"Booking {self.id} moved from {current} to {target.value}")

    def cancel(
        self,
        when: datetime,
        cancelled_by: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        """Cancel this booking."""
        self.transition_to(BookingStatus.CANCELLED, when)
        self.cancelled_at = when
        self.cancelled_by = cancelled_by
        self.cancellation_reason = reason


class BookingRequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class BookingRequest(Base):
    """Client-submitted request for trainer-approved studios."""

    __tablename__ = "booking_requests"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    studio_id = Column(String(26), nullable=True, index=True)
    trainer_id = Column(String(26), nullable=False, index=True)
    client_id = Column(String(26), nullable=False, index=True)
    service_id = Column(String(26), nullable=False)

    # ISO-8601 UTC timestamps, in client preference order
    preferred_times = Column(
        JSONB(astext_type=Text()).with_variant(JSON(), "sqlite"), nullable=False
    )
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=BookingRequestStatus.PENDING.value)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    accepted_time = Column(DateTime(timezone=True), nullable=True)
    booking_id = Column(String(26), nullable=True)
    responded_by = Column(String(26), nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    decline_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'accepted', 'declined', 'expired')",
            name="ck_booking_requests_status",
        ),
        Index("ix_booking_requests_trainer_status", "trainer_id", "status"),
    )

    def preferred_datetimes(self) -> List[datetime]:
        return [ensure_utc(datetime.fromisoformat(value)) for value in self.preferred_times or []]

    def is_open(self, now: datetime) -> bool:
        return (
            self.status == BookingRequestStatus.PENDING.value
            and ensure_utc(self.expires_at) > now
        )

    def __repr__(self) -> str:
        return f"<BookingRequest {self.id}: client={self.client_id}, status={self.status}>"
