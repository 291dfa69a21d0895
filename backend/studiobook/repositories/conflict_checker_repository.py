# backend/studiobook/repositories/conflict_checker_repository.py
"""
ConflictChecker Repository

Coarse SQL pre-filter for trainer double-booking. The exact half-open
interval test and the soft-hold expiry rule are applied by ConflictChecker
on the rows returned here.
"""

from datetime import datetime, timedelta
import logging
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import BLOCKING_STATUSES, Booking, BookingStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ConflictCheckerRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def get_candidate_bookings(
        self,
        trainer_id: str,
        window_start: datetime,
        window_end: datetime,
        lookback_minutes: int,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Blocking bookings for ``trainer_id`` that may touch [window_start, window_end).

        Rows starting within the lookback window are included even when their
        stored end does not reach window_start, so the caller's exact test sees
        every plausible neighbour.
        """
        try:
            lookback_start = window_start - timedelta(minutes=lookback_minutes)
            query = self.db.query(Booking).filter(
                Booking.trainer_id == trainer_id,
                Booking.status.in_(sorted(BLOCKING_STATUSES)),
                Booking.scheduled_at < window_end,
                or_(
                    Booking.scheduled_at >= lookback_start,
                    Booking.ends_at > window_start,
                ),
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return query.order_by(Booking.scheduled_at).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting conflict candidates for trainer {trainer_id}: {str(e)}")
            raise RepositoryException(f"Failed to get conflict candidates: {str(e)}") from e

    def get_expired_holds_overlapping(
        self,
        trainer_id: str,
        window_start: datetime,
        window_end: datetime,
        now: datetime,
    ) -> List[Booking]:
        """Soft-holds past their expiry that still sit on the trainer's calendar."""
        try:
            return (
                self.db.query(Booking)
                .filter(
                    and_(
                        Booking.trainer_id == trainer_id,
                        Booking.status == BookingStatus.SOFT_HOLD.value,
                        Booking.hold_expiry.isnot(None),
                        Booking.hold_expiry <= now,
                        Booking.scheduled_at < window_end,
                        Booking.ends_at > window_start,
                    )
                )
                .with_for_update()
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading expired holds for trainer {trainer_id}: {str(e)}")
            raise RepositoryException(f"Failed to load expired holds: {str(e)}") from e
