# backend/studiobook/repositories/booking_repository.py
"""
Booking Repository

Booking persistence. Inserts surface IntegrityError unchanged so the service
can translate exclusion-constraint violations into booking conflicts.
"""

from datetime import datetime
import logging
from typing import Any, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import Booking, BookingStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def create(self, **kwargs: Any) -> Booking:
        """Create a booking, exposing integrity errors for conflict handling."""
        try:
            return super().create(**kwargs)
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise exc.__cause__
            raise

    def get_for_update(self, booking_id: str) -> Optional[Booking]:
        """Load a booking locked until the end of the transaction."""
        query = self._build_query().filter(Booking.id == booking_id).with_for_update()
        return self._execute_first(query)

    def get_client_booking(self, booking_id: str, client_id: str) -> Optional[Booking]:
        query = self._build_query().filter(
            Booking.id == booking_id, Booking.client_id == client_id
        )
        return self._execute_first(query)

    def get_client_bookings(
        self,
        client_id: str,
        *,
        status: Optional[str] = None,
        upcoming_after: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[Booking]:
        query = self._build_query().filter(Booking.client_id == client_id)
        if status:
            query = query.filter(Booking.status == status)
        if upcoming_after is not None:
            query = query.filter(Booking.scheduled_at >= upcoming_after)
        query = query.order_by(Booking.scheduled_at.desc(), Booking.id).limit(limit)
        return self._execute_query(query)

    def get_expired_holds(self, now: datetime, limit: int = 500) -> List[Booking]:
        """All soft-holds whose expiry has passed, oldest first."""
        try:
            return (
                self._build_query()
                .filter(
                    Booking.status == BookingStatus.SOFT_HOLD.value,
                    Booking.hold_expiry.isnot(None),
                    Booking.hold_expiry <= now,
                )
                .order_by(Booking.hold_expiry, Booking.id)
                .limit(limit)
                .with_for_update()
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading expired holds: {str(e)}")
            raise RepositoryException(f"Failed to load expired holds: {str(e)}") from e

    def hard_delete(self, booking: Booking) -> None:
        try:
            self.db.delete(booking)
            self.db.flush()
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting booking {booking.id}: {str(e)}")
            raise RepositoryException(f"Failed to delete booking: {str(e)}") from e
