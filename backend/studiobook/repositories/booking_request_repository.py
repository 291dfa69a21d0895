# backend/studiobook/repositories/booking_request_repository.py
"""
Booking Request Repository
"""

from datetime import datetime
import logging
from typing import Collection, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import BookingRequest, BookingRequestStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRequestRepository(BaseRepository[BookingRequest]):
    def __init__(self, db: Session):
        super().__init__(db, BookingRequest)
        self.logger = logging.getLogger(__name__)

    def get_for_update(self, request_id: str) -> Optional[BookingRequest]:
        query = self._build_query().filter(BookingRequest.id == request_id).with_for_update()
        return self._execute_first(query)

    def list_for_trainers(
        self,
        trainer_ids: Collection[str],
        status: Optional[str] = None,
        limit: int = 100,
    ) -> List[BookingRequest]:
        if not trainer_ids:
            return []
        query = self._build_query().filter(BookingRequest.trainer_id.in_(list(trainer_ids)))
        if status:
            query = query.filter(BookingRequest.status == status)
        query = query.order_by(BookingRequest.created_at.desc(), BookingRequest.id).limit(limit)
        return self._execute_query(query)

    def list_for_client(self, client_id: str, limit: int = 100) -> List[BookingRequest]:
        query = (
            self._build_query()
            .filter(BookingRequest.client_id == client_id)
            .order_by(BookingRequest.created_at.desc(), BookingRequest.id)
            .limit(limit)
        )
        return self._execute_query(query)

    def expire_stale(self, now: datetime) -> int:
        """Move pending requests past their expiry to expired."""
        try:
            count = (
                self.db.query(BookingRequest)
                .filter(
                    BookingRequest.status == BookingRequestStatus.PENDING.value,
                    BookingRequest.expires_at <= now,
                )
                .update(
                    {
                        BookingRequest.status: BookingRequestStatus.EXPIRED.value,
                        BookingRequest.updated_at: now,
                    },
                    synchronize_session="fetch",
                )
            )
            return int(count or 0)
        except SQLAlchemyError as e:
            self.logger.error(f"Error expiring booking requests: {str(e)}")
            raise RepositoryException(f"Failed to expire booking requests: {str(e)}") from e
