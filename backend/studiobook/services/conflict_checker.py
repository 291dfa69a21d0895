# backend/studiobook/services/conflict_checker.py
"""
Conflict Checker Service

Detects trainer double-booking. The repository returns a coarse candidate
set; the exact test here uses half-open intervals, so bookings that merely
touch at an endpoint never conflict. Expired soft-holds are ignored.

This check is best-effort pre-validation. Under concurrent writers the
PostgreSQL exclusion constraint on bookings is the authority.
"""

from datetime import datetime, timedelta
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.timezone_utils import ensure_utc
from ..models.booking import Booking
from ..repositories import RepositoryFactory
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from .base import BaseService

logger = logging.getLogger(__name__)


def intervals_overlap(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> bool:
    """Half-open [start, end) overlap test."""
    return start_a < end_b and end_a > start_b


class ConflictChecker(BaseService):
    """Service for checking booking conflicts."""

    def __init__(
        self,
        db: Session,
        repository: Optional[ConflictCheckerRepository] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(db, clock)
        self.logger = logging.getLogger(__name__)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)

    @BaseService.measure_operation("find_conflicts")
    def find_conflicts(
        self,
        trainer_id: str,
        candidate_start: datetime,
        duration_minutes: int,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Bookings of ``trainer_id`` that overlap the candidate interval.

        Args:
            trainer_id: Trainer whose calendar is checked
            candidate_start: Requested start instant
            duration_minutes: Requested length
            exclude_booking_id: Booking to ignore (e.g. the one being confirmed)

        Returns:
            Overlapping blocking bookings, earliest first
        """
        start = ensure_utc(candidate_start)
        end = start + timedelta(minutes=duration_minutes)
        conflicts = self.blocking_between(
            trainer_id, start, end, exclude_booking_id=exclude_booking_id
        )

        if conflicts:
            self.logger.warning(
                f"Found {len(conflicts)} booking conflicts for trainer {trainer_id} "
                f"between {start.isoformat()} and {end.isoformat()}"
            )
        return conflicts

    def blocking_between(
        self,
        trainer_id: str,
        window_start: datetime,
        window_end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """Bookings that occupy any part of [window_start, window_end), earliest first."""
        start = ensure_utc(window_start)
        end = ensure_utc(window_end)
        now = self.clock.now()

        candidates = self.repository.get_candidate_bookings(
            trainer_id,
            start,
            end,
            settings.conflict_lookback_minutes,
            exclude_booking_id=exclude_booking_id,
        )
        return [
            booking
            for booking in candidates
            if booking.blocks_slot(now)
            and intervals_overlap(start, end, booking.start_utc, booking.end_utc)
        ]

    def has_conflict(
        self,
        trainer_id: str,
        candidate_start: datetime,
        duration_minutes: int,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        return bool(
            self.find_conflicts(
                trainer_id,
                candidate_start,
                duration_minutes,
                exclude_booking_id=exclude_booking_id,
            )
        )

    @staticmethod
    def describe(conflicts: List[Booking]) -> List[Dict[str, Any]]:
        """Conflict details safe to return to the caller (no client identities)."""
        return [
            {
                "starts_at": booking.start_utc.isoformat(),
                "ends_at": booking.end_utc.isoformat(),
            }
            for booking in conflicts
        ]
