# backend/studiobook/services/availability_service.py
"""
Availability Service

Read-only view of a trainer's day for a client choosing a slot: the
governing studio's opening slots for that weekday and the intervals already
taken on the trainer's calendar. Busy intervals carry times only, never who
booked them. Lapsed soft-holds are not busy.
"""

from dataclasses import dataclass, field
from datetime import date
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.exceptions import NotFoundException
from ..core.timezone_utils import DEFAULT_TIMEZONE, local_day_bounds
from .base import BaseService
from .conflict_checker import ConflictChecker
from .opening_hours import slots_for_date
from .studio_membership_service import StudioMembershipService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrainerDay:
    trainer_id: str
    date: date
    timezone: str
    # False when the studio has no schedule; open_slots is then empty
    opening_hours_restricted: bool
    open_slots: List[Dict[str, str]] = field(default_factory=list)
    busy: List[Dict[str, Any]] = field(default_factory=list)


class AvailabilityService(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        membership_service: Optional[StudioMembershipService] = None,
        conflict_checker: Optional[ConflictChecker] = None,
    ):
        super().__init__(db, clock)
        self.membership_service = membership_service or StudioMembershipService(db, self.clock)
        self.conflict_checker = conflict_checker or ConflictChecker(db, clock=self.clock)

    @BaseService.measure_operation("get_trainer_day")
    def get_trainer_day(self, client_id: str, trainer_id: str, on_date: date) -> TrainerDay:
        """
        A trainer's opening slots and busy intervals on a studio-local date.

        Raises:
            NotFoundException: Unknown client, or a trainer outside the client's scope
        """
        client = self.membership_service.get_client(client_id)
        lookup_ids = self.membership_service.resolve_lookup_ids(client)
        if not self.membership_service.trainer_in_scope(trainer_id, lookup_ids):
            raise NotFoundException("Trainer not found")

        studio = self.membership_service.governing_studio_for_client(client, lookup_ids)
        tz_name = (studio.timezone if studio is not None else None) or DEFAULT_TIMEZONE
        slots = slots_for_date(studio.opening_hours if studio is not None else None, on_date)

        day_start, day_end = local_day_bounds(on_date, tz_name)
        busy = self.conflict_checker.blocking_between(trainer_id, day_start, day_end)

        return TrainerDay(
            trainer_id=trainer_id,
            date=on_date,
            timezone=tz_name,
            opening_hours_restricted=slots is not None,
            open_slots=[{"start": start, "end": end} for start, end in slots or []],
            busy=ConflictChecker.describe(busy),
        )
