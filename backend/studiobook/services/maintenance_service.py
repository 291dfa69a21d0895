# backend/studiobook/services/maintenance_service.py
"""
Periodic housekeeping: lapsed soft-holds, expired credit lots, stale
booking requests and due reminders.
"""

from dataclasses import asdict, dataclass
import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .booking_request_service import BookingRequestService
from .booking_service import BookingService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


@dataclass
class MaintenanceReport:
    holds_released: int = 0
    credits_returned: int = 0
    lots_expired: int = 0
    requests_expired: int = 0
    notifications_sent: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


class MaintenanceService(BaseService):
    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        super().__init__(db, clock)
        self.notification_service = notification_service or NotificationService(
            db, clock=self.clock
        )
        self.booking_service = BookingService(
            db, notification_service=self.notification_service, clock=self.clock
        )
        self.request_service = BookingRequestService(
            db,
            booking_service=self.booking_service,
            notification_service=self.notification_service,
            clock=self.clock,
        )
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    @BaseService.measure_operation("release_expired_holds")
    def release_expired_holds(self) -> MaintenanceReport:
        """
        Cancel every soft-hold past its expiry and refund it in full.

        The session never took place, so no cancellation policy applies.
        """
        now = self.clock.now()
        report = MaintenanceReport()
        with self.transaction():
            for hold in self.booking_repository.get_expired_holds(now):
                report.credits_returned += self.booking_service.release_hold(hold, now)
                report.holds_released += 1

        if report.holds_released:
            self.logger.info(
                f"Released {report.holds_released} expired holds "
                f"({report.credits_returned} credits returned)"
            )
        return report

    def expire_lots(self) -> int:
        return self.booking_service.credit_service.expire_lots()

    def expire_stale_requests(self) -> int:
        return self.request_service.expire_stale_requests()

    def dispatch_reminders(self) -> int:
        return self.notification_service.dispatch_due()

    @BaseService.measure_operation("run_maintenance")
    def run_all(self) -> MaintenanceReport:
        report = self.release_expired_holds()
        report.lots_expired = self.expire_lots()
        report.requests_expired = self.expire_stale_requests()
        report.notifications_sent = self.dispatch_reminders()
        self.log_operation("run_maintenance", **report.as_dict())
        return report
