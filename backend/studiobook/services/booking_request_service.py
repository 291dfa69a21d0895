# backend/studiobook/services/booking_request_service.py
"""
Booking Request Service

Trainer-led studios do not let clients book directly. Clients submit a
request with one or more preferred times instead, and a trainer accepts
(which books the session through the normal pipeline) or declines it.
Pending requests lapse after ``booking_request_expiry_hours``.
"""

from datetime import datetime, timedelta
import logging
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.exceptions import BusinessRuleException, NotFoundException, ValidationException
from ..core.timezone_utils import ensure_utc
from ..models.booking import Booking, BookingRequest, BookingRequestStatus
from ..models.notification import NotificationType
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .booking_service import BookingCreateResult, BookingService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


class BookingRequestService(BaseService):
    def __init__(
        self,
        db: Session,
        booking_service: Optional[BookingService] = None,
        notification_service: Optional[NotificationService] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(db, clock)
        self.repository = RepositoryFactory.create_booking_request_repository(db)
        self.notification_service = notification_service or NotificationService(
            db, clock=self.clock
        )
        self.booking_service = booking_service or BookingService(
            db, notification_service=self.notification_service, clock=self.clock
        )
        self.membership_service = self.booking_service.membership_service

    @BaseService.measure_operation("create_booking_request")
    def create_request(
        self,
        client_id: str,
        service_id: str,
        trainer_id: str,
        preferred_times: Sequence[datetime],
        notes: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> BookingRequest:
        """
        Submit a booking request to a trainer.

        Args:
            client_id: Requesting client
            service_id: Service wanted; must be in the client's scope
            trainer_id: Trainer asked; must be in the client's scope
            preferred_times: Candidate start times, most preferred first
            notes: Optional message to the trainer
            expires_at: When the request lapses (default 48 hours from now)

        Returns:
            The pending request
        """
        now = self.clock.now()
        if not preferred_times:
            raise ValidationException(
                "At least one preferred time is required", code="NO_PREFERRED_TIMES"
            )
        times = [ensure_utc(value) for value in preferred_times]
        if any(value <= now for value in times):
            raise ValidationException(
                "Preferred times must be in the future", code="PREFERRED_TIME_IN_PAST"
            )

        expiry = (
            ensure_utc(expires_at)
            if expires_at is not None
            else now + timedelta(hours=settings.booking_request_expiry_hours)
        )
        if expiry <= now:
            raise ValidationException("Request expiry must be in the future")

        client = self.membership_service.get_client(client_id)
        lookup_ids = self.membership_service.resolve_lookup_ids(client)
        service = self.booking_service.load_service_in_scope(service_id, lookup_ids)
        self.booking_service.ensure_trainer_in_scope(trainer_id, lookup_ids)
        studio = self.membership_service.governing_studio_for_client(client, lookup_ids)

        with self.transaction():
            request = self.repository.create(
                studio_id=studio.id if studio is not None else client.studio_id,
                trainer_id=trainer_id,
                client_id=client.id,
                service_id=service.id,
                preferred_times=[value.isoformat() for value in times],
                notes=notes,
                status=BookingRequestStatus.PENDING.value,
                expires_at=expiry,
            )

        self.log_operation("create_booking_request", request_id=request.id, trainer_id=trainer_id)
        self.notification_service.send(
            NotificationType.BOOKING_REQUEST_RECEIVED.value,
            trainer_id,
            {
                "request_id": request.id,
                "client_id": client.id,
                "service_name": service.name,
                "preferred_times": request.preferred_times,
                "expires_at": expiry.isoformat(),
            },
        )
        return request

    @BaseService.measure_operation("accept_booking_request")
    def accept_request(
        self,
        staff_id: str,
        request_id: str,
        accepted_time: Optional[datetime] = None,
    ) -> BookingCreateResult:
        """
        Accept a pending request and book the session.

        The booking goes through opening hours, conflict and credit checks.
        It is created confirmed, and the request flips to accepted in the same
        transaction.
        """
        request = self._load_managed_request(staff_id, request_id)
        self._ensure_open(request)

        start = ensure_utc(accepted_time) if accepted_time else request.preferred_datetimes()[0]
        if start <= self.clock.now():
            raise ValidationException("Accepted time must be in the future")

        client = self.membership_service.get_client(request.client_id)
        lookup_ids = self.membership_service.resolve_lookup_ids(client)
        service = self.booking_service.load_service_in_scope(
            request.service_id, lookup_ids, require_public=False
        )
        self.booking_service.ensure_trainer_in_scope(request.trainer_id, lookup_ids)
        self.booking_service.credit_service.ensure_available(client.id, service.required_credits)
        studio = self.membership_service.governing_studio_for_client(client, lookup_ids)
        self.booking_service.validate_slot(studio, request.trainer_id, start, service.duration)

        def mark_accepted(booking: Booking) -> None:
            locked = self.repository.get_for_update(request.id)
            if locked is None:
                raise NotFoundException("Booking request not found")
            self._ensure_open(locked)
            locked.status = BookingRequestStatus.ACCEPTED.value
            locked.accepted_time = start
            locked.booking_id = booking.id
            locked.responded_by = staff_id
            locked.responded_at = self.clock.now()

        booking, remaining = self.booking_service.place_booking(
            client,
            service,
            request.trainer_id,
            start,
            created_by=staff_id,
            notes=request.notes,
            after_insert=mark_accepted,
        )

        self.notification_service.send(
            NotificationType.BOOKING_REQUEST_ACCEPTED.value,
            client.id,
            {"request_id": request.id, "booking_id": booking.id, "scheduled_at": start.isoformat()},
        )
        self.notification_service.notify_booking_confirmed(booking, service_name=service.name)
        return BookingCreateResult(booking=booking, remaining_credits=remaining)

    @BaseService.measure_operation("decline_booking_request")
    def decline_request(
        self, staff_id: str, request_id: str, reason: Optional[str] = None
    ) -> BookingRequest:
        with self.transaction():
            request = self._load_managed_request(staff_id, request_id, lock=True)
            self._ensure_open(request)
            request.status = BookingRequestStatus.DECLINED.value
            request.decline_reason = reason
            request.responded_by = staff_id
            request.responded_at = self.clock.now()

        self.notification_service.send(
            NotificationType.BOOKING_REQUEST_DECLINED.value,
            request.client_id,
            {"request_id": request.id, "reason": reason},
        )
        return request

    def list_requests(
        self, staff_id: str, status: Optional[BookingRequestStatus] = None
    ) -> List[BookingRequest]:
        trainer_ids = self.membership_service.managed_trainer_ids(staff_id)
        return self.repository.list_for_trainers(
            trainer_ids, status=status.value if status else None
        )

    def list_client_requests(self, client_id: str) -> List[BookingRequest]:
        return self.repository.list_for_client(client_id)

    @BaseService.measure_operation("expire_booking_requests")
    def expire_stale_requests(self) -> int:
        with self.transaction():
            count = self.repository.expire_stale(self.clock.now())
        if count:
            self.logger.info(f"Expired {count} stale booking requests")
        return count

    def _load_managed_request(
        self, staff_id: str, request_id: str, lock: bool = False
    ) -> BookingRequest:
        request = (
            self.repository.get_for_update(request_id)
            if lock
            else self.repository.get_by_id(request_id)
        )
        if request is None or not self.membership_service.staff_can_manage(
            staff_id, request.trainer_id, request.studio_id
        ):
            raise NotFoundException("Booking request not found")
        return request

    def _ensure_open(self, request: BookingRequest) -> None:
        if request.status != BookingRequestStatus.PENDING.value:
            raise BusinessRuleException(
                f"This booking request has already been {request.status}",
                code="REQUEST_NOT_PENDING",
                details={"status": request.status},
            )
        if not request.is_open(self.clock.now()):
            raise BusinessRuleException(
                "This booking request has expired", code="REQUEST_EXPIRED"
            )
