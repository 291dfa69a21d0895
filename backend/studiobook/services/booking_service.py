# backend/studiobook/services/booking_service.py
"""
Booking Service

Booking lifecycle for clients and studio staff.

Client self-booking runs a fixed series of gates (client, studio mode,
service, trainer, credits, opening hours, conflicts); the first failure
aborts with nothing written. The booking insert and the credit debit then
happen in a single database transaction, so a failed debit never leaves an
orphan booking behind.

Cancellation applies the governing studio's policy: outside the window the
refund is full, inside it the refund tiers decide, and a studio without
tiers refuses late cancellation outright.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import Callable, List, Optional, Set, Tuple

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.exceptions import (
    BookingConflictException,
    BusinessRuleException,
    CancellationWindowException,
    ForbiddenException,
    NotFoundException,
    OutsideOpeningHoursException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc
from ..models.booking import OVERLAP_CONSTRAINT_NAME, Booking, BookingStatus
from ..models.client import Client
from ..models.service import Service
from ..models.studio import Studio
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .cancellation_policy import (
    FULL_REFUND_PERCENT,
    CancellationPolicy,
    CancellationPolicyEngine,
)
from .conflict_checker import ConflictChecker
from .credit_service import CreditService
from .notification_service import NotificationService
from .opening_hours import is_within_opening_hours
from .studio_membership_service import StudioMembershipService

logger = logging.getLogger(__name__)

SELF_BOOKING_DISABLED_MESSAGE = (
    "Self-booking is not enabled for your account. Please contact your studio."
)
TRAINER_LED_MESSAGE = (
    "This studio requires trainer-approved bookings. Please submit a booking request instead."
)
GENERIC_CONFLICT_MESSAGE = "This time slot conflicts with an existing booking"
HOLD_EXPIRED_REASON = "Soft hold expired"
HOLD_EXPIRED_REFUND_NOTE = "Credit refund for expired hold"
STAFF_CANCEL_REFUND_NOTE = "Credit refund for trainer-cancelled booking"
NO_SHOW_REFUND_NOTE = "Credit refund for no-show"
SOFT_DELETE_REASON = "Deleted by staff"


@dataclass(frozen=True)
class BookingCreateResult:
    booking: Booking
    remaining_credits: int


@dataclass(frozen=True)
class CancellationResult:
    booking: Booking
    credits_refunded: int
    refund_percent: int
    already_cancelled: bool = False


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Composes the membership resolver, conflict checker, credit ledger and
    notification dispatcher. All of them share the request's session so a
    single ``transaction()`` covers booking and ledger writes.
    """

    @staticmethod
    def _is_deadlock_error(exc: OperationalError) -> bool:
        orig = getattr(exc, "orig", None)
        pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        if pgcode == "40P01":
            return True
        message = str(exc).lower()
        return "deadlock detected" in message

    def __init__(
        self,
        db: Session,
        notification_service: Optional[NotificationService] = None,
        clock: Optional[Clock] = None,
        membership_service: Optional[StudioMembershipService] = None,
        credit_service: Optional[CreditService] = None,
        conflict_checker: Optional[ConflictChecker] = None,
    ):
        """
        Initialize booking service.

        Args:
            db: Database session
            notification_service: Optional notification service instance
            clock: Time source shared with every collaborator
            membership_service: Optional tenant scope resolver
            credit_service: Optional credit ledger
            conflict_checker: Optional conflict checker
        """
        super().__init__(db, clock)
        self.repository = RepositoryFactory.create_booking_repository(db)
        self.conflict_checker_repository = RepositoryFactory.create_conflict_checker_repository(
            db
        )
        self.service_repository = RepositoryFactory.create_service_repository(db)
        self.membership_service = membership_service or StudioMembershipService(db, self.clock)
        self.credit_service = credit_service or CreditService(db, self.clock)
        self.conflict_checker = conflict_checker or ConflictChecker(
            db, self.conflict_checker_repository, self.clock
        )
        self.notification_service = notification_service or NotificationService(
            db, clock=self.clock
        )
        self.policy_engine = CancellationPolicyEngine()

    # ------------------------------------------------------------------
    # Client self-booking
    # ------------------------------------------------------------------

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self,
        client_id: str,
        service_id: str,
        trainer_id: str,
        scheduled_at: datetime,
        notes: Optional[str] = None,
    ) -> BookingCreateResult:
        """
        Create a confirmed booking on behalf of a client.

        Args:
            client_id: Booking client
            service_id: Service to book
            trainer_id: Trainer delivering the session
            scheduled_at: Start instant (naive values are treated as UTC)
            notes: Optional client notes

        Returns:
            The booking and the client's remaining credit total

        Raises:
            NotFoundException: Client, service or trainer unknown or out of scope
            ForbiddenException: Self-booking disabled or trainer-led studio
            ValidationException: Service unavailable, out of hours, or short on credits
            BookingConflictException: Trainer already booked for the slot
        """
        self.log_operation(
            "create_booking",
            client_id=client_id,
            service_id=service_id,
            trainer_id=trainer_id,
        )
        scheduled_at = ensure_utc(scheduled_at)

        # 1. Client
        client = self.membership_service.get_client(client_id)
        if not client.self_booking_allowed:
            raise ForbiddenException(SELF_BOOKING_DISABLED_MESSAGE, code="SELF_BOOKING_DISABLED")

        # 2. Tenant scope and booking model
        lookup_ids = self.membership_service.resolve_lookup_ids(client)
        studio = self.membership_service.governing_studio_for_client(client, lookup_ids)
        if studio is not None and studio.is_trainer_led:
            raise ForbiddenException(TRAINER_LED_MESSAGE, code="TRAINER_APPROVAL_REQUIRED")

        # 3-4. Service and trainer
        service = self.load_service_in_scope(service_id, lookup_ids, require_public=True)
        self.ensure_trainer_in_scope(trainer_id, lookup_ids)

        # 5. Credits (read-only; the debit below re-checks under lock)
        self.credit_service.ensure_available(client.id, service.required_credits)

        # 6-7. Slot
        self.validate_slot(studio, trainer_id, scheduled_at, service.duration)

        # 8-9. Insert and debit atomically
        booking, remaining = self.place_booking(
            client,
            service,
            trainer_id,
            scheduled_at,
            created_by=client.id,
            notes=notes,
        )

        self.notification_service.notify_booking_confirmed(booking, service_name=service.name)
        return BookingCreateResult(booking=booking, remaining_credits=remaining)

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self, client_id: str, booking_id: str, reason: Optional[str] = None
    ) -> CancellationResult:
        """
        Cancel a client's own booking under the studio's cancellation policy.

        Cancelling an already-cancelled booking succeeds and refunds nothing.
        """
        now = self.clock.now()

        with self.transaction():
            booking = self.repository.get_for_update(booking_id)
            if booking is None or booking.client_id != client_id:
                raise NotFoundException("Booking not found")

            if booking.status == BookingStatus.CANCELLED.value:
                return CancellationResult(
                    booking=booking, credits_refunded=0, refund_percent=0, already_cancelled=True
                )
            self._ensure_cancellable(booking)

            policy = self.policy_for_booking(booking)
            decision = self.policy_engine.evaluate(policy, booking.start_utc, now)
            if not decision.allowed:
                raise CancellationWindowException(policy.window_hours)

            booking.cancel(now, cancelled_by=client_id, reason=reason)
            refunded = self.credit_service.refund_booking(
                booking.id,
                decision.refund_percent,
                created_by=booking.trainer_id,
                use_transaction=False,
            )

        self.logger.info(
            f"Booking {booking.id} cancelled by client ({decision.policy_basis}, "
            f"{decision.refund_percent}% refund, {refunded} credits)"
        )
        prometheus_metrics.inc_booking_outcome("cancelled")
        self.notification_service.notify_booking_cancelled(booking, credits_refunded=refunded)
        return CancellationResult(
            booking=booking,
            credits_refunded=refunded,
            refund_percent=decision.refund_percent,
        )

    @BaseService.measure_operation("get_client_bookings")
    def get_client_bookings(
        self,
        client_id: str,
        status: Optional[str] = None,
        upcoming_only: bool = False,
        limit: int = 100,
    ) -> List[Booking]:
        self.membership_service.get_client(client_id)
        return self.repository.get_client_bookings(
            client_id,
            status=status,
            upcoming_after=self.clock.now() if upcoming_only else None,
            limit=limit,
        )

    def get_booking_for_client(self, client_id: str, booking_id: str) -> Booking:
        booking = self.repository.get_client_booking(booking_id, client_id)
        if booking is None:
            raise NotFoundException("Booking not found")
        return booking

    # ------------------------------------------------------------------
    # Staff operations
    # ------------------------------------------------------------------

    @BaseService.measure_operation("create_staff_booking")
    def create_staff_booking(
        self,
        staff_id: str,
        client_id: str,
        service_id: str,
        trainer_id: str,
        scheduled_at: datetime,
        status: BookingStatus = BookingStatus.CONFIRMED,
        notes: Optional[str] = None,
    ) -> BookingCreateResult:
        """
        Book a session for a client from the studio side.

        ``status`` may be confirmed or soft-hold. A soft-hold expires after the
        studio's hold length; a studio with no hold length confirms at once.
        Credits are debited at creation either way.
        """
        if status not in (BookingStatus.CONFIRMED, BookingStatus.SOFT_HOLD):
            raise ValidationException(
                "New bookings must be confirmed or soft-hold",
                code="INVALID_INITIAL_STATUS",
            )
        scheduled_at = ensure_utc(scheduled_at)

        client = self.membership_service.get_client_for_staff(staff_id, client_id)
        lookup_ids = self.membership_service.resolve_lookup_ids(client, repair=False)

        service = self.load_service_in_scope(service_id, lookup_ids, require_public=False)
        self.ensure_trainer_in_scope(trainer_id, lookup_ids)
        self.credit_service.ensure_available(client.id, service.required_credits)

        studio = self.membership_service.governing_studio_for_client(client, lookup_ids)
        self.validate_slot(studio, trainer_id, scheduled_at, service.duration)

        hold_expiry = None
        if status == BookingStatus.SOFT_HOLD:
            hold_minutes = (
                studio.soft_hold_length if studio is not None else settings.default_soft_hold_minutes
            )
            if hold_minutes:
                hold_expiry = self.clock.now() + timedelta(minutes=hold_minutes)
            else:
                status = BookingStatus.CONFIRMED

        booking, remaining = self.place_booking(
            client,
            service,
            trainer_id,
            scheduled_at,
            status=status,
            hold_expiry=hold_expiry,
            created_by=staff_id,
            notes=notes,
        )

        self.notification_service.notify_booking_confirmed(booking, service_name=service.name)
        return BookingCreateResult(booking=booking, remaining_credits=remaining)

    @BaseService.measure_operation("confirm_hold")
    def confirm_hold(self, staff_id: str, booking_id: str) -> Booking:
        """
        Turn a soft-hold into a confirmed booking.

        A hold that has already lapsed may still be confirmed as long as nobody
        else has taken the slot in the meantime.
        """
        now = self.clock.now()
        with self.transaction():
            booking = self._load_staff_booking(staff_id, booking_id)
            if booking.status != BookingStatus.SOFT_HOLD.value:
                raise BusinessRuleException(
                    "Only soft-hold bookings can be confirmed",
                    code="NOT_A_HOLD",
                    details={"current_status": booking.status},
                )
            if booking.hold_has_expired(now):
                conflicts = self.conflict_checker.find_conflicts(
                    booking.trainer_id,
                    booking.start_utc,
                    booking.duration,
                    exclude_booking_id=booking.id,
                )
                if conflicts:
                    raise BookingConflictException(
                        details={"conflicts": ConflictChecker.describe(conflicts)}
                    )
            booking.transition_to(BookingStatus.CONFIRMED, now)

        prometheus_metrics.inc_booking_outcome("hold_confirmed")
        return booking

    @BaseService.measure_operation("check_in")
    def check_in(self, staff_id: str, booking_id: str) -> Booking:
        return self._transition(staff_id, booking_id, BookingStatus.CHECKED_IN)

    @BaseService.measure_operation("complete_booking")
    def complete_booking(self, staff_id: str, booking_id: str) -> Booking:
        return self._transition(staff_id, booking_id, BookingStatus.COMPLETED)

    @BaseService.measure_operation("mark_late")
    def mark_late(self, staff_id: str, booking_id: str) -> Booking:
        return self._transition(staff_id, booking_id, BookingStatus.LATE)

    @BaseService.measure_operation("mark_no_show")
    def mark_no_show(self, staff_id: str, booking_id: str) -> CancellationResult:
        """
        Mark a booking as a no-show and apply the studio's no-show action.

        no_charge refunds everything, charge_partial refunds the configured
        share, charge_full (or no action configured) keeps the credits.
        """
        now = self.clock.now()
        with self.transaction():
            booking = self._load_staff_booking(staff_id, booking_id)
            booking.transition_to(BookingStatus.NO_SHOW, now)

            policy = self.policy_for_booking(booking)
            refund_percent = self.policy_engine.no_show_refund_percent(
                policy, settings.no_show_partial_refund_percent
            )
            refunded = self.credit_service.refund_booking(
                booking.id,
                refund_percent,
                NO_SHOW_REFUND_NOTE,
                created_by=staff_id,
                use_transaction=False,
            )

        prometheus_metrics.inc_booking_outcome("no_show")
        self.notification_service.cancel_booking_reminders(booking.id)
        return CancellationResult(
            booking=booking, credits_refunded=refunded, refund_percent=refund_percent
        )

    @BaseService.measure_operation("cancel_booking_as_staff")
    def cancel_booking_as_staff(
        self, staff_id: str, booking_id: str, reason: Optional[str] = None
    ) -> CancellationResult:
        """Studio-initiated cancellation; the client always gets a full refund."""
        now = self.clock.now()
        with self.transaction():
            booking = self._load_staff_booking(staff_id, booking_id)
            if booking.status == BookingStatus.CANCELLED.value:
                return CancellationResult(
                    booking=booking, credits_refunded=0, refund_percent=0, already_cancelled=True
                )
            self._ensure_cancellable(booking)

            booking.cancel(now, cancelled_by=staff_id, reason=reason)
            refunded = self.credit_service.refund_booking(
                booking.id,
                FULL_REFUND_PERCENT,
                STAFF_CANCEL_REFUND_NOTE,
                created_by=staff_id,
                use_transaction=False,
            )

        prometheus_metrics.inc_booking_outcome("cancelled_by_staff")
        self.notification_service.notify_booking_cancelled(booking, credits_refunded=refunded)
        return CancellationResult(
            booking=booking, credits_refunded=refunded, refund_percent=FULL_REFUND_PERCENT
        )

    @BaseService.measure_operation("delete_booking")
    def delete_booking(self, staff_id: str, booking_id: str, hard: bool = False) -> bool:
        """
        Remove a booking from the calendar without refunding it.

        Soft delete cancels the booking; hard delete removes the row. Ledger
        entries that reference the booking are kept either way.
        """
        now = self.clock.now()
        with self.transaction():
            booking = self._load_staff_booking(staff_id, booking_id)
            if hard:
                self.repository.hard_delete(booking)
            elif booking.status != BookingStatus.CANCELLED.value:
                self._ensure_cancellable(booking)
                booking.cancel(now, cancelled_by=staff_id, reason=SOFT_DELETE_REASON)

        self.logger.info(f"Booking {booking_id} deleted by {staff_id} (hard={hard})")
        self.notification_service.cancel_booking_reminders(booking_id)
        return True

    # ------------------------------------------------------------------
    # Expired holds
    # ------------------------------------------------------------------

    def release_hold(self, booking: Booking, now: datetime) -> int:
        """Cancel a lapsed soft-hold and give its credits back. Caller owns the transaction."""
        booking.cancel(now, reason=HOLD_EXPIRED_REASON)
        refunded = self.credit_service.refund_booking(
            booking.id,
            FULL_REFUND_PERCENT,
            HOLD_EXPIRED_REFUND_NOTE,
            use_transaction=False,
        )
        self.notification_service.cancel_booking_reminders(booking.id, use_transaction=False)
        self.logger.info(f"Released expired hold {booking.id} ({refunded} credits returned)")
        prometheus_metrics.inc_booking_outcome("hold_expired")
        return refunded

    def release_expired_holds(
        self, trainer_id: str, window_start: datetime, window_end: datetime
    ) -> int:
        """Release lapsed holds overlapping a window. Caller owns the transaction."""
        now = self.clock.now()
        holds = self.conflict_checker_repository.get_expired_holds_overlapping(
            trainer_id, window_start, window_end, now
        )
        for hold in holds:
            self.release_hold(hold, now)
        return len(holds)

    # ------------------------------------------------------------------
    # Shared pipeline steps
    # ------------------------------------------------------------------

    def load_service_in_scope(
        self, service_id: str, lookup_ids: Set[str], require_public: bool = True
    ) -> Service:
        service = self.service_repository.get_by_id(service_id)
        if service is None or not StudioMembershipService.service_in_scope(service, lookup_ids):
            raise NotFoundException("Service not found")
        if not service.is_active or (require_public and not service.is_public):
            raise ValidationException(
                "This service is not available for booking", code="SERVICE_UNAVAILABLE"
            )
        return service

    def ensure_trainer_in_scope(self, trainer_id: str, lookup_ids: Set[str]) -> None:
        if not self.membership_service.trainer_in_scope(trainer_id, lookup_ids):
            raise NotFoundException("Trainer not found")

    def validate_slot(
        self,
        studio: Optional[Studio],
        trainer_id: str,
        scheduled_at: datetime,
        duration_minutes: int,
    ) -> None:
        """Opening hours, then trainer conflicts."""
        if studio is not None:
            result = is_within_opening_hours(
                studio.opening_hours, scheduled_at, duration_minutes, studio.timezone
            )
            if not result.valid:
                raise OutsideOpeningHoursException(result.reason or "Outside opening hours")

        conflicts = self.conflict_checker.find_conflicts(trainer_id, scheduled_at, duration_minutes)
        if conflicts:
            raise BookingConflictException(
                details={"conflicts": ConflictChecker.describe(conflicts)}
            )

    def place_booking(
        self,
        client: Client,
        service: Service,
        trainer_id: str,
        scheduled_at: datetime,
        *,
        status: BookingStatus = BookingStatus.CONFIRMED,
        hold_expiry: Optional[datetime] = None,
        created_by: Optional[str] = None,
        notes: Optional[str] = None,
        after_insert: Optional[Callable[[Booking], None]] = None,
    ) -> Tuple[Booking, int]:
        """
        Insert the booking and debit its credits in one transaction.

        ``after_insert`` runs inside the same transaction, for callers that
        record the booking elsewhere (e.g. an accepted booking request).

        Returns:
            The booking and the remaining credit total
        """
        end = scheduled_at + timedelta(minutes=service.duration)
        studio_id = client.studio_id or service.studio_id or service.created_by or trainer_id

        try:
            with self.transaction():
                self.release_expired_holds(trainer_id, scheduled_at, end)
                booking = self.repository.create(
                    client_id=client.id,
                    trainer_id=trainer_id,
                    service_id=service.id,
                    studio_id=studio_id,
                    scheduled_at=scheduled_at,
                    duration=service.duration,
                    ends_at=end,
                    status=status.value,
                    hold_expiry=hold_expiry,
                    notes=notes,
                    created_by=created_by,
                )
                debit = self.credit_service.debit(
                    client.id,
                    trainer_id,
                    booking.id,
                    service.required_credits,
                    use_transaction=False,
                )
                if after_insert is not None:
                    after_insert(booking)
        except IntegrityError as exc:
            message = self._resolve_integrity_conflict_message(exc)
            self.logger.warning(f"Booking insert for trainer {trainer_id} rejected: {message}")
            raise BookingConflictException(message=message) from exc
        except OperationalError as exc:
            if self._is_deadlock_error(exc):
                raise BookingConflictException(message=GENERIC_CONFLICT_MESSAGE) from exc
            raise

        prometheus_metrics.inc_booking_outcome(status.value)
        self.log_operation(
            "booking_created",
            booking_id=booking.id,
            status=booking.status,
            credits_debited=debit.credits_debited,
        )
        return booking, debit.remaining

    def policy_for_booking(self, booking: Booking) -> CancellationPolicy:
        studio = self.membership_service.get_governing_studio(booking.studio_id)
        return CancellationPolicy.from_studio_config(
            studio.cancellation_window_hours if studio is not None else None,
            studio.cancellation_policy if studio is not None else None,
            settings.default_cancellation_window_hours,
        )

    def _resolve_integrity_conflict_message(self, integrity_error: IntegrityError) -> str:
        """
        Determine the conflict message from a database IntegrityError.
        """
        constraint_name: str = ""
        orig = getattr(integrity_error, "orig", None)
        diag = getattr(orig, "diag", None)

        if diag is not None:
            constraint_name = getattr(diag, "constraint_name", "") or ""

        if not constraint_name and orig is not None:
            if OVERLAP_CONSTRAINT_NAME in str(orig):
                constraint_name = OVERLAP_CONSTRAINT_NAME

        if constraint_name == OVERLAP_CONSTRAINT_NAME:
            return BookingConflictException().message
        return GENERIC_CONFLICT_MESSAGE

    def _load_staff_booking(self, staff_id: str, booking_id: str) -> Booking:
        """Lock a booking the staff member may manage; anything else looks missing."""
        booking = self.repository.get_for_update(booking_id)
        if booking is None or not self.membership_service.staff_can_manage(
            staff_id, booking.trainer_id, booking.studio_id
        ):
            raise NotFoundException("Booking not found")
        return booking

    def _transition(self, staff_id: str, booking_id: str, target: BookingStatus) -> Booking:
        with self.transaction():
            booking = self._load_staff_booking(staff_id, booking_id)
            booking.transition_to(target, self.clock.now())
        prometheus_metrics.inc_booking_outcome(target.value)
        return booking

    @staticmethod
    def _ensure_cancellable(booking: Booking) -> None:
        if booking.is_terminal:
            raise BusinessRuleException(
                f"Cannot cancel a booking that is {booking.status}",
                code="BOOKING_NOT_CANCELLABLE",
                details={"current_status": booking.status},
            )
