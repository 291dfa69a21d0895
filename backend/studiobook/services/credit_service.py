"""Credit ledger: FIFO debits, policy refunds, manual grants and expiry."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.exceptions import (
    BusinessRuleException,
    InsufficientCreditsException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc
from ..models.credit import ClientPackage, CreditUsage, CreditUsageReason
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .cancellation_policy import FULL_REFUND_PERCENT, refund_amount
from .studio_membership_service import StudioMembershipService

logger = logging.getLogger(__name__)

FULL_REFUND_NOTE = "Credit refund for cancelled booking"
MANUAL_ADDITION_NOTE = "Manual credit addition"


def partial_refund_note(refund_percent: int) -> str:
    return f"Partial credit refund ({refund_percent}%) for late cancellation"


def credit_status(total: int) -> str:
    """Display bucket for a credit balance; derived, never stored."""
    if total > 5:
        return "good"
    if total > 2:
        return "medium"
    if total > 0:
        return "low"
    return "none"


@dataclass(frozen=True)
class CreditAvailability:
    total: int
    uses_lots: bool


@dataclass(frozen=True)
class LotAllocation:
    lot_id: Optional[str]
    credits: int
    balance_after: int


@dataclass(frozen=True)
class DebitResult:
    credits_debited: int
    remaining: int
    allocations: List[LotAllocation] = field(default_factory=list)


@dataclass(frozen=True)
class CreditSummary:
    total: int
    status: str
    nearest_expiry: Optional[datetime]
    uses_lots: bool
    lots: List[ClientPackage] = field(default_factory=list)


class CreditService(BaseService):
    """
    Owns every change to a lot's sessions_remaining.

    ``debit`` and ``refund_booking`` are called from inside booking
    transactions and accept ``use_transaction=False`` so the booking row and
    the ledger rows commit or roll back together.
    """

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.credit_repository = RepositoryFactory.create_credit_repository(db)
        self.client_repository = RepositoryFactory.create_client_repository(db)

    def get_available_total(self, client_id: str) -> CreditAvailability:
        """
        Spendable balance: eligible lots when the client has any, else the
        legacy counter.
        """
        total, lot_count = self.credit_repository.get_available_total(
            client_id, self.clock.now()
        )
        if lot_count > 0:
            return CreditAvailability(total=total, uses_lots=True)
        return CreditAvailability(
            total=self.client_repository.get_legacy_balance(client_id), uses_lots=False
        )

    def ensure_available(self, client_id: str, credits_required: int) -> CreditAvailability:
        """Read-only pre-check used before any booking row exists."""
        availability = self.get_available_total(client_id)
        if availability.total < credits_required:
            raise InsufficientCreditsException(
                required=credits_required, available=availability.total
            )
        return availability

    @BaseService.measure_operation("credit_debit")
    def debit(
        self,
        client_id: str,
        trainer_id: Optional[str],
        booking_id: str,
        credits_required: int,
        *,
        use_transaction: bool = True,
    ) -> DebitResult:
        """
        Consume ``credits_required`` credits, nearest-expiry lot first.

        All-or-nothing: any shortfall raises InsufficientCreditsException and the
        enclosing transaction must be rolled back.
        """
        if credits_required <= 0:
            raise ValidationException("Credits required must be positive")

        def _debit() -> DebitResult:
            now = self.clock.now()
            lots = self.credit_repository.get_eligible_lots(client_id, now, lock=True)
            if not lots:
                return self._debit_legacy(client_id, trainer_id, booking_id, credits_required)

            available = sum(lot.sessions_remaining for lot in lots)
            if available < credits_required:
                raise InsufficientCreditsException(required=credits_required, available=available)

            allocations: List[LotAllocation] = []
            outstanding = credits_required
            for lot in lots:
                if outstanding == 0:
                    break
                take = min(outstanding, lot.sessions_remaining)
                if not self.credit_repository.decrement_lot(lot.id, take, now):
                    # Lot changed underneath us after it was read
                    self.logger.warning(
                        "Guarded debit of %s from lot %s matched no row", take, lot.id
                    )
                    raise InsufficientCreditsException(
                        required=credits_required,
                        available=self.get_available_total(client_id).total,
                    )
                balance_after = self.credit_repository.get_remaining(lot.id)
                self.credit_repository.add_usage(
                    client_package_id=lot.id,
                    client_id=client_id,
                    booking_id=booking_id,
                    credits_used=take,
                    balance_after=balance_after,
                    reason=CreditUsageReason.BOOKING.value,
                    created_by=trainer_id,
                )
                allocations.append(
                    LotAllocation(lot_id=lot.id, credits=take, balance_after=balance_after)
                )
                outstanding -= take

            prometheus_metrics.inc_credits_debited(credits_required, source="lot")
            return DebitResult(
                credits_debited=credits_required,
                remaining=available - credits_required,
                allocations=allocations,
            )

        if use_transaction:
            with self.transaction():
                return _debit()
        return _debit()

    def _debit_legacy(
        self,
        client_id: str,
        trainer_id: Optional[str],
        booking_id: str,
        credits_required: int,
    ) -> DebitResult:
        if not self.client_repository.debit_legacy_credits(client_id, credits_required):
            raise InsufficientCreditsException(
                required=credits_required,
                available=self.client_repository.get_legacy_balance(client_id),
            )
        balance_after = self.client_repository.get_legacy_balance(client_id)
        self.credit_repository.add_usage(
            client_package_id=None,
            client_id=client_id,
            booking_id=booking_id,
            credits_used=credits_required,
            balance_after=balance_after,
            reason=CreditUsageReason.BOOKING.value,
            created_by=trainer_id,
        )
        prometheus_metrics.inc_credits_debited(credits_required, source="legacy")
        return DebitResult(
            credits_debited=credits_required,
            remaining=balance_after,
            allocations=[
                LotAllocation(lot_id=None, credits=credits_required, balance_after=balance_after)
            ],
        )

    def credit(
        self,
        lot_id: str,
        amount: int,
        reason: CreditUsageReason,
        note: Optional[str] = None,
        *,
        client_id: str,
        booking_id: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> CreditUsage:
        """Return ``amount`` sessions to a lot and record the negative-delta entry."""
        if amount <= 0:
            raise ValidationException("Credit amount must be positive")
        if not self.credit_repository.increment_lot(lot_id, amount, self.clock.now()):
            raise BusinessRuleException(
                "Cannot return more credits to a lot than were used from it",
                details={"lot_id": lot_id, "amount": amount},
            )
        return self.credit_repository.add_usage(
            client_package_id=lot_id,
            client_id=client_id,
            booking_id=booking_id,
            credits_used=-amount,
            balance_after=self.credit_repository.get_remaining(lot_id),
            reason=reason.value,
            notes=note,
            created_by=created_by,
        )

    @BaseService.measure_operation("credit_refund_booking")
    def refund_booking(
        self,
        booking_id: str,
        refund_percent: int,
        note: Optional[str] = None,
        *,
        created_by: Optional[str] = None,
        use_transaction: bool = True,
    ) -> int:
        """
        Refund ``refund_percent`` of what a booking consumed.

        At most one refund per booking: if a refund entry already exists the
        call is a no-op returning 0. Credits go back to the lots they came
        from, in the order they were taken.
        """
        if refund_percent <= 0:
            return 0

        def _refund() -> int:
            if self.credit_repository.has_refund(booking_id):
                self.logger.info("Booking %s already refunded; skipping", booking_id)
                return 0

            debits = self.credit_repository.get_booking_debits(booking_id)
            original = sum(entry.credits_used for entry in debits)
            amount = refund_amount(original, refund_percent)
            if amount <= 0:
                return 0

            refund_note = note or (
                FULL_REFUND_NOTE
                if refund_percent >= FULL_REFUND_PERCENT
                else partial_refund_note(refund_percent)
            )

            outstanding = amount
            for entry in debits:
                if outstanding == 0:
                    break
                give = min(outstanding, entry.credits_used)
                if entry.client_package_id:
                    self.credit(
                        entry.client_package_id,
                        give,
                        CreditUsageReason.REFUND,
                        refund_note,
                        client_id=entry.client_id,
                        booking_id=booking_id,
                        created_by=created_by,
                    )
                else:
                    self.client_repository.credit_legacy_credits(entry.client_id, give)
                    self.credit_repository.add_usage(
                        client_package_id=None,
                        client_id=entry.client_id,
                        booking_id=booking_id,
                        credits_used=-give,
                        balance_after=self.client_repository.get_legacy_balance(entry.client_id),
                        reason=CreditUsageReason.REFUND.value,
                        notes=refund_note,
                        created_by=created_by,
                    )
                outstanding -= give

            prometheus_metrics.inc_credits_refunded(amount)
            self.log_operation(
                "refund_booking",
                booking_id=booking_id,
                refund_percent=refund_percent,
                credits_refunded=amount,
            )
            return amount

        if use_transaction:
            with self.transaction():
                return _refund()
        return _refund()

    @BaseService.measure_operation("credit_grant")
    def grant_credits(
        self,
        client_id: str,
        sessions: int,
        *,
        trainer_id: Optional[str] = None,
        validity_days: Optional[int] = None,
        package_id: Optional[str] = None,
        notes: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> ClientPackage:
        """Create a new lot for a client and log it as a manual addition."""
        if sessions <= 0:
            raise ValidationException("Sessions must be a positive number")
        if self.client_repository.get_by_id(client_id) is None:
            raise NotFoundException("Client not found")

        now = self.clock.now()
        days = validity_days or settings.default_credit_validity_days
        note = notes or MANUAL_ADDITION_NOTE

        with self.transaction():
            lot = self.credit_repository.create(
                client_id=client_id,
                trainer_id=trainer_id,
                package_id=package_id,
                sessions_total=sessions,
                sessions_used=0,
                sessions_remaining=sessions,
                purchased_at=now,
                expires_at=now + timedelta(days=days),
                notes=note,
            )
            self.credit_repository.add_usage(
                client_package_id=lot.id,
                client_id=client_id,
                credits_used=-sessions,
                balance_after=sessions,
                reason=CreditUsageReason.MANUAL_ADDITION.value,
                notes=note,
                created_by=created_by or trainer_id,
            )

        self.log_operation("grant_credits", client_id=client_id, sessions=sessions, lot_id=lot.id)
        return lot

    def grant_credits_as_staff(
        self,
        staff_id: str,
        client_id: str,
        sessions: int,
        *,
        validity_days: Optional[int] = None,
        package_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> ClientPackage:
        """Manual addition by studio staff; the client must belong to their studio."""
        StudioMembershipService(self.db, self.clock).get_client_for_staff(staff_id, client_id)
        return self.grant_credits(
            client_id,
            sessions,
            trainer_id=staff_id,
            validity_days=validity_days,
            package_id=package_id,
            notes=notes,
            created_by=staff_id,
        )

    @BaseService.measure_operation("credit_summary")
    def get_credits(self, client_id: str) -> CreditSummary:
        if self.client_repository.get_by_id(client_id) is None:
            raise NotFoundException("Client not found")
        now = self.clock.now()
        lots = self.credit_repository.get_eligible_lots(client_id, now)
        if lots:
            total = sum(lot.sessions_remaining for lot in lots)
            return CreditSummary(
                total=total,
                status=credit_status(total),
                nearest_expiry=ensure_utc(lots[0].expires_at),
                uses_lots=True,
                lots=lots,
            )

        total = self.client_repository.get_legacy_balance(client_id)
        return CreditSummary(
            total=total, status=credit_status(total), nearest_expiry=None, uses_lots=False
        )

    def get_usage_history(self, client_id: str, limit: int = 50) -> List[CreditUsage]:
        return self.credit_repository.get_usage_history(client_id, limit=limit)

    @BaseService.measure_operation("credit_expire_lots")
    def expire_lots(self) -> int:
        """Sweep active lots past their expiry into the expired state."""
        with self.transaction():
            count = self.credit_repository.expire_lots(self.clock.now())
        if count:
            self.logger.info("Expired %s credit lots", count)
        return count
