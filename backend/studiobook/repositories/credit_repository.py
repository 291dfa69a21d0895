# backend/studiobook/repositories/credit_repository.py
"""
Credit Repository

Lot and ledger queries backing the credit lifecycle: eligible-lot lookup in
FIFO order, guarded decrements, refunds and the expiry sweep.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import List, Tuple, cast

from sqlalchemy import and_, case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.credit import ClientPackage, CreditUsage, CreditUsageReason, LotStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


def _eligible_lot_filter(client_id: str, now: datetime):
    return and_(
        ClientPackage.client_id == client_id,
        ClientPackage.status == LotStatus.ACTIVE.value,
        ClientPackage.expires_at > now,
        ClientPackage.sessions_remaining > 0,
    )


class CreditRepository(BaseRepository[ClientPackage]):
    """Repository for credit lots and usage entries."""

    def __init__(self, db: Session):
        super().__init__(db, ClientPackage)
        self.logger = logging.getLogger(__name__)

    # Lots

    def get_eligible_lots(
        self, client_id: str, now: datetime, *, lock: bool = False
    ) -> List[ClientPackage]:
        """Eligible lots, nearest expiry first; ``lock`` takes row locks for a debit."""
        try:
            query = (
                self.db.query(ClientPackage)
                .filter(_eligible_lot_filter(client_id, now))
                .order_by(
                    ClientPackage.expires_at.asc(),
                    ClientPackage.purchased_at.asc(),
                    ClientPackage.id.asc(),
                )
            )
            if lock:
                query = query.with_for_update()
            return cast(List[ClientPackage], query.all())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to get eligible lots for %s: %s", client_id, str(exc))
            raise RepositoryException("Failed to get eligible credit lots") from exc

    def get_available_total(self, client_id: str, now: datetime) -> Tuple[int, int]:
        """Return (sum of remaining sessions, number of eligible lots)."""
        try:
            total, lot_count = (
                self.db.query(
                    func.coalesce(func.sum(ClientPackage.sessions_remaining), 0),
                    func.count(ClientPackage.id),
                )
                .filter(_eligible_lot_filter(client_id, now))
                .one()
            )
            return int(total or 0), int(lot_count or 0)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to total credits for %s: %s", client_id, str(exc))
            raise RepositoryException("Failed to get available credits") from exc

    def decrement_lot(self, lot_id: str, amount: int, now: datetime) -> bool:
        """
        Take ``amount`` sessions from a lot if it still has them.

        The WHERE clause carries the balance check; a zero rowcount means a
        concurrent writer got there first. The lot flips to exhausted in the
        same statement when it hits zero.
        """
        try:
            updated = (
                self.db.query(ClientPackage)
                .filter(
                    ClientPackage.id == lot_id,
                    ClientPackage.status == LotStatus.ACTIVE.value,
                    ClientPackage.expires_at > now,
                    ClientPackage.sessions_remaining >= amount,
                )
                .update(
                    {
                        ClientPackage.sessions_used: ClientPackage.sessions_used + amount,
                        ClientPackage.sessions_remaining: ClientPackage.sessions_remaining
                        - amount,
                        ClientPackage.status: case(
                            (
                                ClientPackage.sessions_remaining - amount <= 0,
                                LotStatus.EXHAUSTED.value,
                            ),
                            else_=ClientPackage.status,
                        ),
                        ClientPackage.updated_at: now,
                    },
                    synchronize_session="fetch",
                )
            )
            return updated == 1
        except SQLAlchemyError as exc:
            self.logger.error("Failed to decrement lot %s: %s", lot_id, str(exc))
            raise RepositoryException("Failed to debit credit lot") from exc

    def increment_lot(self, lot_id: str, amount: int, now: datetime) -> bool:
        """Return ``amount`` sessions to a lot, re-activating it if it was exhausted."""
        try:
            updated = (
                self.db.query(ClientPackage)
                .filter(
                    ClientPackage.id == lot_id,
                    ClientPackage.sessions_used >= amount,
                )
                .update(
                    {
                        ClientPackage.sessions_used: ClientPackage.sessions_used - amount,
                        ClientPackage.sessions_remaining: ClientPackage.sessions_remaining
                        + amount,
                        ClientPackage.status: case(
                            (
                                and_(
                                    ClientPackage.status == LotStatus.EXHAUSTED.value,
                                    ClientPackage.expires_at > now,
                                ),
                                LotStatus.ACTIVE.value,
                            ),
                            else_=ClientPackage.status,
                        ),
                        ClientPackage.updated_at: now,
                    },
                    synchronize_session="fetch",
                )
            )
            return updated == 1
        except SQLAlchemyError as exc:
            self.logger.error("Failed to credit lot %s: %s", lot_id, str(exc))
            raise RepositoryException("Failed to credit lot") from exc

    def get_remaining(self, lot_id: str) -> int:
        query = self.db.query(ClientPackage.sessions_remaining).filter(ClientPackage.id == lot_id)
        return int(self._execute_scalar(query) or 0)

    def expire_lots(self, now: datetime) -> int:
        """Mark active lots whose expiry has passed as expired."""
        try:
            count = (
                self.db.query(ClientPackage)
                .filter(
                    ClientPackage.status == LotStatus.ACTIVE.value,
                    ClientPackage.expires_at <= now,
                )
                .update(
                    {
                        ClientPackage.status: LotStatus.EXPIRED.value,
                        ClientPackage.updated_at: now,
                    },
                    synchronize_session="fetch",
                )
            )
            return int(count or 0)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to expire credit lots: %s", str(exc))
            raise RepositoryException("Failed to expire credit lots") from exc

    # Ledger

    def add_usage(self, **kwargs) -> CreditUsage:
        try:
            entry = CreditUsage(**kwargs)
            self.db.add(entry)
            self.db.flush()
            return entry
        except SQLAlchemyError as exc:
            self.logger.error("Failed to write credit usage entry: %s", str(exc))
            raise RepositoryException("Failed to write credit usage entry") from exc

    def get_booking_debits(self, booking_id: str) -> List[CreditUsage]:
        """
        Debit entries for a booking in the order they were taken.

        Debits walk lots by expiry, so ordering by the lot's expiry reproduces
        the original order; legacy-counter rows have no lot and sort last.
        """
        try:
            return cast(
                List[CreditUsage],
                self.db.query(CreditUsage)
                .outerjoin(ClientPackage, CreditUsage.client_package_id == ClientPackage.id)
                .filter(
                    CreditUsage.booking_id == booking_id,
                    CreditUsage.reason == CreditUsageReason.BOOKING.value,
                )
                .order_by(
                    ClientPackage.expires_at.asc().nullslast(),
                    ClientPackage.purchased_at.asc(),
                    ClientPackage.id.asc(),
                    CreditUsage.id.asc(),
                )
                .all(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load debits for booking %s: %s", booking_id, str(exc))
            raise RepositoryException("Failed to load booking debits") from exc

    def has_refund(self, booking_id: str) -> bool:
        query = (
            self.db.query(CreditUsage.id)
            .filter(
                CreditUsage.booking_id == booking_id,
                CreditUsage.reason == CreditUsageReason.REFUND.value,
            )
            .limit(1)
        )
        return self._execute_scalar(query) is not None

    def get_usage_history(self, client_id: str, limit: int = 50) -> List[CreditUsage]:
        query = (
            self.db.query(CreditUsage)
            .filter(CreditUsage.client_id == client_id)
            .order_by(CreditUsage.created_at.desc(), CreditUsage.id.desc())
            .limit(limit)
        )
        return cast(List[CreditUsage], self._execute_query(query))
