# backend/studiobook/models/credit.py
"""
Credit lots and the append-only credit usage ledger.

A lot (client_packages row) is a batch of prepaid sessions with its own
expiry. sessions_remaining is kept equal to sessions_total - sessions_used by
a check constraint; only CreditService mutates it.
"""

from datetime import datetime
from enum import Enum
import logging

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.timezone_utils import ensure_utc
from ..core.ulid_helper import generate_ulid
from ..database import Base

logger = logging.getLogger(__name__)


class LotStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


class CreditUsageReason(str, Enum):
    BOOKING = "booking"
    REFUND = "refund"
    MANUAL_ADDITION = "manual_addition"


class ClientPackage(Base):
    """A credit lot."""

    __tablename__ = "client_packages"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    client_id = Column(String(26), ForeignKey("clients.id"), nullable=False, index=True)
    trainer_id = Column(String(26), nullable=True, index=True)
    package_id = Column(String(26), nullable=True)

    sessions_total = Column(Integer, nullable=False)
    sessions_used = Column(Integer, nullable=False, default=0)
    sessions_remaining = Column(Integer, nullable=False)

    purchased_at = Column(DateTime(timezone=True), server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=LotStatus.ACTIVE.value)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    usages = relationship("CreditUsage", back_populates="lot")

    __table_args__ = (
        CheckConstraint("sessions_total >= 0", name="ck_client_packages_total_non_negative"),
        CheckConstraint("sessions_used >= 0", name="ck_client_packages_used_non_negative"),
        CheckConstraint(
            "sessions_remaining >= 0", name="ck_client_packages_remaining_non_negative"
        ),
        CheckConstraint(
            "sessions_remaining = sessions_total - sessions_used",
            name="ck_client_packages_remaining_consistent",
        ),
        CheckConstraint(
            "status IN ('active', 'expired', 'exhausted')",
            name="ck_client_packages_status",
        ),
        Index("ix_client_packages_client_status_expiry", "client_id", "status", "expires_at"),
    )

    def is_eligible(self, now: datetime) -> bool:
        """Active, unexpired and not empty."""
        return (
            self.status == LotStatus.ACTIVE.value
            and ensure_utc(self.expires_at) > now
            and (self.sessions_remaining or 0) > 0
        )

    def __repr__(self) -> str:
        return (
            f"<ClientPackage {self.id}: client={self.client_id}, "
            f"remaining={self.sessions_remaining}/{self.sessions_total}, status={self.status}>"
        )


class CreditUsage(Base):
    """
    Append-only ledger entry.

    credits_used is signed: positive for consumption, negative for additions
    and refunds. client_package_id is NULL for movements on the legacy
    client counter.
    """

    __tablename__ = "credit_usage"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    client_package_id = Column(
        String(26), ForeignKey("client_packages.id"), nullable=True, index=True
    )
    client_id = Column(String(26), ForeignKey("clients.id"), nullable=False, index=True)
    booking_id = Column(String(26), nullable=True, index=True)
    credits_used = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    reason = Column(String(30), nullable=False)
    notes = Column(Text, nullable=True)
    created_by = Column(String(26), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    lot = relationship("ClientPackage", back_populates="usages")

    __table_args__ = (
        CheckConstraint(
            "reason IN ('booking', 'refund', 'manual_addition')",
            name="ck_credit_usage_reason",
        ),
        CheckConstraint("credits_used <> 0", name="ck_credit_usage_non_zero"),
        Index("ix_credit_usage_booking_reason", "booking_id", "reason"),
    )

    def __repr__(self) -> str:
        return (
            f"<CreditUsage {self.id}: lot={self.client_package_id}, "
            f"delta={self.credits_used}, reason={self.reason}>"
        )
