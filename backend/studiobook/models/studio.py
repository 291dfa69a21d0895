# backend/studiobook/models/studio.py
"""
Studio tenancy models.

A studio owns trainers (staff), services, opening hours and cancellation
policy. Solo practitioners have no separate studio account: their account id
doubles as the studio key, which is why client.studio_id and
service.studio_id are not foreign keys.
"""

from enum import Enum
import logging
from typing import Any, Dict, Optional

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from ..core.ulid_helper import generate_ulid
from ..database import Base

logger = logging.getLogger(__name__)

JSON_DOCUMENT = JSONB(astext_type=Text()).with_variant(JSON(), "sqlite")


class BookingModel(str, Enum):
    """How clients are allowed to book at a studio."""

    SELF_SERVICE = "self-service"
    TRAINER_LED = "trainer-led"


class StaffType(str, Enum):
    OWNER = "owner"
    TRAINER = "trainer"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


class ProfileRole(str, Enum):
    SOLO_PRACTITIONER = "solo_practitioner"
    STUDIO_OWNER = "studio_owner"
    TRAINER = "trainer"
    CLIENT = "client"


# Staff types that may take bookings
BOOKABLE_STAFF_TYPES = (StaffType.TRAINER.value, StaffType.OWNER.value, StaffType.INSTRUCTOR.value)

# Profile roles that can own a studio and train in it
TRAINER_PROFILE_ROLES = (
    ProfileRole.SOLO_PRACTITIONER.value,
    ProfileRole.STUDIO_OWNER.value,
    ProfileRole.TRAINER.value,
)


class Studio(Base):
    """Tenant configuration: booking model, holds, opening hours and cancellation policy."""

    __tablename__ = "studios"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    owner_id = Column(String(26), nullable=False, index=True)
    name = Column(String(255), nullable=False)

    booking_model = Column(String(20), nullable=True)
    # Minutes; NULL disables soft holds (staff bookings auto-confirm)
    soft_hold_length = Column(Integer, nullable=True)
    # {"0": {"enabled": bool, "slots": [{"start": "HH:MM", "end": "HH:MM"}]}, ...}, "0" = Sunday
    opening_hours = Column(JSON_DOCUMENT, nullable=True)
    cancellation_window_hours = Column(Integer, nullable=True)
    # {"no_show_action": ..., "refund_tiers": [{"hours_before_session": n, "refund_percent": p}]}
    cancellation_policy = Column(JSON_DOCUMENT, nullable=True)
    timezone = Column(String(64), nullable=False, default="UTC")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            "booking_model IS NULL OR booking_model IN ('self-service', 'trainer-led')",
            name="ck_studios_booking_model",
        ),
        CheckConstraint(
            "soft_hold_length IS NULL OR soft_hold_length > 0",
            name="ck_studios_soft_hold_positive",
        ),
        CheckConstraint(
            "cancellation_window_hours IS NULL OR cancellation_window_hours >= 0",
            name="ck_studios_cancellation_window_non_negative",
        ),
    )

    @property
    def is_trainer_led(self) -> bool:
        return self.booking_model == BookingModel.TRAINER_LED.value

    def policy_document(self) -> Dict[str, Any]:
        return dict(self.cancellation_policy or {})

    def __repr__(self) -> str:
        return f"<Studio {self.id}: owner={self.owner_id}, model={self.booking_model}>"


class StaffMember(Base):
    """Membership of an account in a studio's staff."""

    __tablename__ = "studio_staff"

    id = Column(String(26), primary_key=True, index=True)
    studio_id = Column(String(26), nullable=False, index=True)
    staff_type = Column(String(20), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "staff_type IN ('owner', 'trainer', 'instructor', 'admin')",
            name="ck_studio_staff_type",
        ),
        Index("ix_studio_staff_studio_type", "studio_id", "staff_type"),
    )

    @property
    def can_take_bookings(self) -> bool:
        return self.staff_type in BOOKABLE_STAFF_TYPES

    def __repr__(self) -> str:
        return f"<StaffMember {self.id}: studio={self.studio_id}, type={self.staff_type}>"


class Profile(Base):
    """Account profile: the role and studio an authenticated user resolves to."""

    __tablename__ = "profiles"

    id = Column(String(26), primary_key=True, index=True)
    role = Column(String(30), nullable=False)
    studio_id = Column(String(26), nullable=True, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def full_name(self) -> Optional[str]:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else None

    def __repr__(self) -> str:
        return f"<Profile {self.id}: role={self.role}>"
