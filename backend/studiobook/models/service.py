# backend/studiobook/models/service.py
"""
Bookable service offered by a studio or solo practitioner.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from ..core.ulid_helper import generate_ulid
from ..database import Base


class Service(Base):
    __tablename__ = "services"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    # Minutes
    duration = Column(Integer, nullable=False)
    credits_required = Column(Integer, nullable=False, default=1)

    studio_id = Column(String(26), nullable=True, index=True)
    created_by = Column(String(26), nullable=True, index=True)

    is_active = Column(Boolean, nullable=False, default=True)
    is_public = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("duration > 0", name="ck_services_duration_positive"),
        CheckConstraint("credits_required >= 1", name="ck_services_credits_required_positive"),
    )

    @property
    def required_credits(self) -> int:
        return self.credits_required or 1

    @property
    def is_bookable(self) -> bool:
        return bool(self.is_active and self.is_public)

    def __repr__(self) -> str:
        return f"<Service {self.id}: {self.name} ({self.duration}m, {self.credits_required}cr)>"
