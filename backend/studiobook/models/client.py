# backend/studiobook/models/client.py
"""
Client model.

studio_id is intentionally not a foreign key: for clients of a solo
practitioner it holds the practitioner's account id.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from ..core.ulid_helper import generate_ulid
from ..database import Base


class Client(Base):
    __tablename__ = "clients"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    email = Column(String(255), nullable=False, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)

    studio_id = Column(String(26), nullable=True, index=True)
    invited_by = Column(String(26), nullable=True, index=True)

    # Legacy, non-expiring balance used only when the client has no eligible lots
    credits = Column(Integer, nullable=False, default=0)
    self_booking_allowed = Column(Boolean, nullable=False, default=True)
    is_guest = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (CheckConstraint("credits >= 0", name="ck_clients_credits_non_negative"),)

    @property
    def full_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else self.email

    def __repr__(self) -> str:
        return f"<Client {self.id}: studio={self.studio_id}, credits={self.credits}>"
