# backend/studiobook/schemas/booking.py
"""
Booking schemas.

Times are accepted as ISO-8601 datetimes; values without an offset are
treated as UTC. Responses always carry UTC instants.
"""

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import Field, field_validator

from ..core.timezone_utils import ensure_utc
from ..models.booking import BookingStatus
from ._strict_base import ORMResponseModel, StrictModel, StrictRequestModel


class BookingCreate(StrictRequestModel):
    """Client self-booking request."""

    service_id: str = Field(..., description="Service to book")
    trainer_id: str = Field(..., description="Trainer delivering the session")
    scheduled_at: datetime = Field(..., description="Session start (UTC if no offset)")
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("scheduled_at")
    @classmethod
    def _normalize_scheduled_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class StaffBookingCreate(BookingCreate):
    """Trainer-created booking on behalf of a client."""

    client_id: str = Field(..., description="Client the session is for")
    status: Literal["confirmed", "soft-hold"] = Field(
        BookingStatus.CONFIRMED.value, description="Initial status"
    )


class BookingCancel(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=500)


class BookingResponse(ORMResponseModel):
    id: str
    client_id: str
    trainer_id: str
    service_id: Optional[str] = None
    studio_id: Optional[str] = None
    scheduled_at: datetime
    ends_at: datetime
    duration: int
    status: str
    hold_expiry: Optional[datetime] = None
    notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    @field_validator("scheduled_at", "ends_at", "hold_expiry", "cancelled_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None


class BookingCreateResponse(StrictModel):
    booking: BookingResponse
    remaining_credits: int

    @classmethod
    def from_result(cls, result: Any) -> "BookingCreateResponse":
        return cls(
            booking=BookingResponse.model_validate(result.booking),
            remaining_credits=result.remaining_credits,
        )


class CancellationResponse(StrictModel):
    booking: BookingResponse
    credits_refunded: int
    refund_percent: int
    already_cancelled: bool = False

    @classmethod
    def from_result(cls, result: Any) -> "CancellationResponse":
        return cls(
            booking=BookingResponse.model_validate(result.booking),
            credits_refunded=result.credits_refunded,
            refund_percent=result.refund_percent,
            already_cancelled=result.already_cancelled,
        )


class BookingListResponse(StrictModel):
    bookings: List[BookingResponse]
    total: int


class BookingDeleteResponse(StrictModel):
    success: bool
    booking_id: str
    hard: bool
