# backend/studiobook/schemas/booking_request.py
"""Booking request schemas for trainer-led studios."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from ..core.timezone_utils import ensure_utc
from ._strict_base import ORMResponseModel, StrictModel, StrictRequestModel


class BookingRequestCreate(StrictRequestModel):
    service_id: str
    trainer_id: str
    preferred_times: List[datetime] = Field(..., min_length=1, max_length=10)
    notes: Optional[str] = Field(None, max_length=1000)
    expires_at: Optional[datetime] = None

    @field_validator("preferred_times")
    @classmethod
    def _normalize_times(cls, values: List[datetime]) -> List[datetime]:
        return [ensure_utc(value) for value in values]


class BookingRequestAccept(StrictRequestModel):
    accepted_time: Optional[datetime] = Field(
        None, description="Defaults to the client's first preferred time"
    )


class BookingRequestDecline(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=500)


class BookingRequestResponse(ORMResponseModel):
    id: str
    studio_id: Optional[str] = None
    trainer_id: str
    client_id: str
    service_id: str
    preferred_times: List[str]
    notes: Optional[str] = None
    status: str
    expires_at: datetime
    accepted_time: Optional[datetime] = None
    booking_id: Optional[str] = None
    decline_reason: Optional[str] = None


class BookingRequestListResponse(StrictModel):
    requests: List[BookingRequestResponse]
