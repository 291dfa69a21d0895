# backend/studiobook/schemas/__init__.py
"""Pydantic request and response models for the HTTP API."""

from .booking import (
    BookingCancel,
    BookingCreate,
    BookingCreateResponse,
    BookingDeleteResponse,
    BookingListResponse,
    BookingResponse,
    CancellationResponse,
    StaffBookingCreate,
)
from .booking_request import (
    BookingRequestAccept,
    BookingRequestCreate,
    BookingRequestDecline,
    BookingRequestListResponse,
    BookingRequestResponse,
)
from .credit import CreditGrant, CreditLotResponse, CreditSummaryResponse, CreditUsageResponse
from .studio import (
    BusyIntervalResponse,
    OpeningSlotResponse,
    ServiceListResponse,
    ServiceResponse,
    TrainerAvailabilityResponse,
    TrainerListResponse,
    TrainerResponse,
)

__all__ = [
    "BookingCancel",
    "BookingCreate",
    "BookingCreateResponse",
    "BookingDeleteResponse",
    "BookingListResponse",
    "BookingResponse",
    "BookingRequestAccept",
    "BookingRequestCreate",
    "BookingRequestDecline",
    "BookingRequestListResponse",
    "BookingRequestResponse",
    "BusyIntervalResponse",
    "CancellationResponse",
    "CreditGrant",
    "CreditLotResponse",
    "CreditSummaryResponse",
    "CreditUsageResponse",
    "OpeningSlotResponse",
    "ServiceListResponse",
    "ServiceResponse",
    "StaffBookingCreate",
    "TrainerAvailabilityResponse",
    "TrainerListResponse",
    "TrainerResponse",
]
