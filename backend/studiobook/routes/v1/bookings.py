# backend/studiobook/routes/v1/bookings.py
"""
Client booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    GET /bookings - List the caller's bookings
    POST /bookings - Self-book a session
    GET /bookings/{booking_id} - One of the caller's bookings
    POST /bookings/{booking_id}/cancel - Cancel under the studio's policy
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, status
from fastapi.params import Path

from ...api.dependencies import get_booking_service, get_current_client_id
from ...core.exceptions import DomainException
from ...models.booking import BookingStatus
from ...schemas.booking import (
    BookingCancel,
    BookingCreate,
    BookingCreateResponse,
    BookingListResponse,
    BookingResponse,
    CancellationResponse,
)
from ...services.booking_service import BookingService
from .common import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    upcoming_only: bool = Query(False),
    limit: int = Query(100, ge=1, le=500),
    client_id: str = Depends(get_current_client_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingListResponse:
    """List the caller's bookings, newest first."""
    try:
        bookings = await asyncio.to_thread(
            booking_service.get_client_bookings,
            client_id,
            status=status_filter.value if status_filter else None,
            upcoming_only=upcoming_only,
            limit=limit,
        )
        return BookingListResponse(
            bookings=[BookingResponse.model_validate(booking) for booking in bookings],
            total=len(bookings),
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "",
    response_model=BookingCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Validation failed, out of hours or insufficient credits"},
        403: {"description": "Self-booking not allowed"},
        404: {"description": "Client, service or trainer not found"},
        409: {"description": "Time conflict"},
    },
)
async def create_booking(
    booking_data: BookingCreate = Body(...),
    client_id: str = Depends(get_current_client_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingCreateResponse:
    """
    Create a booking for the calling client.

    The credit debit and the booking insert succeed or fail together.
    """
    try:
        result = await asyncio.to_thread(
            booking_service.create_booking,
            client_id,
            booking_data.service_id,
            booking_data.trainer_id,
            booking_data.scheduled_at,
            booking_data.notes,
        )
        return BookingCreateResponse.from_result(result)
    except DomainException as e:
        handle_domain_exception(e)


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    responses={404: {"description": "Booking not found"}},
)
async def get_booking(
    booking_id: str = Path(
        ...,
        description="Booking ULID",
        pattern=ULID_PATH_PATTERN,
        examples=["01HF4G12ABCDEF3456789XYZAB"],
    ),
    client_id: str = Depends(get_current_client_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.get_booking_for_client, client_id, booking_id
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/cancel",
    response_model=CancellationResponse,
    responses={
        400: {"description": "Inside the cancellation window with no refund tiers"},
        404: {"description": "Booking not found"},
        422: {"description": "Booking can no longer be cancelled"},
    },
)
async def cancel_booking(
    booking_id: str = Path(
        ...,
        description="Booking ULID",
        pattern=ULID_PATH_PATTERN,
        examples=["01HF4G12ABCDEF3456789XYZAB"],
    ),
    cancel_data: Optional[BookingCancel] = Body(None),
    client_id: str = Depends(get_current_client_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> CancellationResponse:
    """Cancel a booking and refund according to the studio's policy."""
    try:
        result = await asyncio.to_thread(
            booking_service.cancel_booking,
            client_id,
            booking_id,
            cancel_data.reason if cancel_data else None,
        )
        return CancellationResponse.from_result(result)
    except DomainException as e:
        handle_domain_exception(e)
