# backend/studiobook/routes/v1/staff.py
"""
Studio staff routes - API v1

Trainer, owner and front-desk operations. The caller is identified by the
X-Staff-Id header and may only touch bookings of trainers they manage;
everything else answers 404.

Endpoints:
    POST /staff/bookings - Book a session for a client (confirmed or soft-hold)
    POST /staff/bookings/{booking_id}/confirm-hold - Confirm a soft-hold
    POST /staff/bookings/{booking_id}/check-in - Check the client in
    POST /staff/bookings/{booking_id}/complete - Mark the session completed
    POST /staff/bookings/{booking_id}/no-show - Mark no-show (studio no-show policy applies)
    POST /staff/bookings/{booking_id}/late - Mark late
    POST /staff/bookings/{booking_id}/cancel - Cancel with a full refund
    DELETE /staff/bookings/{booking_id} - Soft or hard delete
    POST /staff/clients/{client_id}/credits - Grant a credit lot
"""

import asyncio
import logging
from typing import Callable, Optional

from fastapi import APIRouter, Body, Depends, Query, status
from fastapi.params import Path

from ...api.dependencies import get_booking_service, get_credit_service, get_current_staff_id
from ...core.exceptions import DomainException
from ...models.booking import Booking, BookingStatus
from ...schemas.booking import (
    BookingCancel,
    BookingCreateResponse,
    BookingDeleteResponse,
    BookingResponse,
    CancellationResponse,
    StaffBookingCreate,
)
from ...schemas.credit import CreditGrant, CreditLotResponse
from ...services.booking_service import BookingService
from ...services.credit_service import CreditService
from .common import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["staff-v1"])


@router.post(
    "/bookings",
    response_model=BookingCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"description": "Client not found"}, 409: {"description": "Time conflict"}},
)
async def create_staff_booking(
    booking_data: StaffBookingCreate = Body(...),
    staff_id: str = Depends(get_current_staff_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingCreateResponse:
    try:
        result = await asyncio.to_thread(
            booking_service.create_staff_booking,
            staff_id,
            booking_data.client_id,
            booking_data.service_id,
            booking_data.trainer_id,
            booking_data.scheduled_at,
            BookingStatus(booking_data.status),
            booking_data.notes,
        )
        return BookingCreateResponse.from_result(result)
    except DomainException as e:
        handle_domain_exception(e)


async def _run_transition(
    operation: Callable[[str, str], Booking], staff_id: str, booking_id: str
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(operation, staff_id, booking_id)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/bookings/{booking_id}/confirm-hold", response_model=BookingResponse)
async def confirm_hold(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    staff_id: str = Depends(get_current_staff_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    return await _run_transition(booking_service.confirm_hold, staff_id, booking_id)


@router.post("/bookings/{booking_id}/check-in", response_model=BookingResponse)
async def check_in(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    staff_id: str = Depends(get_current_staff_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    return await _run_transition(booking_service.check_in, staff_id, booking_id)


@router.post("/bookings/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    staff_id: str = Depends(get_current_staff_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    return await _run_transition(booking_service.complete_booking, staff_id, booking_id)


@router.post("/bookings/{booking_id}/late", response_model=BookingResponse)
async def mark_late(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    staff_id: str = Depends(get_current_staff_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    return await _run_transition(booking_service.mark_late, staff_id, booking_id)


@router.post("/bookings/{booking_id}/no-show", response_model=CancellationResponse)
async def mark_no_show(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    staff_id: str = Depends(get_current_staff_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> CancellationResponse:
    """Refund follows the studio's no-show action."""
    try:
        result = await asyncio.to_thread(booking_service.mark_no_show, staff_id, booking_id)
        return CancellationResponse.from_result(result)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/bookings/{booking_id}/cancel", response_model=CancellationResponse)
async def cancel_booking_as_staff(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    cancel_data: Optional[BookingCancel] = Body(None),
    staff_id: str = Depends(get_current_staff_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> CancellationResponse:
    """Studio-initiated cancellation always refunds in full."""
    try:
        result = await asyncio.to_thread(
            booking_service.cancel_booking_as_staff,
            staff_id,
            booking_id,
            cancel_data.reason if cancel_data else None,
        )
        return CancellationResponse.from_result(result)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/bookings/{booking_id}", response_model=BookingDeleteResponse)
async def delete_booking(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    hard: bool = Query(False, description="Remove the row instead of cancelling it"),
    staff_id: str = Depends(get_current_staff_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingDeleteResponse:
    try:
        await asyncio.to_thread(booking_service.delete_booking, staff_id, booking_id, hard)
        return BookingDeleteResponse(success=True, booking_id=booking_id, hard=hard)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/clients/{client_id}/credits",
    response_model=CreditLotResponse,
    status_code=status.HTTP_201_CREATED,
)
async def grant_credits(
    client_id: str = Path(..., description="Client ULID", pattern=ULID_PATH_PATTERN),
    grant: CreditGrant = Body(...),
    staff_id: str = Depends(get_current_staff_id),
    credit_service: CreditService = Depends(get_credit_service),
) -> CreditLotResponse:
    try:
        lot = await asyncio.to_thread(
            credit_service.grant_credits_as_staff,
            staff_id,
            client_id,
            grant.sessions,
            validity_days=grant.validity_days,
            package_id=grant.package_id,
            notes=grant.notes,
        )
        return CreditLotResponse.model_validate(lot)
    except DomainException as e:
        handle_domain_exception(e)
