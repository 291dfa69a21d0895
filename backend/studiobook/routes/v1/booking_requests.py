# backend/studiobook/routes/v1/booking_requests.py
"""
Booking request routes - API v1

Clients of trainer-led studios request sessions; staff accept or decline.

Endpoints:
    POST /booking-requests - Submit a request (client)
    GET /booking-requests/mine - The caller's own requests (client)
    GET /booking-requests - Requests for trainers the caller manages (staff)
    POST /booking-requests/{request_id}/accept - Accept and book (staff)
    POST /booking-requests/{request_id}/decline - Decline (staff)
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, status
from fastapi.params import Path

from ...api.dependencies import (
    get_booking_request_service,
    get_current_client_id,
    get_current_staff_id,
)
from ...core.exceptions import DomainException
from ...models.booking import BookingRequestStatus
from ...schemas.booking import BookingCreateResponse
from ...schemas.booking_request import (
    BookingRequestAccept,
    BookingRequestCreate,
    BookingRequestDecline,
    BookingRequestListResponse,
    BookingRequestResponse,
)
from ...services.booking_request_service import BookingRequestService
from .common import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["booking-requests-v1"])


@router.post(
    "",
    response_model=BookingRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_booking_request(
    payload: BookingRequestCreate = Body(...),
    client_id: str = Depends(get_current_client_id),
    request_service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestResponse:
    try:
        request = await asyncio.to_thread(
            request_service.create_request,
            client_id,
            payload.service_id,
            payload.trainer_id,
            payload.preferred_times,
            payload.notes,
            payload.expires_at,
        )
        return BookingRequestResponse.model_validate(request)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/mine", response_model=BookingRequestListResponse)
async def list_my_requests(
    client_id: str = Depends(get_current_client_id),
    request_service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestListResponse:
    try:
        requests = await asyncio.to_thread(request_service.list_client_requests, client_id)
        return BookingRequestListResponse(
            requests=[BookingRequestResponse.model_validate(item) for item in requests]
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("", response_model=BookingRequestListResponse)
async def list_requests(
    status_filter: Optional[BookingRequestStatus] = Query(None, alias="status"),
    staff_id: str = Depends(get_current_staff_id),
    request_service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestListResponse:
    try:
        requests = await asyncio.to_thread(request_service.list_requests, staff_id, status_filter)
        return BookingRequestListResponse(
            requests=[BookingRequestResponse.model_validate(item) for item in requests]
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{request_id}/accept",
    response_model=BookingCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"description": "Request not found"}, 409: {"description": "Time conflict"}},
)
async def accept_booking_request(
    request_id: str = Path(..., description="Booking request ULID", pattern=ULID_PATH_PATTERN),
    payload: Optional[BookingRequestAccept] = Body(None),
    staff_id: str = Depends(get_current_staff_id),
    request_service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingCreateResponse:
    try:
        result = await asyncio.to_thread(
            request_service.accept_request,
            staff_id,
            request_id,
            payload.accepted_time if payload else None,
        )
        return BookingCreateResponse.from_result(result)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{request_id}/decline",
    response_model=BookingRequestResponse,
    responses={404: {"description": "Request not found"}},
)
async def decline_booking_request(
    request_id: str = Path(..., description="Booking request ULID", pattern=ULID_PATH_PATTERN),
    payload: Optional[BookingRequestDecline] = Body(None),
    staff_id: str = Depends(get_current_staff_id),
    request_service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestResponse:
    try:
        request = await asyncio.to_thread(
            request_service.decline_request,
            staff_id,
            request_id,
            payload.reason if payload else None,
        )
        return BookingRequestResponse.model_validate(request)
    except DomainException as e:
        handle_domain_exception(e)
