# backend/studiobook/routes/v1/studio.py
"""
Studio catalog routes - API v1

What the calling client may book, filtered to its studio scope.

Endpoints:
    GET /studio/services - Active, public services
    GET /studio/trainers - Trainers the client may book
    GET /studio/availability - A trainer's opening slots and busy times for a date
"""

import asyncio
from datetime import date
import logging

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import (
    get_availability_service,
    get_current_client_id,
    get_membership_service,
)
from ...core.exceptions import DomainException
from ...schemas.studio import (
    ServiceListResponse,
    ServiceResponse,
    TrainerAvailabilityResponse,
    TrainerListResponse,
    TrainerResponse,
)
from ...services.availability_service import AvailabilityService
from ...services.studio_membership_service import StudioMembershipService
from .common import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["studio-v1"])


@router.get("/services", response_model=ServiceListResponse)
async def list_services(
    client_id: str = Depends(get_current_client_id),
    membership_service: StudioMembershipService = Depends(get_membership_service),
) -> ServiceListResponse:
    try:
        services = await asyncio.to_thread(membership_service.list_bookable_services, client_id)
        return ServiceListResponse(
            services=[ServiceResponse.model_validate(service) for service in services]
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/trainers", response_model=TrainerListResponse)
async def list_trainers(
    client_id: str = Depends(get_current_client_id),
    membership_service: StudioMembershipService = Depends(get_membership_service),
) -> TrainerListResponse:
    try:
        trainers = await asyncio.to_thread(membership_service.list_trainers, client_id)
        return TrainerListResponse(
            trainers=[TrainerResponse.model_validate(trainer) for trainer in trainers]
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/availability", response_model=TrainerAvailabilityResponse)
async def get_trainer_availability(
    trainer_id: str = Query(..., min_length=1, max_length=26),
    on_date: date = Query(..., alias="date", description="Studio-local date (YYYY-MM-DD)"),
    client_id: str = Depends(get_current_client_id),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> TrainerAvailabilityResponse:
    """Opening slots and busy intervals for one trainer on one day."""
    try:
        day = await asyncio.to_thread(
            availability_service.get_trainer_day, client_id, trainer_id, on_date
        )
        return TrainerAvailabilityResponse.model_validate(day)
    except DomainException as e:
        handle_domain_exception(e)
