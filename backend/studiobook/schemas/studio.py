# backend/studiobook/schemas/studio.py
"""Client-facing catalog schemas."""

from datetime import date, datetime
from typing import List, Optional

from ._strict_base import ORMResponseModel, StrictModel


class ServiceResponse(ORMResponseModel):
    id: str
    name: str
    description: Optional[str] = None
    duration: int
    credits_required: int
    studio_id: Optional[str] = None


class TrainerResponse(ORMResponseModel):
    id: str
    studio_id: str
    staff_type: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class ServiceListResponse(StrictModel):
    services: List[ServiceResponse]


class TrainerListResponse(StrictModel):
    trainers: List[TrainerResponse]


class OpeningSlotResponse(StrictModel):
    start: str
    end: str


class BusyIntervalResponse(StrictModel):
    starts_at: datetime
    ends_at: datetime


class TrainerAvailabilityResponse(ORMResponseModel):
    """One trainer's day in the studio's timezone; open slots are local HH:MM."""

    trainer_id: str
    date: date
    timezone: str
    opening_hours_restricted: bool
    open_slots: List[OpeningSlotResponse]
    busy: List[BusyIntervalResponse]
