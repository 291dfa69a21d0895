# backend/studiobook/schemas/credit.py
"""Credit balance, lot and ledger schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from ._strict_base import ORMResponseModel, StrictModel, StrictRequestModel


class CreditLotResponse(ORMResponseModel):
    id: str
    trainer_id: Optional[str] = None
    sessions_total: int
    sessions_used: int
    sessions_remaining: int
    expires_at: datetime
    status: str


class CreditUsageResponse(ORMResponseModel):
    id: str
    client_package_id: Optional[str] = None
    booking_id: Optional[str] = None
    credits_used: int
    balance_after: int
    reason: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class CreditSummaryResponse(StrictModel):
    total: int
    status: str = Field(..., description="good, medium, low or none")
    nearest_expiry: Optional[datetime] = None
    uses_lots: bool
    lots: List[CreditLotResponse] = Field(default_factory=list)


class CreditGrant(StrictRequestModel):
    """Manual credit addition by studio staff."""

    sessions: int = Field(..., ge=1, le=1000)
    validity_days: Optional[int] = Field(None, ge=1, le=3650)
    package_id: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=500)
