# backend/studiobook/routes/v1/credits.py
"""
Client credit routes - API v1

Endpoints:
    GET /credits - Spendable balance, status bucket and eligible lots
    GET /credits/history - Ledger entries, newest first
"""

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import get_credit_service, get_current_client_id
from ...core.exceptions import DomainException
from ...schemas.credit import CreditLotResponse, CreditSummaryResponse, CreditUsageResponse
from ...services.credit_service import CreditService
from .common import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["credits-v1"])


@router.get("", response_model=CreditSummaryResponse)
async def get_credits(
    client_id: str = Depends(get_current_client_id),
    credit_service: CreditService = Depends(get_credit_service),
) -> CreditSummaryResponse:
    """Total of active, unexpired lots (or the legacy counter for clients without lots)."""
    try:
        summary = await asyncio.to_thread(credit_service.get_credits, client_id)
        return CreditSummaryResponse(
            total=summary.total,
            status=summary.status,
            nearest_expiry=summary.nearest_expiry,
            uses_lots=summary.uses_lots,
            lots=[CreditLotResponse.model_validate(lot) for lot in summary.lots],
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/history", response_model=List[CreditUsageResponse])
async def get_credit_history(
    limit: int = Query(50, ge=1, le=200),
    client_id: str = Depends(get_current_client_id),
    credit_service: CreditService = Depends(get_credit_service),
) -> List[CreditUsageResponse]:
    try:
        entries = await asyncio.to_thread(credit_service.get_usage_history, client_id, limit)
        return [CreditUsageResponse.model_validate(entry) for entry in entries]
    except DomainException as e:
        handle_domain_exception(e)
