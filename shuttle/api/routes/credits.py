"""
Credit endpoints
================

GET /api/v1/credits -- balance and recent ledger entries of the acting account
"""

from fastapi import APIRouter, Depends, Query, Request

from shuttle.api.dependencies import current_account_id, get_credit_service
from shuttle.api.middleware import limiter
from shuttle.api.schemas import CreditSummaryResponse
from shuttle.services.credits import CreditService

router = APIRouter(prefix="/credits", tags=["credits"])


@router.get("", response_model=CreditSummaryResponse, summary="Credit balance and history")
@limiter.limit("100/minute")
async def get_credits(
    request: Request,
    limit: int = Query(50, ge=1, le=500),
    account_id: int = Depends(current_account_id),
    service: CreditService = Depends(get_credit_service),
):
    summary = await service.summary(account_id, limit=limit)
    return CreditSummaryResponse.model_validate(summary)
