"""
Payment endpoints
=================

POST /api/v1/payments/initiate           -- start a credit package purchase
GET  /api/v1/payments/{merchant_txn_id}  -- transaction status for its owner
POST /api/v1/payments/notify             -- PayFast ITN receiver

The ITN receiver answers the gateway with bare status codes only:

* 200 -- processed, including rejected signatures / merchants and replays
  of an already-settled notification (the gateway must stop retrying)
* 400 -- required fields missing
* 404 -- unknown transaction
* 500 -- anything unexpected (the gateway retries)
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, Response

from shuttle.api.dependencies import current_account_id, get_payment_service
from shuttle.api.middleware import limiter
from shuttle.api.schemas import PaymentResponse, PurchaseRequest, PurchaseResponse
from shuttle.domain.errors import (
    PaymentTransactionNotFound,
    PaymentValidationError,
    ValidationError,
)
from shuttle.services.payments import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "/initiate",
    status_code=201,
    response_model=PurchaseResponse,
    summary="Start a credit package purchase",
)
@limiter.limit("20/minute")
async def initiate_payment(
    request: Request,
    body: PurchaseRequest,
    account_id: int = Depends(current_account_id),
    service: PaymentService = Depends(get_payment_service),
):
    result = await service.initiate_purchase(account_id, body.package_id)
    return PurchaseResponse(
        payment=PaymentResponse.model_validate(result.transaction),
        payment_url=result.payment_url,
        package_name=result.package_name,
    )


@router.post(
    "/notify",
    response_class=PlainTextResponse,
    summary="PayFast instant transaction notification",
    include_in_schema=False,
)
async def payment_notification(
    request: Request,
    service: PaymentService = Depends(get_payment_service),
):
    form = await request.form()
    payload = {key: str(value) for key, value in form.items()}

    try:
        await service.handle_notification(payload)
    except PaymentValidationError as exc:
        logger.warning(
            "Rejected ITN for %s: %s", payload.get("m_payment_id"), exc.detail
        )
    except ValidationError:
        return Response(status_code=400)
    except PaymentTransactionNotFound as exc:
        if not exc.already_settled:
            logger.warning("ITN for unknown payment %s", payload.get("m_payment_id"))
            return Response(status_code=404)
        logger.info("Ignoring replayed ITN for %s", payload.get("m_payment_id"))
    except Exception:
        logger.exception("ITN processing failed for %s", payload.get("m_payment_id"))
        return Response(status_code=500)

    return PlainTextResponse("OK")


@router.get(
    "/{merchant_txn_id}",
    response_model=PaymentResponse,
    summary="Get a payment transaction",
)
@limiter.limit("100/minute")
async def get_payment(
    request: Request,
    merchant_txn_id: str,
    account_id: int = Depends(current_account_id),
    service: PaymentService = Depends(get_payment_service),
):
    return await service.get_transaction(merchant_txn_id, account_id)
