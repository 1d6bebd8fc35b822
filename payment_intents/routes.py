import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, StrictInt

from payment_intents.cart import CartLine, Catalog, Product, compute_amount
from payment_intents.dependencies import get_catalog, get_lifecycle_manager
from payment_intents.exceptions import (
    GatewayError,
    IntentNotFound,
    InvalidStateTransition,
    PaymentIntentError,
    ValidationError,
)
from payment_intents.lifecycle import LifecycleManager

logger = logging.getLogger(__name__)

router = APIRouter()


class PaymentIntentRequest(BaseModel):
    amount: Optional[StrictInt] = None
    items: Optional[list[CartLine]] = None


class CancelRequest(BaseModel):
    id: str


def to_http_error(exc: PaymentIntentError) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, IntentNotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, InvalidStateTransition):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, GatewayError):
        return HTTPException(status_code=502, detail="Payment gateway request failed")
    return HTTPException(status_code=500, detail="Payment intent request failed")


@router.get("/products", response_model=list[Product])
def list_products(catalog: Catalog = Depends(get_catalog)):
    return catalog.products()


@router.post("/payment-intents")
def create_payment_intent(
    request: PaymentIntentRequest,
    manager: LifecycleManager = Depends(get_lifecycle_manager),
    catalog: Catalog = Depends(get_catalog),
):
    try:
        if (request.amount is None) == (request.items is None):
            raise ValidationError("Provide either an amount or cart items")
        if request.items is not None:
            amount = compute_amount(request.items, catalog)
        else:
            amount = request.amount
        intent = manager.create(amount)
    except PaymentIntentError as exc:
        logger.info("Create payment intent rejected: %s", exc)
        raise to_http_error(exc) from exc

    return {
        "id": intent.id,
        "clientSecret": intent.client_secret,
        "amount": intent.amount,
        "message": "Created",
    }


@router.post("/payment-intents/cancel")
def cancel_payment_intent(
    request: CancelRequest,
    manager: LifecycleManager = Depends(get_lifecycle_manager),
):
    try:
        intent = manager.cancel(request.id)
    except PaymentIntentError as exc:
        logger.info("Cancel payment intent %s rejected: %s", request.id, exc)
        raise to_http_error(exc) from exc

    return {"id": intent.id, "message": "Canceled"}


@router.get("/payment-intents/{intent_id}")
def get_payment_intent(
    intent_id: str,
    manager: LifecycleManager = Depends(get_lifecycle_manager),
):
    try:
        intent = manager.get(intent_id)
    except PaymentIntentError as exc:
        raise to_http_error(exc) from exc

    return {
        "id": intent.id,
        "amount": intent.amount,
        "currency": intent.currency,
        "state": intent.state.value,
    }
