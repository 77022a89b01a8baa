# marketplace/api/v1/endpoints/checkout.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from marketplace import crud
from marketplace.api import deps
from marketplace.core.errors import MarketplaceError, raise_http
from marketplace.schemas.payment import (
    CheckoutRequest,
    CheckoutResponse,
    Payment,
    PaymentMethod,
    VerifyPaymentRequest,
)
from marketplace.schemas.token import TokenPayload
from marketplace.services.notifier import NotifierInterface
from marketplace.services.payment.payment_service import PaymentService
from marketplace.services.payment.provider_interface import PaymentProviderInterface

router = APIRouter(tags=["Checkout"])


def _payment_service(
    db: Session = Depends(deps.get_db),
    provider: PaymentProviderInterface = Depends(deps.get_payment_gateway),
    notifier: NotifierInterface = Depends(deps.get_notifier),
) -> PaymentService:
    return PaymentService(db, provider, notifier)


@router.post("/orders/{order_id}/checkout", response_model=CheckoutResponse)
async def begin_checkout(
    order_id: str,
    checkout_in: Optional[CheckoutRequest] = None,
    service: PaymentService = Depends(_payment_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    Open a hosted checkout session for a pending order.

    Each call is a new payment attempt. A 502 response means the gateway
    failed and the buyer can simply try again.
    """
    try:
        return await service.begin_checkout(
            order_id=order_id,
            buyer_id=current_user.sub,
            method=checkout_in.method if checkout_in else PaymentMethod.card,
        )
    except MarketplaceError as e:
        raise_http(e)


@router.post("/orders/{order_id}/payments/verify", response_model=Payment)
async def verify_payment(
    order_id: str,
    verify_in: Optional[VerifyPaymentRequest] = None,
    service: PaymentService = Depends(_payment_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Confirm a payment with the gateway after the success redirect."""
    try:
        return await service.verify_payment(
            order_id=order_id,
            buyer_id=current_user.sub,
            reference=verify_in.reference if verify_in else None,
        )
    except MarketplaceError as e:
        raise_http(e)


@router.get("/orders/{order_id}/payments", response_model=List[Payment])
def list_order_payments(
    order_id: str,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """All payment attempts on the caller's order, newest first."""
    order = crud.order.get(db, id=order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if order.buyer_id != current_user.sub and not current_user.has_role("admin"):
        raise HTTPException(status_code=403, detail="Not allowed to view this order")
    return crud.payment.get_by_order(db, order_id=order_id)
