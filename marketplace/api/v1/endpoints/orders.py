# marketplace/api/v1/endpoints/orders.py
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from marketplace import crud
from marketplace.api import deps
from marketplace.core.errors import MarketplaceError, raise_http
from marketplace.schemas.order import (
    Order,
    OrderAction,
    OrderCreate,
    OrderList,
    OrderStatus,
    OrderTransitionResponse,
)
from marketplace.schemas.token import TokenPayload
from marketplace.services.notifier import NotifierInterface
from marketplace.services.order_service import OrderService
from marketplace.services.user_directory import UserDirectoryInterface

router = APIRouter(tags=["Orders"])


def _require_supplier(current_user: TokenPayload):
    """Verify the user has supplier role."""
    if not current_user.has_role("supplier"):
        raise HTTPException(status_code=403, detail="Supplier access required")


def _order_service(
    db: Session = Depends(deps.get_db),
    directory: UserDirectoryInterface = Depends(deps.get_user_directory),
    notifier: NotifierInterface = Depends(deps.get_notifier),
) -> OrderService:
    return OrderService(db, directory, notifier)


@router.post("/orders", response_model=Order, status_code=status.HTTP_201_CREATED)
async def create_order(
    order_in: OrderCreate,
    service: OrderService = Depends(_order_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    Buy a quantity of one offer.

    The unit price and commission are computed now and frozen on the order.
    """
    try:
        return await service.create_order(
            buyer_id=current_user.sub,
            offer_id=order_in.offer_id,
            quantity=order_in.quantity,
            shipping_address_id=order_in.shipping_address_id,
        )
    except MarketplaceError as e:
        raise_http(e)


@router.get("/orders", response_model=OrderList)
def list_my_orders(
    status: Optional[OrderStatus] = None,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
    service: OrderService = Depends(_order_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """List the caller's orders as a buyer."""
    orders, total = service.list_buyer_orders(
        current_user.sub, status=status, skip=skip, limit=limit
    )
    return OrderList(items=orders, total=total)


@router.get("/supplier/orders", response_model=OrderList)
def list_supplier_orders(
    status: Optional[OrderStatus] = None,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
    service: OrderService = Depends(_order_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """List orders containing the supplier's offers."""
    _require_supplier(current_user)
    orders, total = service.list_supplier_orders(
        current_user.sub, status=status, skip=skip, limit=limit
    )
    return OrderList(items=orders, total=total)


@router.get("/orders/{order_id}", response_model=Order)
def get_order(
    order_id: str,
    service: OrderService = Depends(_order_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    try:
        return service.get_order_for_actor(
            order_id, current_user.sub, is_admin=current_user.has_role("admin")
        )
    except MarketplaceError as e:
        raise_http(e)


async def _transition(
    order_id: str,
    action: OrderAction,
    service: OrderService,
    current_user: TokenPayload,
) -> OrderTransitionResponse:
    try:
        result = await service.transition_order(order_id, current_user.sub, action)
    except MarketplaceError as e:
        raise_http(e)

    order = crud.order.get(service.db, id=order_id)
    return OrderTransitionResponse(
        order_id=order_id,
        action=action,
        result=result,
        status=OrderStatus(order.status),
    )


@router.post("/orders/{order_id}/accept", response_model=OrderTransitionResponse)
async def accept_order(
    order_id: str,
    service: OrderService = Depends(_order_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Supplier accepts a pending order. Repeats are no-ops."""
    return await _transition(order_id, OrderAction.accept, service, current_user)


@router.post("/orders/{order_id}/ship", response_model=OrderTransitionResponse)
async def ship_order(
    order_id: str,
    service: OrderService = Depends(_order_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Supplier marks an accepted order shipped."""
    return await _transition(order_id, OrderAction.ship, service, current_user)


@router.post("/orders/{order_id}/confirm-delivery", response_model=OrderTransitionResponse)
async def confirm_delivery(
    order_id: str,
    service: OrderService = Depends(_order_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Buyer confirms a shipped order arrived."""
    return await _transition(order_id, OrderAction.confirm_delivery, service, current_user)


@router.post("/orders/{order_id}/cancel", response_model=OrderTransitionResponse)
async def cancel_order(
    order_id: str,
    service: OrderService = Depends(_order_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Buyer cancels a pending, unpaid order."""
    return await _transition(order_id, OrderAction.cancel, service, current_user)
