# marketplace/services/order_service.py
"""
Order aggregate: creation with frozen pricing, and the status machine.

    pending -> accepted -> shipped -> delivered
    pending -> cancelled

Every transition is a conditional UPDATE on (id, status). A transition
attempted from any other status is a silent no-op, so retried commands
never change state twice or notify twice.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from marketplace import crud
from marketplace.core.errors import (
    Forbidden,
    OfferNotFound,
    OrderAlreadyPaid,
    OrderInvariantViolation,
    OrderNotFound,
)
from marketplace.models.order import Order
from marketplace.models.order_item import OrderItem
from marketplace.schemas.order import OrderAction, OrderStatus, TransitionResult
from marketplace.services.notifier import (
    NotificationKind,
    NotifierInterface,
    publish_notification,
)
from marketplace.services.pricing import PricingEngine, price_order_line, round_money
from marketplace.services.user_directory import UserDirectoryInterface, resolve_buyer_role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    from_status: OrderStatus
    to_status: OrderStatus
    actor: str  # "buyer" or "supplier"
    notification: NotificationKind


TRANSITIONS: Dict[OrderAction, Transition] = {
    OrderAction.accept: Transition(
        OrderStatus.pending, OrderStatus.accepted, "supplier", NotificationKind.order_accepted
    ),
    OrderAction.ship: Transition(
        OrderStatus.accepted, OrderStatus.shipped, "supplier", NotificationKind.order_shipped
    ),
    OrderAction.confirm_delivery: Transition(
        OrderStatus.shipped, OrderStatus.delivered, "buyer", NotificationKind.order_delivered
    ),
    OrderAction.cancel: Transition(
        OrderStatus.pending, OrderStatus.cancelled, "buyer", NotificationKind.order_cancelled
    ),
}


def is_order_supplier(order: Order, actor_id: str) -> bool:
    """True when the actor supplies every line of the order."""
    return bool(order.items) and all(item.supplier_id == actor_id for item in order.items)


def can_view_order(order: Order, actor_id: str) -> bool:
    return order.buyer_id == actor_id or any(
        item.supplier_id == actor_id for item in order.items
    )


def check_order_totals(order: Order) -> None:
    """
    Verify the priced lines add up before anything is written.

    Raises:
        OrderInvariantViolation: a line or the order total is inconsistent
    """
    for item in order.items:
        expected_line = round_money(item.unit_price * item.quantity)
        if (
            item.line_total != expected_line
            or item.commission_amount + item.net_to_supplier != item.line_total
        ):
            logger.critical(
                f"Line for offer {item.offer_id} is inconsistent: {item.quantity} x "
                f"{item.unit_price} = {item.line_total}, commission {item.commission_amount} "
                f"+ net {item.net_to_supplier}"
            )
            raise OrderInvariantViolation("Order line totals are inconsistent")

    items_total = sum((item.line_total for item in order.items), Decimal("0"))
    if not order.items or items_total != order.total:
        logger.critical(
            f"Order total {order.total} does not match line totals {items_total} "
            f"for buyer {order.buyer_id}"
        )
        raise OrderInvariantViolation("Order total does not match its lines")


class OrderService:
    def __init__(
        self,
        db: Session,
        directory: UserDirectoryInterface,
        notifier: NotifierInterface,
        pricing: Optional[PricingEngine] = None,
    ):
        self.db = db
        self.directory = directory
        self.notifier = notifier
        self.pricing = pricing or PricingEngine()

    async def create_order(
        self,
        buyer_id: str,
        offer_id: str,
        quantity: int,
        shipping_address_id: Optional[str] = None,
    ) -> Order:
        """
        Price one offer for the buyer and persist the order with its line.

        Raises:
            Forbidden: the buyer holds no buyer role
            UserDirectoryUnavailable: the user service could not be asked
            OfferNotFound / OfferInactive: the offer is missing or switched off
            QuantityBelowMinimum / InvalidQuantity: bad quantity
            OrderInvariantViolation: the priced lines do not add up
        """
        user = await self.directory.get_user(buyer_id)
        role = resolve_buyer_role(user)
        if role is None:
            logger.info(f"User {buyer_id} has no buyer role, refusing order")
            raise Forbidden("Only individual, shop or admin users can place orders")

        offer = crud.offer.get(self.db, id=offer_id)
        if not offer:
            raise OfferNotFound(f"Offer {offer_id} not found")

        line = price_order_line(self.db, offer, role, quantity, engine=self.pricing)

        order = Order(
            buyer_id=buyer_id,
            status=OrderStatus.pending.value,
            total=line.line_total,
            currency=offer.currency,
            shipping_address_id=shipping_address_id,
        )
        order.items.append(
            OrderItem(
                offer_id=offer.id,
                supplier_id=offer.supplier_id,
                product_id=offer.product_id,
                product_name=offer.product_name,
                quantity=quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
                commission_rate=line.commission_rate,
                commission_amount=line.commission_amount,
                net_to_supplier=line.net_to_supplier,
            )
        )
        check_order_totals(order)

        order = crud.order.create_with_items(self.db, order=order)
        logger.info(
            f"Order {order.id} created for buyer {buyer_id} ({role.value}): "
            f"{quantity} x {line.unit_price} = {line.line_total}"
        )

        publish_notification(
            self.notifier,
            buyer_id,
            NotificationKind.order_created,
            {"orderId": order.id, "total": str(order.total), "currency": order.currency},
        )
        return order

    async def transition_order(
        self, order_id: str, actor_id: str, action: OrderAction
    ) -> TransitionResult:
        """
        Apply a status command to an order.

        Returns ``applied`` when this call moved the order, ``noop`` when the
        order was not in the action's source status (including when a
        concurrent caller won the race).
        """
        action = OrderAction(action)
        transition = TRANSITIONS[action]

        order = crud.order.get_with_items(self.db, order_id=order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found")

        if transition.actor == "supplier":
            authorized = is_order_supplier(order, actor_id)
        else:
            authorized = order.buyer_id == actor_id
        if not authorized:
            logger.info(f"User {actor_id} is not allowed to {action.value} order {order_id}")
            raise Forbidden(f"Not allowed to {action.value} this order")

        if order.status != transition.from_status.value:
            logger.info(
                f"{action.value} on order {order_id} ignored: status is {order.status}"
            )
            return TransitionResult.noop

        if action == OrderAction.cancel and crud.payment.has_captured_payment(
            self.db, order_id=order_id
        ):
            raise OrderAlreadyPaid("A captured payment exists for this order")

        applied = crud.order.transition_status(
            self.db,
            order_id=order_id,
            from_status=transition.from_status,
            to_status=transition.to_status,
        )
        if not applied:
            logger.info(f"{action.value} on order {order_id} lost a concurrent update")
            return TransitionResult.noop

        logger.info(
            f"Order {order_id}: {transition.from_status.value} -> {transition.to_status.value} by {actor_id}"
        )
        publish_notification(
            self.notifier,
            order.buyer_id,
            transition.notification,
            {"orderId": order_id, "status": transition.to_status.value},
        )
        return TransitionResult.applied

    def get_order_for_actor(
        self, order_id: str, actor_id: str, is_admin: bool = False
    ) -> Order:
        order = crud.order.get_with_items(self.db, order_id=order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found")
        if not is_admin and not can_view_order(order, actor_id):
            logger.info(f"User {actor_id} is not allowed to view order {order_id}")
            raise Forbidden("Not allowed to view this order")
        return order

    def list_buyer_orders(
        self,
        buyer_id: str,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Order], int]:
        return crud.order.get_by_buyer(
            self.db, buyer_id=buyer_id, status=status, skip=skip, limit=limit
        )

    def list_supplier_orders(
        self,
        supplier_id: str,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Order], int]:
        return crud.order.get_by_supplier(
            self.db, supplier_id=supplier_id, status=status, skip=skip, limit=limit
        )
