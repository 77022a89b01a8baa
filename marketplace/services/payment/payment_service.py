# marketplace/services/payment/payment_service.py
import asyncio
import logging
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.orm import Session

from marketplace import crud
from marketplace.core.config import settings
from marketplace.core.errors import (
    Forbidden,
    OrderAlreadyPaid,
    OrderNotFound,
    OrderNotPending,
    PaymentGatewayError,
    PaymentNotFound,
)
from marketplace.models.payment import Payment
from marketplace.schemas.order import OrderStatus
from marketplace.schemas.payment import (
    CheckoutResponse,
    PaymentCreate,
    PaymentMethod,
    PaymentStatus,
    allowed_sources,
)
from marketplace.services.notifier import NotificationKind, NotifierInterface, publish_notification
from .provider_interface import (
    CreateCheckoutSessionParams,
    PaymentError,
    PaymentProviderInterface,
)

logger = logging.getLogger(__name__)

PAYMENT_NOTIFICATIONS: Dict[PaymentStatus, NotificationKind] = {
    PaymentStatus.captured: NotificationKind.payment_succeeded,
    PaymentStatus.failed: NotificationKind.payment_failed,
    PaymentStatus.refunded: NotificationKind.payment_refunded,
    PaymentStatus.cancelled: NotificationKind.payment_cancelled,
}


def apply_payment_status(
    db: Session,
    *,
    payment_id: str,
    status: PaymentStatus,
    strict: Optional[bool] = None,
) -> bool:
    """
    Write a gateway-reported status onto a payment.

    With strict transitions only moves in ALLOWED_PAYMENT_TRANSITIONS are
    written; otherwise the latest report wins. Returns True if the row changed.
    """
    if strict is None:
        strict = settings.PAYMENT_STRICT_TRANSITIONS
    allowed_from = allowed_sources(status) if strict else None
    return crud.payment.apply_status(
        db, payment_id=payment_id, status=status, allowed_from=allowed_from
    )


def notify_payment_status(
    notifier: NotifierInterface,
    payment: Payment,
    status: PaymentStatus,
    amount: Optional[Decimal] = None,
    currency: Optional[str] = None,
) -> bool:
    """Tell the buyer about a payment status change."""
    kind = PAYMENT_NOTIFICATIONS.get(status)
    if kind is None:
        return False

    payload = {
        "orderId": payment.order_id,
        "paymentId": payment.id,
        "status": status.value,
    }
    if status in (PaymentStatus.captured, PaymentStatus.refunded):
        payload["amount"] = str(amount if amount is not None else payment.amount)
        payload["currency"] = currency or payment.currency
    return publish_notification(notifier, payment.order.buyer_id, kind, payload)


class PaymentService:
    """
    Checkout orchestration.

    This service:
    - Opens a new payment attempt and hosted gateway session per checkout
    - Verifies a payment on the buyer's return from the gateway
    """

    def __init__(
        self,
        db: Session,
        provider: PaymentProviderInterface,
        notifier: NotifierInterface,
        gateway_timeout: Optional[float] = None,
    ):
        self.db = db
        self.provider = provider
        self.notifier = notifier
        self.gateway_timeout = (
            gateway_timeout
            if gateway_timeout is not None
            else settings.PAYMENT_GATEWAY_TIMEOUT_SECONDS
        )

    def _get_buyer_order(self, order_id: str, buyer_id: str):
        order = crud.order.get(self.db, id=order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found")
        if order.buyer_id != buyer_id:
            logger.info(f"User {buyer_id} is not the buyer of order {order_id}")
            raise Forbidden("Not allowed to pay for this order")
        return order

    async def begin_checkout(
        self,
        order_id: str,
        buyer_id: str,
        method: PaymentMethod = PaymentMethod.card,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> CheckoutResponse:
        """
        Create a payment attempt and a hosted checkout session for it.

        The attempt is committed before the gateway is called, so a timeout
        never leaves a session without a matching Payment row. On gateway
        failure the attempt stays pending with no reference and the buyer
        can check out again, which creates a new attempt.

        Raises:
            OrderNotFound / Forbidden: unknown order or not the buyer's
            OrderNotPending: the order has left pending
            OrderAlreadyPaid: a previous attempt was captured
            PaymentGatewayError: the gateway failed or timed out
        """
        order = self._get_buyer_order(order_id, buyer_id)
        if order.status != OrderStatus.pending.value:
            raise OrderNotPending(f"Order {order_id} is {order.status}")
        if crud.payment.has_captured_payment(self.db, order_id=order_id):
            raise OrderAlreadyPaid(f"Order {order_id} is already paid")

        success_url = success_url or settings.PAYMENT_SUCCESS_URL
        cancel_url = cancel_url or settings.PAYMENT_CANCEL_URL

        payment = crud.payment.create_attempt(
            self.db,
            obj_in=PaymentCreate(
                order_id=order.id,
                method=method,
                amount=order.total,
                currency=settings.PAYMENT_CURRENCY,
                provider=self.provider.code,
                return_url=success_url,
                cancel_url=cancel_url,
            ),
        )
        logger.info(f"Payment attempt {payment.id} created for order {order_id}")

        params = CreateCheckoutSessionParams(
            order_id=order.id,
            payment_id=payment.id,
            amount=payment.amount,
            currency=payment.currency,
            method=method,
            success_url=success_url,
            cancel_url=cancel_url,
            idempotency_key=f"checkout_{payment.id}",
            description=f"Order {order.id}",
        )

        try:
            session = await asyncio.wait_for(
                self.provider.create_checkout_session(params),
                timeout=self.gateway_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Gateway timed out after {self.gateway_timeout}s for payment {payment.id}"
            )
            raise PaymentGatewayError("Payment gateway timed out, please try again")
        except PaymentError as e:
            logger.error(f"Gateway error for payment {payment.id}: {e.code} {e.message}")
            raise PaymentGatewayError(e.message, retryable=e.retryable)

        if not crud.payment.set_reference(
            self.db, payment_id=payment.id, provider_reference=session.reference
        ):
            logger.warning(f"Payment {payment.id} already had a gateway reference")

        return CheckoutResponse(
            order_id=order.id,
            payment_id=payment.id,
            redirect_url=session.redirect_url,
        )

    async def verify_payment(
        self, order_id: str, buyer_id: str, reference: Optional[str] = None
    ) -> Payment:
        """
        Ask the gateway for the status of an attempt and apply it.

        Used when the buyer lands on the success page, before (or instead
        of) the webhook. Same transition rules as the reconciler.
        """
        self._get_buyer_order(order_id, buyer_id)

        if reference:
            payment = crud.payment.get_by_reference(self.db, provider_reference=reference)
            if payment and payment.order_id != order_id:
                payment = None
        else:
            payment = crud.payment.get_latest_for_order(self.db, order_id=order_id)
        if not payment:
            raise PaymentNotFound(f"No payment found for order {order_id}")
        if not payment.provider_reference:
            logger.info(f"Payment {payment.id} has no gateway session to verify")
            return payment

        try:
            status = await asyncio.wait_for(
                self.provider.get_session_status(payment.provider_reference),
                timeout=self.gateway_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Gateway timed out verifying payment {payment.id}")
            raise PaymentGatewayError("Payment gateway timed out, please try again")
        except PaymentError as e:
            logger.error(f"Gateway error verifying payment {payment.id}: {e.code} {e.message}")
            raise PaymentGatewayError(e.message, retryable=e.retryable)

        if status != PaymentStatus.pending and apply_payment_status(
            self.db, payment_id=payment.id, status=status
        ):
            logger.info(f"Payment {payment.id} verified as {status.value}")
            self.db.refresh(payment)
            notify_payment_status(self.notifier, payment, status)

        return payment
