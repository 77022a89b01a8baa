# marketplace/services/payment/webhook_reconciler.py
"""
Reconciles signed gateway callbacks onto Payment status.

Delivery is at-least-once and unordered. Each event is:
1. Verified against the provider's signing secret
2. Recorded in the webhook event ledger (one row per provider event id)
3. Resolved to a payment by gateway reference, then payment id, then order id
4. Applied with a single conditional UPDATE
5. Announced to the buyer, only when this delivery changed the row

Business mismatches (unknown payment, disallowed transition, unhandled
event type) are acknowledged so the gateway stops retrying. Internal
errors propagate so the gateway retries.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from marketplace import crud
from marketplace.core.config import settings
from marketplace.core.errors import InvalidPayload, InvalidSignature
from marketplace.models.payment import Payment
from marketplace.schemas.payment import (
    PaymentStatus,
    WebhookEventCreate,
    WebhookEventStatus,
)
from marketplace.services.notifier import NotifierInterface
from .payment_service import apply_payment_status, notify_payment_status
from .provider_interface import PaymentError, PaymentProviderInterface, WebhookEvent

logger = logging.getLogger(__name__)

RESULT_PROCESSED = "processed"
RESULT_ALREADY_PROCESSED = "already_processed"
RESULT_SKIPPED = "skipped"
RESULT_IGNORED = "ignored"


@dataclass
class ReconcileResult:
    status: str
    event_id: Optional[str] = None
    payment_id: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None


class WebhookReconciler:
    def __init__(
        self,
        db: Session,
        provider: PaymentProviderInterface,
        notifier: NotifierInterface,
        strict_transitions: Optional[bool] = None,
    ):
        self.db = db
        self.provider = provider
        self.notifier = notifier
        self.strict_transitions = (
            strict_transitions
            if strict_transitions is not None
            else settings.PAYMENT_STRICT_TRANSITIONS
        )

    async def handle_webhook(self, payload: bytes, signature: Optional[str]) -> ReconcileResult:
        """
        Process one inbound webhook delivery.

        Raises:
            InvalidSignature: signature missing or wrong; nothing is recorded
            InvalidPayload: signed body is not a well-formed event
        """
        if not self.provider.verify_webhook_signature(payload, signature or ""):
            logger.warning(f"Invalid {self.provider.code} webhook signature")
            raise InvalidSignature("Invalid webhook signature")

        try:
            event = self.provider.parse_webhook_event(payload)
        except PaymentError as e:
            logger.warning(f"Unparseable {self.provider.code} webhook: {e.message}")
            raise InvalidPayload(e.message)

        if crud.webhook_event.is_already_processed(
            self.db, provider=self.provider.code, provider_event_id=event.event_id
        ):
            logger.info(f"Event {event.event_id} already processed, skipping")
            return ReconcileResult(status=RESULT_ALREADY_PROCESSED, event_id=event.event_id)

        ledger_row = crud.webhook_event.record(
            self.db,
            obj_in=WebhookEventCreate(
                provider=self.provider.code,
                provider_event_id=event.event_id,
                provider_event_type=event.raw_type,
                payload=event.raw_payload,
            ),
        )
        if ledger_row.is_processed:
            # A concurrent delivery settled it between the check and the insert
            return ReconcileResult(status=RESULT_ALREADY_PROCESSED, event_id=event.event_id)

        try:
            return await self._process(event, ledger_row.id)
        except Exception as e:
            logger.error(f"Error processing webhook event {event.event_id}: {e}", exc_info=True)
            self.db.rollback()
            crud.webhook_event.mark(
                self.db,
                event_id=ledger_row.id,
                status=WebhookEventStatus.failed,
                error=str(e),
            )
            raise

    async def _process(self, event: WebhookEvent, ledger_id: str) -> ReconcileResult:
        target = event.target_status
        if target is None:
            logger.info(f"Unhandled event type: {event.raw_type}")
            crud.webhook_event.mark(
                self.db,
                event_id=ledger_id,
                status=WebhookEventStatus.skipped,
                error=f"Unhandled event type {event.raw_type}",
            )
            return ReconcileResult(status=RESULT_IGNORED, event_id=event.event_id)

        event = await self.provider.enrich_event(event)
        payment = self._resolve_payment(event)
        if not payment:
            logger.warning(
                f"No payment for event {event.event_id} "
                f"(reference={event.reference}, order={event.order_id})"
            )
            crud.webhook_event.mark(
                self.db,
                event_id=ledger_id,
                status=WebhookEventStatus.skipped,
                error="Payment not found",
            )
            return ReconcileResult(status=RESULT_SKIPPED, event_id=event.event_id)

        previous_status = payment.status
        applied = apply_payment_status(
            self.db,
            payment_id=payment.id,
            status=target,
            strict=self.strict_transitions,
        )
        self.db.refresh(payment)

        if applied:
            logger.info(
                f"Payment {payment.id}: {previous_status} -> {target.value} "
                f"from event {event.event_id}"
            )
            notify_payment_status(
                self.notifier, payment, target, amount=event.amount, currency=event.currency
            )
            result_status = RESULT_PROCESSED
            ledger_status = WebhookEventStatus.processed
            error = None
        elif payment.status == target.value:
            logger.info(f"Payment {payment.id} already {target.value}, nothing to apply")
            result_status = RESULT_PROCESSED
            ledger_status = WebhookEventStatus.processed
            error = None
        else:
            logger.warning(
                f"Ignoring {payment.status} -> {target.value} for payment {payment.id} "
                f"from event {event.event_id}"
            )
            result_status = RESULT_SKIPPED
            ledger_status = WebhookEventStatus.skipped
            error = f"Transition {payment.status} -> {target.value} not allowed"

        crud.webhook_event.mark(
            self.db,
            event_id=ledger_id,
            status=ledger_status,
            related_payment_id=payment.id,
            error=error,
        )
        return ReconcileResult(
            status=result_status,
            event_id=event.event_id,
            payment_id=payment.id,
            payment_status=PaymentStatus(payment.status),
        )

    def _resolve_payment(self, event: WebhookEvent) -> Optional[Payment]:
        """
        Find the attempt an event is about.

        The reference may not be stored yet when the gateway answers faster
        than the checkout request commits, so metadata is the fallback.
        """
        if event.reference:
            payment = crud.payment.get_by_reference(
                self.db, provider_reference=event.reference
            )
            if payment:
                return payment

        payment = None
        if event.payment_id:
            payment = crud.payment.get(self.db, id=event.payment_id)
            if payment and event.order_id and payment.order_id != event.order_id:
                logger.warning(
                    f"Event {event.event_id} names payment {event.payment_id} "
                    f"on order {payment.order_id}, expected {event.order_id}"
                )
                payment = None
        if not payment and event.order_id:
            payment = crud.payment.get_latest_for_order(self.db, order_id=event.order_id)

        if payment and event.reference and not payment.provider_reference:
            crud.payment.set_reference(
                self.db, payment_id=payment.id, provider_reference=event.reference
            )
            self.db.refresh(payment)
        return payment
