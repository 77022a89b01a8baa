# marketplace/services/payment/providers/stripe_provider.py
import asyncio
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import stripe

from marketplace.schemas.payment import PaymentMethod, PaymentStatus
from ..currency import from_minor_units, to_minor_units
from ..provider_interface import (
    CheckoutSessionResult,
    CreateCheckoutSessionParams,
    PaymentError,
    PaymentProviderInterface,
    WebhookEvent,
    WebhookEventType,
)

logger = logging.getLogger(__name__)


@dataclass
class StripeConfig:
    """Configuration for Stripe provider."""
    secret_key: str
    webhook_secret: str
    api_version: str = "2023-10-16"
    max_retries: int = 2


# Checkout payment_method_types per buyer-selected method
STRIPE_METHOD_MAP: Dict[PaymentMethod, List[str]] = {
    PaymentMethod.card: ["card"],
    PaymentMethod.apple_pay: ["card"],  # Apple Pay rides on card rails
    PaymentMethod.mada: ["card"],  # Mada routes through card rails on Stripe
    PaymentMethod.knet: ["knet"],  # Requires the KNET capability on the account
    PaymentMethod.bank_transfer: ["customer_balance"],
}

CHECKOUT_EVENT_TYPES = {
    WebhookEventType.CHECKOUT_COMPLETED,
    WebhookEventType.CHECKOUT_ASYNC_SUCCEEDED,
    WebhookEventType.CHECKOUT_ASYNC_FAILED,
    WebhookEventType.CHECKOUT_EXPIRED,
}


def _metadata_value(metadata: Any, *keys: str) -> Optional[str]:
    """Read the first present key from a dict or StripeObject."""
    if not metadata:
        return None
    for key in keys:
        try:
            value = metadata[key]
        except (KeyError, TypeError):
            continue
        if value:
            return str(value)
    return None


def _string_field(data_object: Dict[str, Any], key: str) -> Optional[str]:
    """A string attribute of the event object, None when absent."""
    value = data_object.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise PaymentError(code="PARSE_ERROR", message=f"Event field {key} must be a string")
    return value


def with_reference_param(url: str, reference: str) -> str:
    """Append ref=<reference> to a return URL."""
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}ref={reference}"


def normalize_stripe_event(data: Dict[str, Any]) -> WebhookEvent:
    """
    Turn a Stripe-shaped event dict into a WebhookEvent.

    Correlation ids are read from ``metadata.order_id`` / ``metadata.payment_id``
    (``orderId`` is accepted for sessions opened by older clients).
    """
    if not isinstance(data, dict):
        raise PaymentError(code="PARSE_ERROR", message="Event must be a JSON object")

    event_id = data.get("id")
    raw_type = data.get("type")
    envelope = data.get("data")
    data_object = envelope.get("object") if isinstance(envelope, dict) else None
    if not event_id or not raw_type or not isinstance(data_object, dict):
        raise PaymentError(code="PARSE_ERROR", message="Event is missing id, type or data.object")
    if not isinstance(raw_type, str):
        raise PaymentError(code="PARSE_ERROR", message="Event type must be a string")

    try:
        event_type = WebhookEventType(raw_type)
    except ValueError:
        event_type = WebhookEventType.UNKNOWN

    object_id = _string_field(data_object, "id") or ""
    object_kind = data_object.get("object")
    metadata = data_object.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise PaymentError(code="PARSE_ERROR", message="Event metadata must be an object")

    reference = None
    if event_type in CHECKOUT_EVENT_TYPES or object_kind == "checkout.session":
        reference = object_id or None

    if object_kind == "payment_intent" or object_id.startswith("pi_"):
        payment_intent_id = object_id
    else:
        payment_intent_id = _string_field(data_object, "payment_intent")

    if event_type == WebhookEventType.CHARGE_REFUNDED:
        minor_amount = data_object.get("amount_refunded")
    elif reference:
        minor_amount = data_object.get("amount_total")
    else:
        minor_amount = data_object.get("amount")

    currency = (_string_field(data_object, "currency") or "").upper() or None
    amount = None
    if minor_amount is not None and currency:
        try:
            amount = from_minor_units(minor_amount, currency)
        except (TypeError, ValueError, ArithmeticError):
            raise PaymentError(code="PARSE_ERROR", message="Event amount is not an integer")

    created = data.get("created")
    try:
        created_at = datetime.fromtimestamp(int(created or time.time()), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        raise PaymentError(code="PARSE_ERROR", message="Event timestamp is not an integer")

    return WebhookEvent(
        event_id=str(event_id),
        event_type=event_type,
        raw_type=str(raw_type),
        created_at=created_at,
        reference=reference,
        payment_intent_id=payment_intent_id,
        order_id=_metadata_value(metadata, "order_id", "orderId"),
        payment_id=_metadata_value(metadata, "payment_id", "paymentId"),
        amount=amount,
        currency=currency,
        raw_payload=data,
    )


class StripeProvider(PaymentProviderInterface):
    """
    Stripe Checkout implementation of PaymentProviderInterface.

    The Stripe SDK is synchronous; calls run in a worker thread so the
    caller's timeout can bound them.

    SECURITY NOTES:
    - Never log full card details
    - Always verify webhook signatures
    - Use idempotency keys for all mutations
    """

    signature_header = "Stripe-Signature"

    def __init__(self, config: StripeConfig):
        """Initialize Stripe provider with configuration."""
        self._config = config

        # Initialize Stripe with locked API version
        stripe.api_key = config.secret_key
        stripe.api_version = config.api_version
        stripe.max_network_retries = config.max_retries

    @property
    def code(self) -> str:
        return "stripe"

    async def create_checkout_session(
        self, params: CreateCheckoutSessionParams
    ) -> CheckoutSessionResult:
        """
        Create a hosted Checkout Session for one payment attempt.

        Uses the payment id as idempotency key so a retried request never
        opens two sessions for the same attempt.
        """
        metadata = {
            "order_id": params.order_id,
            "payment_id": params.payment_id,
            "method": params.method.value,
        }
        session_params: Dict[str, Any] = {
            "mode": "payment",
            "success_url": with_reference_param(params.success_url, "{CHECKOUT_SESSION_ID}"),
            "cancel_url": params.cancel_url,
            "client_reference_id": params.payment_id,
            "payment_method_types": STRIPE_METHOD_MAP.get(params.method, ["card"]),
            "line_items": [
                {
                    "quantity": 1,
                    "price_data": {
                        "currency": params.currency.lower(),
                        "unit_amount": to_minor_units(params.amount, params.currency),
                        "product_data": {
                            "name": params.description or f"Order {params.order_id}",
                        },
                    },
                }
            ],
            "metadata": metadata,
            # Copied onto the PaymentIntent so intent and charge events correlate too
            "payment_intent_data": {"metadata": metadata},
        }
        if params.customer_email:
            session_params["customer_email"] = params.customer_email

        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                **session_params,
                idempotency_key=params.idempotency_key,
            )
        except stripe.CardError as e:
            logger.error(f"Card error creating checkout session: {e.user_message}")
            raise PaymentError(
                code="CARD_ERROR",
                message=e.user_message or "Card was declined",
                retryable=True,
            )
        except stripe.RateLimitError as e:
            logger.error(f"Rate limit error: {e}")
            raise PaymentError(
                code="RATE_LIMIT",
                message="Too many requests. Please try again.",
                retryable=True,
            )
        except stripe.InvalidRequestError as e:
            logger.error(f"Invalid request error: {e}")
            raise PaymentError(
                code="INVALID_REQUEST",
                message=str(e),
                retryable=False,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error creating checkout session: {e}")
            raise PaymentError(
                code="PROVIDER_ERROR",
                message="Payment service temporarily unavailable",
                retryable=True,
            )

        expires_at = None
        if getattr(session, "expires_at", None):
            expires_at = datetime.fromtimestamp(session.expires_at, tz=timezone.utc)

        return CheckoutSessionResult(
            reference=session.id,
            redirect_url=session.url,
            expires_at=expires_at,
        )

    async def get_session_status(self, reference: str) -> PaymentStatus:
        """Map a Checkout Session's state onto our payment status."""
        try:
            session = await asyncio.to_thread(stripe.checkout.Session.retrieve, reference)
        except stripe.InvalidRequestError as e:
            logger.error(f"Unknown checkout session {reference}: {e}")
            raise PaymentError(code="NOT_FOUND", message="Checkout session not found")
        except stripe.StripeError as e:
            logger.error(f"Error retrieving checkout session {reference}: {e}")
            raise PaymentError(
                code="PROVIDER_ERROR",
                message="Could not retrieve payment status",
                retryable=True,
            )

        if session.payment_status in ("paid", "no_payment_required"):
            return PaymentStatus.captured
        if session.status == "expired":
            return PaymentStatus.cancelled
        return PaymentStatus.pending

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        """Verify the Stripe-Signature header against the endpoint secret."""
        if not signature or not self._config.webhook_secret:
            return False
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"),
                signature,
                self._config.webhook_secret,
                stripe.Webhook.DEFAULT_TOLERANCE,
            )
            return True
        except stripe.SignatureVerificationError:
            return False
        except UnicodeDecodeError:
            logger.warning("Webhook payload is not valid UTF-8")
            return False

    def parse_webhook_event(self, payload: bytes) -> WebhookEvent:
        """Parse Stripe webhook event into standardized format."""
        try:
            data = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            logger.error(f"Error parsing webhook event: {e}")
            raise PaymentError(
                code="PARSE_ERROR",
                message="Could not parse webhook event",
                retryable=False,
            )
        return normalize_stripe_event(data)

    async def enrich_event(self, event: WebhookEvent) -> WebhookEvent:
        """
        Charge events carry the charge's own metadata, which is usually empty.
        Fall back to the metadata on the PaymentIntent the session created.
        """
        if event.order_id or event.payment_id or not event.payment_intent_id:
            return event
        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.retrieve, event.payment_intent_id
            )
        except stripe.StripeError as e:
            logger.error(f"Error retrieving payment intent {event.payment_intent_id}: {e}")
            raise PaymentError(
                code="PROVIDER_ERROR",
                message="Could not retrieve payment intent",
                retryable=True,
            )
        metadata = getattr(intent, "metadata", None)
        event.order_id = _metadata_value(metadata, "order_id", "orderId")
        event.payment_id = _metadata_value(metadata, "payment_id", "paymentId")
        return event
