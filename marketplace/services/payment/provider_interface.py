# marketplace/services/payment/provider_interface.py
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from datetime import datetime

from marketplace.schemas.payment import PaymentMethod, PaymentStatus


class WebhookEventType(str, Enum):
    """Gateway event types the reconciler understands."""
    CHECKOUT_COMPLETED = "checkout.session.completed"
    CHECKOUT_ASYNC_SUCCEEDED = "checkout.session.async_payment_succeeded"
    CHECKOUT_ASYNC_FAILED = "checkout.session.async_payment_failed"
    CHECKOUT_EXPIRED = "checkout.session.expired"
    PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"
    CHARGE_REFUNDED = "charge.refunded"
    UNKNOWN = "unknown"


# Payment status each handled event moves the payment to.
EVENT_STATUS_MAP: Dict[WebhookEventType, PaymentStatus] = {
    WebhookEventType.CHECKOUT_COMPLETED: PaymentStatus.captured,
    WebhookEventType.CHECKOUT_ASYNC_SUCCEEDED: PaymentStatus.captured,
    WebhookEventType.CHECKOUT_ASYNC_FAILED: PaymentStatus.failed,
    WebhookEventType.CHECKOUT_EXPIRED: PaymentStatus.cancelled,
    WebhookEventType.PAYMENT_INTENT_FAILED: PaymentStatus.failed,
    WebhookEventType.CHARGE_REFUNDED: PaymentStatus.refunded,
}


@dataclass
class CreateCheckoutSessionParams:
    """Parameters for opening a hosted checkout session."""
    order_id: str
    payment_id: str
    amount: Decimal  # Major units, e.g. 51.00
    currency: str  # ISO 4217
    method: PaymentMethod
    success_url: str
    cancel_url: str
    idempotency_key: str
    description: Optional[str] = None
    customer_email: Optional[str] = None


@dataclass
class CheckoutSessionResult:
    """Result of opening a checkout session."""
    reference: str
    redirect_url: str
    expires_at: Optional[datetime] = None


@dataclass
class WebhookEvent:
    """Standardized webhook event."""
    event_id: str
    event_type: WebhookEventType
    raw_type: str
    created_at: datetime
    reference: Optional[str] = None  # Checkout session id
    payment_intent_id: Optional[str] = None
    order_id: Optional[str] = None
    payment_id: Optional[str] = None
    amount: Optional[Decimal] = None  # Major units
    currency: Optional[str] = None
    raw_payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def target_status(self) -> Optional[PaymentStatus]:
        return EVENT_STATUS_MAP.get(self.event_type)


class PaymentError(Exception):
    """Custom exception for payment gateway errors."""

    def __init__(self, code: str, message: str, retryable: bool = False):
        self.code = code
        self.message = message
        self.retryable = retryable
        super().__init__(message)


class PaymentProviderInterface(ABC):
    """
    Contract every payment gateway client implements.
    Business logic only talks to this interface.
    """

    # Request header that carries the webhook signature
    signature_header = "X-Signature"

    @property
    @abstractmethod
    def code(self) -> str:
        """Provider code identifier (e.g., 'stripe', 'mock')."""
        pass

    @abstractmethod
    async def create_checkout_session(
        self, params: CreateCheckoutSessionParams
    ) -> CheckoutSessionResult:
        """
        Open a hosted checkout session and return where to send the buyer.

        Raises:
            PaymentError: the gateway refused or could not be reached
        """
        pass

    @abstractmethod
    async def get_session_status(self, reference: str) -> PaymentStatus:
        """Ask the gateway for the authoritative status of a session."""
        pass

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        """Verify webhook signature."""
        pass

    @abstractmethod
    def parse_webhook_event(self, payload: bytes) -> WebhookEvent:
        """
        Parse webhook event into standardized format.

        Raises:
            PaymentError: payload is not a well-formed event
        """
        pass

    async def enrich_event(self, event: WebhookEvent) -> WebhookEvent:
        """Fill in correlation ids for events that arrive without metadata."""
        return event
