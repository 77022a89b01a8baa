# marketplace/schemas/payment.py
from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime
from decimal import Decimal
from enum import Enum


# ============================================
# Enums
# ============================================

class PaymentStatus(str, Enum):
    pending = "pending"
    authorized = "authorized"
    captured = "captured"
    refunded = "refunded"
    failed = "failed"
    cancelled = "cancelled"


class PaymentMethod(str, Enum):
    card = "card"
    apple_pay = "apple_pay"
    knet = "knet"
    mada = "mada"
    bank_transfer = "bank_transfer"


class WebhookEventStatus(str, Enum):
    pending = "pending"
    processed = "processed"
    skipped = "skipped"
    failed = "failed"


# Allowed payment status moves when strict transitions are enabled.
# Re-applying the current status is always accepted as a no-op.
ALLOWED_PAYMENT_TRANSITIONS: Dict[PaymentStatus, set] = {
    PaymentStatus.pending: {
        PaymentStatus.authorized,
        PaymentStatus.captured,
        PaymentStatus.failed,
        PaymentStatus.cancelled,
    },
    PaymentStatus.authorized: {
        PaymentStatus.captured,
        PaymentStatus.failed,
        PaymentStatus.cancelled,
    },
    # A buyer can retry inside the same hosted session after a decline.
    PaymentStatus.failed: {PaymentStatus.captured},
    PaymentStatus.captured: {PaymentStatus.refunded},
    PaymentStatus.refunded: set(),
    PaymentStatus.cancelled: set(),
}


def allowed_sources(target: PaymentStatus) -> set:
    """Statuses a payment may currently hold for ``target`` to be applied."""
    return {
        source
        for source, targets in ALLOWED_PAYMENT_TRANSITIONS.items()
        if target in targets
    }


# ============================================
# Payment Schemas
# ============================================

class PaymentCreate(BaseModel):
    order_id: str
    method: PaymentMethod
    amount: Decimal
    currency: str
    provider: str
    return_url: Optional[str] = None
    cancel_url: Optional[str] = None


class Payment(BaseModel):
    id: str
    order_id: str
    method: PaymentMethod
    status: PaymentStatus
    amount: Decimal
    currency: str
    provider: str
    provider_reference: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CheckoutRequest(BaseModel):
    method: PaymentMethod = PaymentMethod.card


class CheckoutResponse(BaseModel):
    order_id: str
    payment_id: str
    redirect_url: str


class VerifyPaymentRequest(BaseModel):
    reference: Optional[str] = None


# ============================================
# Webhook Event Schemas
# ============================================

class WebhookEventCreate(BaseModel):
    provider: str
    provider_event_id: str
    provider_event_type: str
    payload: Dict[str, Any]


class WebhookAck(BaseModel):
    status: str
    event_id: Optional[str] = None
    payment_id: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None
