# marketplace/services/payment/providers/mock_provider.py
import hashlib
import hmac
import json
import logging
import uuid

from marketplace.schemas.payment import PaymentStatus
from ..provider_interface import (
    CheckoutSessionResult,
    CreateCheckoutSessionParams,
    PaymentError,
    PaymentProviderInterface,
    WebhookEvent,
)
from .stripe_provider import normalize_stripe_event, with_reference_param

logger = logging.getLogger(__name__)


class MockPaymentProvider(PaymentProviderInterface):
    """
    Offline gateway for development and tests.

    Sessions redirect straight to the success URL and always verify as
    captured. Webhooks use Stripe's event shape, signed with a hex
    HMAC-SHA256 of the raw body in the X-Signature header.
    """

    def __init__(self, webhook_secret: str):
        self._webhook_secret = webhook_secret

    @property
    def code(self) -> str:
        return "mock"

    async def create_checkout_session(
        self, params: CreateCheckoutSessionParams
    ) -> CheckoutSessionResult:
        reference = f"mock_cs_{uuid.uuid4().hex}"
        logger.info(f"Mock checkout session {reference} for payment {params.payment_id}")
        return CheckoutSessionResult(
            reference=reference,
            redirect_url=with_reference_param(params.success_url, reference),
        )

    async def get_session_status(self, reference: str) -> PaymentStatus:
        return PaymentStatus.captured

    def sign(self, payload: bytes) -> str:
        return hmac.new(
            self._webhook_secret.encode("utf-8"), payload, hashlib.sha256
        ).hexdigest()

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        if not signature:
            return False
        if signature.startswith("sha256="):
            signature = signature[len("sha256="):]
        return hmac.compare_digest(self.sign(payload), signature)

    def parse_webhook_event(self, payload: bytes) -> WebhookEvent:
        try:
            data = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            raise PaymentError(code="PARSE_ERROR", message="Could not parse webhook event")
        return normalize_stripe_event(data)
