# marketplace/api/v1/endpoints/webhooks.py
"""
Webhook endpoint for the payment gateway.

SECURITY NOTES:
- Always verify webhook signatures
- Process events idempotently
- Log all events for audit purposes

The gateway retries on non-2xx responses, so only a bad signature, an
unparseable body or an internal failure answers non-2xx.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from marketplace.api import deps
from marketplace.core.errors import InvalidPayload, InvalidSignature, raise_http
from marketplace.schemas.payment import WebhookAck
from marketplace.services.notifier import NotifierInterface
from marketplace.services.payment.provider_interface import PaymentProviderInterface
from marketplace.services.payment.webhook_reconciler import WebhookReconciler

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/payments", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    db: Session = Depends(deps.get_db),
    provider: PaymentProviderInterface = Depends(deps.get_payment_gateway),
    notifier: NotifierInterface = Depends(deps.get_notifier),
):
    """
    Handle payment gateway webhook events.

    The signature is read from the header of the configured provider:
    Stripe-Signature for Stripe, X-Signature for the mock gateway.
    """
    body = await request.body()
    signature = request.headers.get(provider.signature_header)

    if not signature:
        logger.warning(f"Webhook received without {provider.signature_header} header")

    reconciler = WebhookReconciler(db, provider, notifier)
    try:
        result = await reconciler.handle_webhook(body, signature)
    except (InvalidSignature, InvalidPayload) as e:
        raise_http(e)
    except Exception as e:
        logger.error(f"Unexpected error in payment webhook: {e}")
        raise HTTPException(status_code=500, detail="Internal error")

    return WebhookAck(
        status=result.status,
        event_id=result.event_id,
        payment_id=result.payment_id,
        payment_status=result.payment_status,
    )
