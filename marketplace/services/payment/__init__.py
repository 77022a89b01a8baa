# marketplace/services/payment/__init__.py
from .provider_interface import PaymentProviderInterface, PaymentError
from .provider_factory import PaymentProviderFactory, get_payment_provider
from .payment_service import PaymentService
from .webhook_reconciler import ReconcileResult, WebhookReconciler

__all__ = [
    "PaymentProviderInterface",
    "PaymentError",
    "PaymentProviderFactory",
    "get_payment_provider",
    "PaymentService",
    "ReconcileResult",
    "WebhookReconciler",
]
