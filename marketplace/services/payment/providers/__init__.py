# marketplace/services/payment/providers/__init__.py
from .mock_provider import MockPaymentProvider
from .stripe_provider import StripeConfig, StripeProvider

__all__ = ["MockPaymentProvider", "StripeConfig", "StripeProvider"]
