import logging
from typing import Callable, Dict, List, Optional

from marketplace.core.config import settings
from .provider_interface import PaymentProviderInterface
from .providers.mock_provider import MockPaymentProvider
from .providers.stripe_provider import StripeConfig, StripeProvider

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "mock"


def _build_mock() -> PaymentProviderInterface:
    return MockPaymentProvider(settings.MOCK_WEBHOOK_SECRET)


def _build_stripe() -> Optional[PaymentProviderInterface]:
    if not (settings.STRIPE_SECRET_KEY and settings.STRIPE_WEBHOOK_SECRET):
        logger.warning("Stripe is not configured: STRIPE_SECRET_KEY/STRIPE_WEBHOOK_SECRET unset")
        return None
    return StripeProvider(
        StripeConfig(
            secret_key=settings.STRIPE_SECRET_KEY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            api_version=settings.STRIPE_API_VERSION,
            max_retries=settings.STRIPE_MAX_NETWORK_RETRIES,
        )
    )


PROVIDER_BUILDERS: Dict[str, Callable[[], Optional[PaymentProviderInterface]]] = {
    "mock": _build_mock,
    "stripe": _build_stripe,
}


class PaymentProviderFactory:
    """
    Holds one instance per configured gateway.

    Gateways whose credentials are missing are left out, so asking for them
    fails at lookup instead of on the first checkout.
    """

    def __init__(self):
        self._providers: Dict[str, PaymentProviderInterface] = {}
        for code, build in PROVIDER_BUILDERS.items():
            provider = build()
            if provider is not None:
                self._providers[code] = provider
        logger.info(f"Payment providers available: {', '.join(self._providers)}")

    def get_provider(self, code: str) -> PaymentProviderInterface:
        """
        Raises:
            ValueError: unknown code, or the gateway is not configured
        """
        try:
            return self._providers[code]
        except KeyError:
            raise ValueError(f"Payment provider '{code}' is not available")

    def list_available_providers(self) -> List[str]:
        return list(self._providers)


_factory: Optional[PaymentProviderFactory] = None


def get_payment_provider_factory() -> PaymentProviderFactory:
    global _factory
    if _factory is None:
        _factory = PaymentProviderFactory()
    return _factory


def get_payment_provider(code: Optional[str] = None) -> PaymentProviderInterface:
    """The gateway named by ``code``, else the one PAYMENT_PROVIDER selects."""
    return get_payment_provider_factory().get_provider(
        code or settings.PAYMENT_PROVIDER or DEFAULT_PROVIDER
    )
