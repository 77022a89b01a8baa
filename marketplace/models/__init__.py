# marketplace/models/__init__.py
from .offer import Offer
from .order import Order
from .order_item import OrderItem
from .payment import Payment
from .payment_webhook_event import PaymentWebhookEvent
from .supplier_application import SupplierApplication

__all__ = [
    "Offer",
    "Order",
    "OrderItem",
    "Payment",
    "PaymentWebhookEvent",
    "SupplierApplication",
]
