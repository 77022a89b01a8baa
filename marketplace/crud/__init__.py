# marketplace/crud/__init__.py

from .crud_offer import offer
from .crud_order import order
from .crud_payment import payment
from .crud_supplier_application import supplier_application
from .crud_webhook_event import webhook_event
