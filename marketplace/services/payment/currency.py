# marketplace/services/payment/currency.py
"""
Conversion between major units (Decimal, as stored) and the integer minor
units gateways expect. Decimal places per currency come from settings, not
from a hard-coded table.
"""
from decimal import Decimal, ROUND_HALF_UP
from marketplace.core.config import settings


def minor_units(currency: str) -> int:
    return settings.minor_units_for(currency)


def to_minor_units(amount: Decimal, currency: str) -> int:
    """51.00 KWD -> 51000"""
    factor = Decimal(10) ** minor_units(currency)
    return int((Decimal(amount) * factor).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int, currency: str) -> Decimal:
    """51000 KWD -> Decimal('51.000')"""
    places = minor_units(currency)
    return (Decimal(int(amount)) / (Decimal(10) ** places)).quantize(
        Decimal(1).scaleb(-places)
    )
