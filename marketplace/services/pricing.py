"""
Order line pricing and commission settlement.

Pricing model:
- Shop buyers ordering at least the wholesale threshold pay the offer price
- Everyone else pays the offer price plus the retail markup
- Commission depends on the supplier's most recently approved plan:
  the commission plan pays the platform rate, any other plan pays nothing
- All amounts are Decimal, rounded half-up to 2 places
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy.orm import Session

from marketplace import crud
from marketplace.core.config import settings
from marketplace.core.errors import InvalidQuantity, OfferInactive, QuantityBelowMinimum
from marketplace.models.offer import Offer
from marketplace.schemas.order import BuyerRole
from marketplace.schemas.supplier_application import SupplierPlanType

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")


def round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LinePricing:
    unit_price: Decimal
    line_total: Decimal
    commission_rate: Decimal
    commission_amount: Decimal
    net_to_supplier: Decimal


class PricingEngine:
    """
    Computes the frozen price and settlement of a single order line.

    Args:
        markup_rate: Retail markup over the offer price (e.g. 0.02 for 2%)
        wholesale_min_quantity: Shop quantity at which the markup is waived
        commission_rate: Platform commission for suppliers on the commission plan
    """

    def __init__(
        self,
        markup_rate: Optional[Decimal] = None,
        wholesale_min_quantity: Optional[int] = None,
        commission_rate: Optional[Decimal] = None,
    ):
        self.markup_rate = Decimal(
            markup_rate if markup_rate is not None else settings.RETAIL_MARKUP_RATE
        )
        self.wholesale_min_quantity = (
            wholesale_min_quantity
            if wholesale_min_quantity is not None
            else settings.WHOLESALE_MIN_QUANTITY
        )
        self.commission_rate = Decimal(
            commission_rate if commission_rate is not None else settings.COMMISSION_RATE
        )

    def unit_price_for(self, price: Decimal, role: BuyerRole, quantity: int) -> Decimal:
        if role == BuyerRole.shop and quantity >= self.wholesale_min_quantity:
            return round_money(price)
        return round_money(Decimal(price) * (Decimal("1") + self.markup_rate))

    def rate_for_plan(self, plan_type: SupplierPlanType) -> Decimal:
        if plan_type == SupplierPlanType.commission:
            return self.commission_rate
        return Decimal("0")

    def compute_line(
        self,
        offer: Offer,
        role: BuyerRole,
        quantity: int,
        plan_type: SupplierPlanType = SupplierPlanType.commission,
    ) -> LinePricing:
        """
        Price one line. Pure: reads nothing beyond its arguments.

        Raises:
            InvalidQuantity: quantity is not a positive integer
            OfferInactive: the offer is switched off
            QuantityBelowMinimum: quantity is under the offer's minimum
        """
        # bool is an int subclass
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidQuantity("Quantity must be a positive integer")
        if not offer.is_active:
            raise OfferInactive(f"Offer {offer.id} is not active")
        if quantity < (offer.min_order_qty or 1):
            raise QuantityBelowMinimum(offer.min_order_qty)

        unit_price = self.unit_price_for(offer.price, role, quantity)
        line_total = round_money(unit_price * quantity)
        rate = self.rate_for_plan(plan_type)
        commission_amount = round_money(line_total * rate)

        return LinePricing(
            unit_price=unit_price,
            line_total=line_total,
            commission_rate=rate,
            commission_amount=commission_amount,
            net_to_supplier=line_total - commission_amount,
        )


def resolve_plan_type(db: Session, supplier_id: str) -> SupplierPlanType:
    """Plan of the supplier's latest approved application, commission if none."""
    application = crud.supplier_application.get_latest_approved(
        db, supplier_id=supplier_id
    )
    if not application or not application.plan_type:
        return SupplierPlanType.commission
    try:
        return SupplierPlanType(application.plan_type)
    except ValueError:
        logger.warning(
            f"Unknown plan type '{application.plan_type}' on application {application.id}"
        )
        return SupplierPlanType.flat_fee


def price_order_line(
    db: Session,
    offer: Offer,
    role: BuyerRole,
    quantity: int,
    engine: Optional[PricingEngine] = None,
) -> LinePricing:
    """Look up the supplier's plan, then price the line."""
    engine = engine or PricingEngine()
    plan_type = resolve_plan_type(db, offer.supplier_id)
    return engine.compute_line(offer, role, quantity, plan_type)
