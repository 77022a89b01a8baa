"""
Unit tests for order line pricing and commission settlement.
"""
import random
from decimal import Decimal

import pytest

from marketplace.core.errors import (
    InvalidQuantity,
    OfferInactive,
    OfferNotFound,
    QuantityBelowMinimum,
)
from marketplace.models.offer import Offer
from marketplace.schemas.order import BuyerRole
from marketplace.schemas.supplier_application import SupplierPlanType
from marketplace.services.pricing import PricingEngine, price_order_line, resolve_plan_type, round_money
from tests.utils.factories import create_application, create_offer


def _make_offer(price="100.00", min_order_qty=1, is_active=True):
    return Offer(
        id="ofr_test",
        supplier_id="sup_1",
        product_id="prd_1",
        price=Decimal(price),
        currency="KWD",
        min_order_qty=min_order_qty,
        is_active=is_active,
    )


engine = PricingEngine(
    markup_rate=Decimal("0.02"),
    wholesale_min_quantity=50,
    commission_rate=Decimal("0.02"),
)


class TestUnitPrice:
    def test_individual_pays_markup(self):
        line = engine.compute_line(_make_offer("50.00"), BuyerRole.individual, 1)
        assert line.unit_price == Decimal("51.00")
        assert line.line_total == Decimal("51.00")

    def test_shop_wholesale_quantity_pays_base_price(self):
        line = engine.compute_line(_make_offer("10.00"), BuyerRole.shop, 50)
        assert line.unit_price == Decimal("10.00")
        assert line.line_total == Decimal("500.00")

    def test_shop_below_wholesale_quantity_pays_markup(self):
        line = engine.compute_line(_make_offer("10.00"), BuyerRole.shop, 49)
        assert line.unit_price == Decimal("10.20")

    def test_admin_pays_markup_even_in_bulk(self):
        line = engine.compute_line(_make_offer("10.00"), BuyerRole.admin, 100)
        assert line.unit_price == Decimal("10.20")

    def test_markup_rounds_half_up(self):
        # 0.25 * 1.02 = 0.255
        line = engine.compute_line(_make_offer("0.25"), BuyerRole.individual, 1)
        assert line.unit_price == Decimal("0.26")


class TestCommission:
    def test_commission_plan(self):
        line = engine.compute_line(
            _make_offer("50.00"), BuyerRole.individual, 1, SupplierPlanType.commission
        )
        assert line.commission_rate == Decimal("0.02")
        assert line.commission_amount == Decimal("1.02")
        assert line.net_to_supplier == Decimal("49.98")

    def test_flat_fee_plan_pays_no_commission(self):
        line = engine.compute_line(
            _make_offer("50.00"), BuyerRole.individual, 3, SupplierPlanType.flat_fee
        )
        assert line.commission_rate == Decimal("0")
        assert line.commission_amount == Decimal("0.00")
        assert line.net_to_supplier == line.line_total

    def test_settlement_always_balances(self):
        rng = random.Random(7)
        for _ in range(500):
            price = Decimal(rng.randint(1, 1_000_000)) / 100
            quantity = rng.randint(1, 500)
            role = rng.choice(list(BuyerRole))
            plan = rng.choice(list(SupplierPlanType))
            line = engine.compute_line(_make_offer(str(price)), role, quantity, plan)

            assert line.commission_amount + line.net_to_supplier == line.line_total
            assert line.line_total == round_money(line.unit_price * quantity)
            for amount in (line.unit_price, line.line_total, line.commission_amount):
                assert amount == amount.quantize(Decimal("0.01"))
            if role == BuyerRole.shop and quantity >= 50:
                assert line.unit_price == round_money(price)
            else:
                assert line.unit_price >= round_money(price)

    def test_defaults_come_from_settings(self):
        default_engine = PricingEngine()
        assert default_engine.markup_rate == Decimal("0.02")
        assert default_engine.wholesale_min_quantity == 50
        assert default_engine.commission_rate == Decimal("0.02")


class TestValidation:
    @pytest.mark.parametrize("quantity", [0, -3, True, 2.5, "4"])
    def test_invalid_quantity(self, quantity):
        with pytest.raises(InvalidQuantity):
            engine.compute_line(_make_offer(), BuyerRole.individual, quantity)

    def test_inactive_offer(self):
        with pytest.raises(OfferInactive) as exc_info:
            engine.compute_line(_make_offer(is_active=False), BuyerRole.individual, 1)
        # Callers that only care about availability catch OfferNotFound
        assert isinstance(exc_info.value, OfferNotFound)

    def test_quantity_below_minimum(self):
        with pytest.raises(QuantityBelowMinimum) as exc_info:
            engine.compute_line(_make_offer(min_order_qty=10), BuyerRole.shop, 9)
        assert exc_info.value.minimum == 10

    def test_quantity_at_minimum_is_accepted(self):
        line = engine.compute_line(_make_offer("2.00", min_order_qty=10), BuyerRole.shop, 10)
        assert line.line_total == Decimal("20.40")


class TestPlanResolution:
    def test_no_application_defaults_to_commission(self, db):
        assert resolve_plan_type(db, "sup_unknown") == SupplierPlanType.commission

    def test_latest_approved_application_wins(self, db):
        from datetime import datetime, timedelta, timezone

        now = datetime.now(timezone.utc)
        create_application(db, "sup_1", plan_type="commission", reviewed_at=now - timedelta(days=2))
        create_application(db, "sup_1", plan_type="flat_fee", reviewed_at=now - timedelta(days=1))
        create_application(db, "sup_1", plan_type="commission", status="rejected", reviewed_at=now)

        assert resolve_plan_type(db, "sup_1") == SupplierPlanType.flat_fee

    def test_unknown_plan_is_treated_as_flat_fee(self, db):
        create_application(db, "sup_1", plan_type="enterprise")
        assert resolve_plan_type(db, "sup_1") == SupplierPlanType.flat_fee

    def test_price_order_line_uses_supplier_plan(self, db):
        offer = create_offer(db, supplier_id="sup_1", price="50.00")
        create_application(db, "sup_1", plan_type="flat_fee")

        line = price_order_line(db, offer, BuyerRole.individual, 2, engine=engine)

        assert line.line_total == Decimal("102.00")
        assert line.commission_amount == Decimal("0.00")
        assert line.net_to_supplier == Decimal("102.00")
