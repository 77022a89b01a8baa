# marketplace/schemas/order.py
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from enum import Enum


# ============================================
# Enums
# ============================================

class OrderStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


class BuyerRole(str, Enum):
    """Closed set of roles that price an order line differently."""
    individual = "individual"
    shop = "shop"
    admin = "admin"


class OrderAction(str, Enum):
    accept = "accept"
    ship = "ship"
    confirm_delivery = "confirm_delivery"
    cancel = "cancel"


class TransitionResult(str, Enum):
    applied = "applied"
    noop = "noop"


# ============================================
# Order Schemas
# ============================================

class OrderCreate(BaseModel):
    offer_id: str
    quantity: int = Field(..., description="Units to buy; must meet the offer minimum")
    shipping_address_id: Optional[str] = None


class OrderItem(BaseModel):
    id: str
    offer_id: str
    supplier_id: str
    product_id: str
    product_name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    commission_rate: Decimal
    commission_amount: Decimal
    net_to_supplier: Decimal

    model_config = {"from_attributes": True}


class Order(BaseModel):
    id: str
    buyer_id: str
    status: OrderStatus
    total: Decimal
    currency: str
    shipping_address_id: Optional[str] = None
    version: int
    created_at: datetime
    items: List[OrderItem] = []

    model_config = {"from_attributes": True}


class OrderTransitionResponse(BaseModel):
    order_id: str
    action: OrderAction
    result: TransitionResult
    status: OrderStatus


class OrderList(BaseModel):
    items: List[Order]
    total: int
