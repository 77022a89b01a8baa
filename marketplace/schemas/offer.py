# marketplace/schemas/offer.py
from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal

from marketplace.core.config import settings


class OfferBase(BaseModel):
    product_id: str
    product_name: Optional[str] = None
    price: Decimal = Field(..., gt=0, decimal_places=2)
    currency: str = Field(default_factory=lambda: settings.PAYMENT_CURRENCY, max_length=3)
    stock_qty: int = Field(0, ge=0)
    min_order_qty: int = Field(1, ge=1)
    is_active: bool = True


class OfferCreate(OfferBase):
    @field_validator("currency")
    @classmethod
    def match_payment_currency(cls, v: str) -> str:
        """Orders are charged in the platform currency, so offers are priced in it too."""
        currency = v.upper()
        if currency != settings.PAYMENT_CURRENCY.upper():
            raise ValueError(f"Offers must be priced in {settings.PAYMENT_CURRENCY}")
        return currency


class OfferUpdate(BaseModel):
    product_name: Optional[str] = None
    price: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    stock_qty: Optional[int] = Field(None, ge=0)
    min_order_qty: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class Offer(OfferBase):
    id: str
    supplier_id: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
