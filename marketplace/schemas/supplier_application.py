# marketplace/schemas/supplier_application.py
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class SupplierPlanType(str, Enum):
    commission = "commission"
    flat_fee = "flat_fee"


class SupplierApplicationStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class SupplierApplicationCreate(BaseModel):
    display_name: str = Field(..., max_length=255)
    full_name: str = Field(..., max_length=255)
    company_or_shop_name: str = Field(..., max_length=255)
    phone_with_country: str = Field(..., max_length=50)
    email: str = Field(..., max_length=255)
    company_type: Optional[str] = None
    product_scope: Optional[str] = None
    residence_location: Optional[str] = None
    exact_location: Optional[str] = None
    plan_type: SupplierPlanType = SupplierPlanType.commission


class SupplierApplicationReject(BaseModel):
    notes: Optional[str] = None


class SupplierApplication(SupplierApplicationCreate):
    id: str
    user_id: str
    status: SupplierApplicationStatus
    created_at: datetime
    reviewed_at: Optional[datetime] = None
    reviewer_id: Optional[str] = None
    review_notes: Optional[str] = None

    model_config = {"from_attributes": True}
