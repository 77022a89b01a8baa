# marketplace/models/supplier_application.py
from sqlalchemy import Column, String, DateTime, Text, func
from marketplace.db.base_class import Base
import uuid
from datetime import datetime, timezone


class SupplierApplication(Base):
    __tablename__ = "supplier_applications"

    id = Column(
        String, primary_key=True, default=lambda: f"sap_{uuid.uuid4().hex[:12]}"
    )
    user_id = Column(String, nullable=False, index=True)  # applicant

    # Identity and listing details
    display_name = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    company_or_shop_name = Column(String(255), nullable=False)
    phone_with_country = Column(String(50), nullable=False)
    email = Column(String(255), nullable=False)
    company_type = Column(String(100), nullable=True)
    product_scope = Column(Text, nullable=True)
    residence_location = Column(String(255), nullable=True)
    exact_location = Column(String(255), nullable=True)

    # Plan
    plan_type = Column(String(50), nullable=False, default="commission", server_default="commission")
    # Values: 'commission', 'flat_fee'

    # Review state
    status = Column(String(50), nullable=False, default="pending", server_default="pending")
    # Values: 'pending', 'approved', 'rejected'
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        nullable=False,
    )
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewer_id = Column(String, nullable=True)
    review_notes = Column(Text, nullable=True)
