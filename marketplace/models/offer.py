# marketplace/models/offer.py
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Numeric, func, text
from marketplace.db.base_class import Base
import uuid
from datetime import datetime, timezone


class Offer(Base):
    """A supplier's priced listing of a product."""

    __tablename__ = "offers"

    id = Column(
        String, primary_key=True, default=lambda: f"ofr_{uuid.uuid4().hex[:12]}"
    )
    supplier_id = Column(String, nullable=False, index=True)  # user id of the supplier
    product_id = Column(String, nullable=False, index=True)
    product_name = Column(String(255), nullable=True)

    price = Column(Numeric(18, 2), nullable=False)
    currency = Column(String(3), nullable=False, server_default="KWD")
    stock_qty = Column(Integer, nullable=False, server_default="0")
    min_order_qty = Column(Integer, nullable=False, server_default="1")
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("true"))

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        nullable=False,
    )
