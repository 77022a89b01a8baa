# marketplace/models/order_item.py
from sqlalchemy import Column, String, DateTime, Integer, Numeric, ForeignKey, func
from sqlalchemy.orm import relationship
from marketplace.db.base_class import Base
import uuid
from datetime import datetime, timezone


class OrderItem(Base):
    """
    One priced line of an order.

    The settlement fields are a financial ledger: they are written once at
    order creation and never edited afterwards.
    """

    __tablename__ = "order_items"

    id = Column(
        String, primary_key=True, default=lambda: f"oi_{uuid.uuid4().hex[:12]}"
    )
    order_id = Column(String, ForeignKey("orders.id"), nullable=False, index=True)

    # Reference only; later edits to the offer never cascade here.
    offer_id = Column(String, nullable=False, index=True)
    supplier_id = Column(String, nullable=False, index=True)
    product_id = Column(String, nullable=False)
    product_name = Column(String(255), nullable=True)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(18, 2), nullable=False)
    line_total = Column(Numeric(18, 2), nullable=False)

    # Settlement fields
    commission_rate = Column(Numeric(5, 4), nullable=False)  # e.g. 0.0200
    commission_amount = Column(Numeric(18, 2), nullable=False)
    net_to_supplier = Column(Numeric(18, 2), nullable=False)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        nullable=False,
    )

    order = relationship("Order", back_populates="items")
