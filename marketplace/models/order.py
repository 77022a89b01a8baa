# marketplace/models/order.py
from sqlalchemy import Column, String, DateTime, Integer, Numeric, func
from sqlalchemy.orm import relationship
from marketplace.db.base_class import Base
import uuid
from datetime import datetime, timezone


class Order(Base):
    __tablename__ = "orders"

    id = Column(
        String, primary_key=True, default=lambda: f"ord_{uuid.uuid4().hex[:12]}"
    )
    buyer_id = Column(String, nullable=False, index=True)

    # Order status
    status = Column(String(50), nullable=False, default="pending", server_default="pending")
    # Values: 'pending', 'accepted', 'shipped', 'delivered', 'cancelled'

    # Snapshot of the item line totals at creation; never recomputed.
    total = Column(Numeric(18, 2), nullable=False)
    currency = Column(String(3), nullable=False)

    shipping_address_id = Column(String, nullable=True)

    # Optimistic concurrency token, bumped by every status transition.
    version = Column(Integer, nullable=False, default=1, server_default="1")

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

    # Relationships
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.created_at",
    )
    payments = relationship(
        "Payment", back_populates="order", order_by="Payment.created_at"
    )

    @property
    def supplier_ids(self) -> set:
        """Suppliers whose offers appear on this order."""
        return {item.supplier_id for item in self.items}

    @property
    def is_paid(self) -> bool:
        """Check if any payment attempt on the order was captured."""
        return any(p.status == "captured" for p in self.payments)
