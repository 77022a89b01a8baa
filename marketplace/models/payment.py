# marketplace/models/payment.py
from sqlalchemy import Column, String, DateTime, Numeric, ForeignKey, Text, func
from sqlalchemy.orm import relationship
from marketplace.db.base_class import Base
import uuid
from datetime import datetime, timezone


class Payment(Base):
    """One checkout attempt on an order."""

    __tablename__ = "payments"

    id = Column(
        String, primary_key=True, default=lambda: f"pay_{uuid.uuid4().hex[:12]}"
    )
    order_id = Column(String, ForeignKey("orders.id"), nullable=False, index=True)

    method = Column(String(50), nullable=False)  # 'card', 'knet', ...
    status = Column(String(50), nullable=False, default="pending", server_default="pending")
    # Values: 'pending', 'authorized', 'captured', 'refunded', 'failed', 'cancelled'

    amount = Column(Numeric(18, 2), nullable=False)
    currency = Column(String(3), nullable=False)

    # Provider information
    provider = Column(String(50), nullable=False)  # 'stripe', 'mock'
    provider_reference = Column(String(255), nullable=True, index=True)  # null until the gateway answers

    return_url = Column(Text, nullable=True)
    cancel_url = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        nullable=False,
    )
    updated_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    order = relationship("Order", back_populates="payments")

    @property
    def is_captured(self) -> bool:
        return self.status == "captured"
