# marketplace/models/payment_webhook_event.py
from sqlalchemy import Column, String, DateTime, Text, JSON, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from marketplace.db.base_class import Base
import uuid
from datetime import datetime, timezone


class PaymentWebhookEvent(Base):
    __tablename__ = "payment_webhook_events"
    __table_args__ = (
        UniqueConstraint("provider", "provider_event_id", name="uq_webhook_provider_event"),
    )

    id = Column(
        String, primary_key=True, default=lambda: f"whe_{uuid.uuid4().hex[:12]}"
    )

    # Provider information
    provider = Column(String(50), nullable=False)
    provider_event_id = Column(String(255), nullable=False)
    provider_event_type = Column(String(100), nullable=False)  # e.g. 'checkout.session.completed'

    # Processing status
    status = Column(String(50), nullable=False, default="pending", server_default="pending")
    # Values: 'pending', 'processed', 'skipped', 'failed'

    payload = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)

    processed_at = Column(DateTime(timezone=True), nullable=True)
    processing_error = Column(Text, nullable=True)
    related_payment_id = Column(String, nullable=True)

    received_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        nullable=False,
    )

    @property
    def is_processed(self) -> bool:
        """Processed and skipped events are both settled."""
        return self.status in ("processed", "skipped")
