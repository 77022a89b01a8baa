# marketplace/crud/crud_webhook_event.py
import logging
from typing import Optional
from datetime import datetime, timezone
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.crud.base import CRUDBase
from marketplace.models.payment_webhook_event import PaymentWebhookEvent
from marketplace.schemas.payment import WebhookEventCreate, WebhookEventStatus

logger = logging.getLogger(__name__)


class CRUDWebhookEvent(CRUDBase[PaymentWebhookEvent, WebhookEventCreate, WebhookEventCreate]):
    """CRUD operations for PaymentWebhookEvent model."""

    def get_by_provider_event_id(
        self, db: Session, *, provider: str, provider_event_id: str
    ) -> Optional[PaymentWebhookEvent]:
        """Get a webhook event by provider's event ID."""
        return (
            db.query(self.model)
            .filter(
                self.model.provider == provider,
                self.model.provider_event_id == provider_event_id,
            )
            .first()
        )

    def is_already_processed(
        self, db: Session, *, provider: str, provider_event_id: str
    ) -> bool:
        """Check if an event has already been settled."""
        event = self.get_by_provider_event_id(
            db, provider=provider, provider_event_id=provider_event_id
        )
        return event is not None and event.is_processed

    def record(
        self, db: Session, *, obj_in: WebhookEventCreate
    ) -> PaymentWebhookEvent:
        """
        Record an inbound event, or return the existing row for a redelivery.

        Concurrent deliveries of the same event race on the unique
        (provider, provider_event_id) constraint; the loser reads the winner's row.
        """
        existing = self.get_by_provider_event_id(
            db, provider=obj_in.provider, provider_event_id=obj_in.provider_event_id
        )
        if existing:
            return existing

        db_obj = PaymentWebhookEvent(
            provider=obj_in.provider,
            provider_event_id=obj_in.provider_event_id,
            provider_event_type=obj_in.provider_event_type,
            payload=obj_in.payload,
            status=WebhookEventStatus.pending.value,
        )
        db.add(db_obj)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"Webhook event {obj_in.provider_event_id} recorded concurrently")
            return self.get_by_provider_event_id(
                db, provider=obj_in.provider, provider_event_id=obj_in.provider_event_id
            )
        db.refresh(db_obj)
        return db_obj

    def mark(
        self,
        db: Session,
        *,
        event_id: str,
        status: WebhookEventStatus,
        related_payment_id: Optional[str] = None,
        error: Optional[str] = None,
    ) -> Optional[PaymentWebhookEvent]:
        """Mark an event processed, skipped or failed."""
        event = self.get(db, id=event_id)
        if not event:
            return None

        event.status = status.value
        event.processing_error = error
        if status != WebhookEventStatus.failed:
            event.processed_at = datetime.now(timezone.utc)
        if related_payment_id:
            event.related_payment_id = related_payment_id

        db.add(event)
        db.commit()
        db.refresh(event)
        return event


webhook_event = CRUDWebhookEvent(PaymentWebhookEvent)
