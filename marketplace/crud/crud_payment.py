# marketplace/crud/crud_payment.py
from typing import Iterable, List, Optional
from datetime import datetime, timezone
from sqlalchemy.orm import Session

from marketplace.crud.base import CRUDBase
from marketplace.models.payment import Payment
from marketplace.schemas.payment import PaymentCreate, PaymentStatus


class CRUDPayment(CRUDBase[Payment, PaymentCreate, PaymentCreate]):
    """CRUD operations for Payment model."""

    def get_by_reference(
        self, db: Session, *, provider_reference: str
    ) -> Optional[Payment]:
        """Get a payment by the gateway's reference."""
        return (
            db.query(self.model)
            .filter(self.model.provider_reference == provider_reference)
            .first()
        )

    def get_by_order(self, db: Session, *, order_id: str) -> List[Payment]:
        """Get all payment attempts for an order, newest first."""
        return (
            db.query(self.model)
            .filter(self.model.order_id == order_id)
            .order_by(self.model.created_at.desc())
            .all()
        )

    def get_latest_for_order(
        self, db: Session, *, order_id: str
    ) -> Optional[Payment]:
        """Get the most recent payment attempt for an order."""
        return (
            db.query(self.model)
            .filter(self.model.order_id == order_id)
            .order_by(self.model.created_at.desc())
            .first()
        )

    def has_captured_payment(self, db: Session, *, order_id: str) -> bool:
        return (
            db.query(self.model.id)
            .filter(
                self.model.order_id == order_id,
                self.model.status == PaymentStatus.captured.value,
            )
            .first()
            is not None
        )

    def create_attempt(self, db: Session, *, obj_in: PaymentCreate) -> Payment:
        """Create a pending payment attempt."""
        db_obj = Payment(
            order_id=obj_in.order_id,
            method=obj_in.method.value,
            status=PaymentStatus.pending.value,
            amount=obj_in.amount,
            currency=obj_in.currency,
            provider=obj_in.provider,
            return_url=obj_in.return_url,
            cancel_url=obj_in.cancel_url,
        )
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def set_reference(
        self, db: Session, *, payment_id: str, provider_reference: str
    ) -> bool:
        """Store the gateway reference unless one is already recorded."""
        updated = (
            db.query(self.model)
            .filter(
                self.model.id == payment_id,
                self.model.provider_reference.is_(None),
            )
            .update(
                {
                    self.model.provider_reference: provider_reference,
                    self.model.updated_at: datetime.now(timezone.utc),
                },
                synchronize_session=False,
            )
        )
        db.commit()
        return updated == 1

    def apply_status(
        self,
        db: Session,
        *,
        payment_id: str,
        status: PaymentStatus,
        allowed_from: Optional[Iterable[PaymentStatus]] = None,
    ) -> bool:
        """
        Write a new status in a single conditional UPDATE.

        ``allowed_from`` restricts which current statuses may be overwritten;
        None means any. Rows already holding ``status`` are never matched, so
        re-applying a status is a no-op. Returns True when a row changed.
        """
        query = db.query(self.model).filter(
            self.model.id == payment_id,
            self.model.status != status.value,
        )
        if allowed_from is not None:
            query = query.filter(
                self.model.status.in_([s.value for s in allowed_from])
            )
        updated = query.update(
            {
                self.model.status: status.value,
                self.model.updated_at: datetime.now(timezone.utc),
            },
            synchronize_session=False,
        )
        db.commit()
        return updated == 1


payment = CRUDPayment(Payment)
