# marketplace/crud/crud_offer.py
from typing import List, Optional
from datetime import datetime, timezone
from sqlalchemy.orm import Session

from marketplace.crud.base import CRUDBase
from marketplace.models.offer import Offer
from marketplace.schemas.offer import OfferCreate, OfferUpdate


class CRUDOffer(CRUDBase[Offer, OfferCreate, OfferUpdate]):
    """CRUD operations for supplier offers."""

    def create_for_supplier(
        self, db: Session, *, obj_in: OfferCreate, supplier_id: str
    ) -> Offer:
        """Create an offer owned by a supplier."""
        return self.create(db, obj_in=obj_in, supplier_id=supplier_id)

    def get_by_supplier(
        self,
        db: Session,
        *,
        supplier_id: str,
        active_only: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Offer]:
        """Get a supplier's offers, newest first."""
        query = db.query(self.model).filter(self.model.supplier_id == supplier_id)
        if active_only:
            query = query.filter(self.model.is_active == True)  # noqa: E712
        return (
            query.order_by(self.model.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def update_for_supplier(
        self, db: Session, *, db_obj: Offer, obj_in: OfferUpdate
    ) -> Offer:
        """Apply a partial update and stamp updated_at."""
        update_data = obj_in.model_dump(exclude_unset=True)
        update_data["updated_at"] = datetime.now(timezone.utc)
        return self.update(db, db_obj=db_obj, obj_in=update_data)


offer = CRUDOffer(Offer)
