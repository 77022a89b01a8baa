# marketplace/crud/crud_supplier_application.py
from typing import List, Optional
from datetime import datetime, timezone
from sqlalchemy.orm import Session

from marketplace.crud.base import CRUDBase
from marketplace.models.supplier_application import SupplierApplication
from marketplace.schemas.supplier_application import (
    SupplierApplicationCreate,
    SupplierApplicationStatus,
)


class CRUDSupplierApplication(
    CRUDBase[SupplierApplication, SupplierApplicationCreate, SupplierApplicationCreate]
):
    """CRUD operations for supplier onboarding applications."""

    def create_for_user(
        self, db: Session, *, obj_in: SupplierApplicationCreate, user_id: str
    ) -> SupplierApplication:
        db_obj = SupplierApplication(
            **obj_in.model_dump(mode="json"),
            user_id=user_id,
            status=SupplierApplicationStatus.pending.value,
        )
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def get_latest_approved(
        self, db: Session, *, supplier_id: str
    ) -> Optional[SupplierApplication]:
        """Most recently approved application, ordered by review time."""
        return (
            db.query(self.model)
            .filter(
                self.model.user_id == supplier_id,
                self.model.status == SupplierApplicationStatus.approved.value,
            )
            .order_by(self.model.reviewed_at.desc())
            .first()
        )

    def get_by_user(self, db: Session, *, user_id: str) -> List[SupplierApplication]:
        return (
            db.query(self.model)
            .filter(self.model.user_id == user_id)
            .order_by(self.model.created_at.desc())
            .all()
        )

    def get_multi_by_status(
        self,
        db: Session,
        *,
        status: Optional[SupplierApplicationStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[SupplierApplication]:
        query = db.query(self.model)
        if status:
            query = query.filter(self.model.status == status.value)
        return (
            query.order_by(self.model.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def review(
        self,
        db: Session,
        *,
        application_id: str,
        status: SupplierApplicationStatus,
        reviewer_id: str,
        notes: Optional[str] = None,
    ) -> bool:
        """
        Move a pending application to approved or rejected.

        Conditional on the row still being pending, so two reviewers racing
        cannot both decide. Returns True when this call made the decision.
        """
        updated = (
            db.query(self.model)
            .filter(
                self.model.id == application_id,
                self.model.status == SupplierApplicationStatus.pending.value,
            )
            .update(
                {
                    self.model.status: status.value,
                    self.model.reviewed_at: datetime.now(timezone.utc),
                    self.model.reviewer_id: reviewer_id,
                    self.model.review_notes: notes,
                },
                synchronize_session=False,
            )
        )
        db.commit()
        return updated == 1


supplier_application = CRUDSupplierApplication(SupplierApplication)
