# marketplace/services/supplier_applications.py
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from marketplace import crud
from marketplace.core.errors import ApplicationAlreadyReviewed, ApplicationNotFound
from marketplace.models.supplier_application import SupplierApplication
from marketplace.schemas.supplier_application import (
    SupplierApplicationCreate,
    SupplierApplicationStatus,
)
from marketplace.services.notifier import NotificationKind, NotifierInterface, publish_notification

logger = logging.getLogger(__name__)


class SupplierApplicationService:
    """
    Supplier onboarding. An approved application fixes the supplier's
    commission plan for orders priced after the approval.
    """

    def __init__(self, db: Session, notifier: NotifierInterface):
        self.db = db
        self.notifier = notifier

    def submit_application(
        self, user_id: str, data: SupplierApplicationCreate
    ) -> SupplierApplication:
        application = crud.supplier_application.create_for_user(
            self.db, obj_in=data, user_id=user_id
        )
        logger.info(
            f"Supplier application {application.id} submitted by {user_id} "
            f"({application.plan_type})"
        )
        return application

    def list_applications(
        self,
        status: Optional[SupplierApplicationStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[SupplierApplication]:
        return crud.supplier_application.get_multi_by_status(
            self.db, status=status, skip=skip, limit=limit
        )

    def list_for_user(self, user_id: str) -> List[SupplierApplication]:
        return crud.supplier_application.get_by_user(self.db, user_id=user_id)

    def get_latest_approved(self, supplier_id: str) -> Optional[SupplierApplication]:
        return crud.supplier_application.get_latest_approved(
            self.db, supplier_id=supplier_id
        )

    def approve_application(
        self, application_id: str, reviewer_id: str
    ) -> SupplierApplication:
        return self._review(
            application_id,
            reviewer_id,
            SupplierApplicationStatus.approved,
            NotificationKind.supplier_application_approved,
        )

    def reject_application(
        self, application_id: str, reviewer_id: str, notes: Optional[str] = None
    ) -> SupplierApplication:
        return self._review(
            application_id,
            reviewer_id,
            SupplierApplicationStatus.rejected,
            NotificationKind.supplier_application_rejected,
            notes=notes,
        )

    def _review(
        self,
        application_id: str,
        reviewer_id: str,
        decision: SupplierApplicationStatus,
        kind: NotificationKind,
        notes: Optional[str] = None,
    ) -> SupplierApplication:
        application = crud.supplier_application.get(self.db, id=application_id)
        if not application:
            raise ApplicationNotFound(f"Application {application_id} not found")

        decided = crud.supplier_application.review(
            self.db,
            application_id=application_id,
            status=decision,
            reviewer_id=reviewer_id,
            notes=notes,
        )
        self.db.refresh(application)
        if not decided:
            raise ApplicationAlreadyReviewed(
                f"Application {application_id} is already {application.status}"
            )

        logger.info(f"Application {application_id} {decision.value} by {reviewer_id}")
        payload = {"applicationId": application.id, "planType": application.plan_type}
        if notes:
            payload["notes"] = notes
        publish_notification(self.notifier, application.user_id, kind, payload)
        return application
