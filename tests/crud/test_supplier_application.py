from unittest.mock import MagicMock

from marketplace import crud
from marketplace.crud.crud_supplier_application import CRUDSupplierApplication
from marketplace.models.supplier_application import SupplierApplication
from marketplace.schemas.supplier_application import (
    SupplierApplicationCreate,
    SupplierApplicationStatus,
    SupplierPlanType,
)
from tests.utils.factories import create_application

application_crud = CRUDSupplierApplication(SupplierApplication)


def test_create_for_user_starts_pending():
    db_session = MagicMock()
    obj_in = SupplierApplicationCreate(
        display_name="Rain",
        full_name="Test Supplier",
        company_or_shop_name="Rain Supplies Co",
        phone_with_country="+96550000000",
        email="supplier@example.com",
        plan_type=SupplierPlanType.flat_fee,
    )

    created = application_crud.create_for_user(db=db_session, obj_in=obj_in, user_id="user_1")

    assert created.status == "pending"
    assert created.plan_type == "flat_fee"
    assert created.user_id == "user_1"
    db_session.add.assert_called_once()
    db_session.commit.assert_called_once()


def test_review_only_decides_pending(db):
    application = create_application(db, status="pending")

    assert crud.supplier_application.review(
        db,
        application_id=application.id,
        status=SupplierApplicationStatus.approved,
        reviewer_id="admin_1",
    )
    assert not crud.supplier_application.review(
        db,
        application_id=application.id,
        status=SupplierApplicationStatus.rejected,
        reviewer_id="admin_2",
    )

    db.refresh(application)
    assert application.status == "approved"
    assert application.reviewer_id == "admin_1"
    assert application.reviewed_at is not None
