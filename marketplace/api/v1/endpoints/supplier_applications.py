# marketplace/api/v1/endpoints/supplier_applications.py
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from marketplace.api import deps
from marketplace.core.errors import MarketplaceError, raise_http
from marketplace.schemas.supplier_application import (
    SupplierApplication,
    SupplierApplicationCreate,
    SupplierApplicationReject,
    SupplierApplicationStatus,
)
from marketplace.schemas.token import TokenPayload
from marketplace.services.notifier import NotifierInterface
from marketplace.services.supplier_applications import SupplierApplicationService

router = APIRouter(tags=["Supplier Applications"])


def _require_admin(current_user: TokenPayload):
    """Verify the user has admin role."""
    if not current_user.has_role("admin"):
        raise HTTPException(status_code=403, detail="Admin access required")


def _application_service(
    db: Session = Depends(deps.get_db),
    notifier: NotifierInterface = Depends(deps.get_notifier),
) -> SupplierApplicationService:
    return SupplierApplicationService(db, notifier)


@router.post(
    "/supplier-applications",
    response_model=SupplierApplication,
    status_code=status.HTTP_201_CREATED,
)
def submit_application(
    application_in: SupplierApplicationCreate,
    service: SupplierApplicationService = Depends(_application_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Apply to sell on the marketplace with a commission plan."""
    return service.submit_application(current_user.sub, application_in)


@router.get("/supplier-applications/mine", response_model=List[SupplierApplication])
def list_my_applications(
    service: SupplierApplicationService = Depends(_application_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    return service.list_for_user(current_user.sub)


@router.get("/admin/supplier-applications", response_model=List[SupplierApplication])
def admin_list_applications(
    status: Optional[SupplierApplicationStatus] = None,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
    service: SupplierApplicationService = Depends(_application_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """List applications for admin review."""
    _require_admin(current_user)
    return service.list_applications(status=status, skip=skip, limit=limit)


@router.post(
    "/admin/supplier-applications/{application_id}/approve",
    response_model=SupplierApplication,
)
def approve_application(
    application_id: str,
    service: SupplierApplicationService = Depends(_application_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Approve a pending application. Its plan applies to orders priced from now on."""
    _require_admin(current_user)
    try:
        return service.approve_application(application_id, current_user.sub)
    except MarketplaceError as e:
        raise_http(e)


@router.post(
    "/admin/supplier-applications/{application_id}/reject",
    response_model=SupplierApplication,
)
def reject_application(
    application_id: str,
    reject_in: Optional[SupplierApplicationReject] = None,
    service: SupplierApplicationService = Depends(_application_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Reject a pending application."""
    _require_admin(current_user)
    try:
        return service.reject_application(
            application_id, current_user.sub, notes=reject_in.notes if reject_in else None
        )
    except MarketplaceError as e:
        raise_http(e)
