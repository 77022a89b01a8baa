# marketplace/api/v1/endpoints/offers.py
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from marketplace import crud
from marketplace.api import deps
from marketplace.schemas.offer import Offer, OfferCreate, OfferUpdate
from marketplace.schemas.token import TokenPayload

router = APIRouter()


def _require_supplier(current_user: TokenPayload):
    """Verify the user has supplier role."""
    if not current_user.has_role("supplier"):
        raise HTTPException(status_code=403, detail="Supplier access required")


@router.post("", response_model=Offer, status_code=status.HTTP_201_CREATED)
def create_offer(
    offer_in: OfferCreate,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """List a product at a price. Supplier only."""
    _require_supplier(current_user)
    return crud.offer.create_for_supplier(db, obj_in=offer_in, supplier_id=current_user.sub)


@router.get("", response_model=List[Offer])
def list_my_offers(
    active_only: bool = False,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=200),
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """The calling supplier's offers."""
    _require_supplier(current_user)
    return crud.offer.get_by_supplier(
        db, supplier_id=current_user.sub, active_only=active_only, skip=skip, limit=limit
    )


@router.get("/{offer_id}", response_model=Offer)
def get_offer(
    offer_id: str,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    offer = crud.offer.get(db, id=offer_id)
    # Inactive offers are only visible to their owner
    if not offer or (not offer.is_active and offer.supplier_id != current_user.sub):
        raise HTTPException(status_code=404, detail="Offer not found")
    return offer


@router.patch("/{offer_id}", response_model=Offer)
def update_offer(
    offer_id: str,
    offer_in: OfferUpdate,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    Change price, stock, minimum quantity or visibility.

    Existing orders keep the prices they were created with.
    """
    _require_supplier(current_user)
    offer = crud.offer.get(db, id=offer_id)
    if not offer:
        raise HTTPException(status_code=404, detail="Offer not found")
    if offer.supplier_id != current_user.sub:
        raise HTTPException(status_code=403, detail="Not your offer")
    return crud.offer.update_for_supplier(db, db_obj=offer, obj_in=offer_in)
