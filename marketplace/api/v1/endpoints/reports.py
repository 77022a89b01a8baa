# marketplace/api/v1/endpoints/reports.py
from typing import Optional
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
import logging

from marketplace.api import deps
from marketplace.schemas.report import EarningsReport
from marketplace.schemas.token import TokenPayload
from marketplace.services import reports

router = APIRouter(prefix="/supplier/reports", tags=["Reports"])
logger = logging.getLogger(__name__)


def _require_supplier(current_user: TokenPayload):
    """Verify the user has supplier role."""
    if not current_user.has_role("supplier"):
        raise HTTPException(status_code=403, detail="Supplier access required")


@router.get("/earnings", response_model=EarningsReport)
def get_earnings(
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    product_id: Optional[str] = None,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    Gross, commission and net for the supplier's order lines.

    At most 1000 most recent lines are included.
    """
    _require_supplier(current_user)
    return reports.get_supplier_earnings(
        db, current_user.sub, date_from=date_from, date_to=date_to, product_id=product_id
    )


@router.get("/earnings.csv")
def export_earnings_csv(
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    product_id: Optional[str] = None,
    db: Session = Depends(deps.get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """CSV export of up to 5000 earnings lines."""
    _require_supplier(current_user)
    output = reports.export_supplier_earnings_csv(
        db, current_user.sub, date_from=date_from, date_to=date_to, product_id=product_id
    )
    filename = f"earnings_{datetime.now(timezone.utc):%Y%m%d%H%M%S}.csv"
    return StreamingResponse(
        output,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
