# marketplace/services/reports.py
"""
Supplier earnings: the settlement fields frozen on each order line,
summed for a period. Rows are capped so a single request stays bounded.
"""
import logging
from datetime import datetime
from decimal import Decimal
from io import BytesIO
from typing import List, Optional

import pandas as pd
from sqlalchemy.orm import Session

from marketplace import crud
from marketplace.schemas.report import EarningsReport, EarningsRow

logger = logging.getLogger(__name__)

MAX_REPORT_ROWS = 1000
MAX_EXPORT_ROWS = 5000

CSV_COLUMNS = [
    "order_id",
    "order_date",
    "product_id",
    "product_name",
    "quantity",
    "unit_price",
    "line_total",
    "commission_rate",
    "commission_amount",
    "net_to_supplier",
]


def _fetch_rows(
    db: Session,
    supplier_id: str,
    date_from: Optional[datetime],
    date_to: Optional[datetime],
    product_id: Optional[str],
    limit: int,
) -> List[EarningsRow]:
    lines = crud.order.get_items_for_supplier(
        db,
        supplier_id=supplier_id,
        date_from=date_from,
        date_to=date_to,
        product_id=product_id,
        limit=limit,
    )
    return [
        EarningsRow(
            order_id=item.order_id,
            order_date=order_date,
            product_id=item.product_id,
            product_name=item.product_name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            line_total=item.line_total,
            commission_rate=item.commission_rate,
            commission_amount=item.commission_amount,
            net_to_supplier=item.net_to_supplier,
        )
        for item, order_date in lines
    ]


def get_supplier_earnings(
    db: Session,
    supplier_id: str,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    product_id: Optional[str] = None,
) -> EarningsReport:
    rows = _fetch_rows(db, supplier_id, date_from, date_to, product_id, MAX_REPORT_ROWS)
    return EarningsReport(
        supplier_id=supplier_id,
        total_gross=sum((r.line_total for r in rows), Decimal("0.00")),
        total_commission=sum((r.commission_amount for r in rows), Decimal("0.00")),
        total_net=sum((r.net_to_supplier for r in rows), Decimal("0.00")),
        rows=rows,
    )


def export_supplier_earnings_csv(
    db: Session,
    supplier_id: str,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    product_id: Optional[str] = None,
) -> BytesIO:
    """CSV of the supplier's earnings rows, one header row."""
    rows = _fetch_rows(db, supplier_id, date_from, date_to, product_id, MAX_EXPORT_ROWS)

    df = pd.DataFrame([r.model_dump() for r in rows], columns=CSV_COLUMNS)
    if not df.empty:
        df["order_date"] = pd.to_datetime(df["order_date"], utc=True).dt.strftime("%Y-%m-%d")
        # Keep Decimal text as-is (e.g. 0.0200) instead of float formatting
        for column in ("unit_price", "line_total", "commission_rate", "commission_amount", "net_to_supplier"):
            df[column] = df[column].map(str)

    output = BytesIO()
    df.to_csv(output, index=False)
    output.seek(0)
    logger.info(f"Exported {len(df)} earnings rows for supplier {supplier_id}")
    return output
