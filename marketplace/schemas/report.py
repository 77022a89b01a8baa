# marketplace/schemas/report.py
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from decimal import Decimal


class EarningsRow(BaseModel):
    order_id: str
    order_date: datetime
    product_id: str
    product_name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    commission_rate: Decimal
    commission_amount: Decimal
    net_to_supplier: Decimal


class EarningsReport(BaseModel):
    supplier_id: str
    total_gross: Decimal
    total_commission: Decimal
    total_net: Decimal
    rows: List[EarningsRow]
