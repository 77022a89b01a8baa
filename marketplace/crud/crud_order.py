# marketplace/crud/crud_order.py
from typing import List, Optional, Tuple
from datetime import datetime, timezone
from sqlalchemy.orm import Session, selectinload

from marketplace.crud.base import CRUDBase
from marketplace.models.order import Order
from marketplace.models.order_item import OrderItem
from marketplace.schemas.order import OrderCreate, OrderStatus


class CRUDOrder(CRUDBase[Order, OrderCreate, OrderCreate]):
    """CRUD operations for Order model."""

    def get_with_items(self, db: Session, *, order_id: str) -> Optional[Order]:
        """Get an order with its items and payments loaded."""
        return (
            db.query(self.model)
            .options(selectinload(self.model.items), selectinload(self.model.payments))
            .filter(self.model.id == order_id)
            .first()
        )

    def create_with_items(self, db: Session, *, order: Order) -> Order:
        """Persist an order and its lines in one transaction."""
        db.add(order)
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(order)
        return order

    def get_by_buyer(
        self,
        db: Session,
        *,
        buyer_id: str,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Order], int]:
        """Get orders for a buyer with pagination."""
        query = db.query(self.model).filter(self.model.buyer_id == buyer_id)

        if status:
            query = query.filter(self.model.status == status.value)

        total = query.count()
        orders = (
            query.options(selectinload(self.model.items))
            .order_by(self.model.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

        return orders, total

    def get_by_supplier(
        self,
        db: Session,
        *,
        supplier_id: str,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Order], int]:
        """Get orders that contain at least one of the supplier's offers."""
        query = db.query(self.model).filter(
            self.model.items.any(OrderItem.supplier_id == supplier_id)
        )

        if status:
            query = query.filter(self.model.status == status.value)

        total = query.count()
        orders = (
            query.options(selectinload(self.model.items))
            .order_by(self.model.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

        return orders, total

    def get_items_for_supplier(
        self,
        db: Session,
        *,
        supplier_id: str,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        product_id: Optional[str] = None,
        limit: int = 1000,
    ) -> List[Tuple[OrderItem, datetime]]:
        """Supplier's order lines with their order date, newest first. Cancelled orders are left out."""
        query = (
            db.query(OrderItem, self.model.created_at)
            .join(self.model, OrderItem.order_id == self.model.id)
            .filter(
                OrderItem.supplier_id == supplier_id,
                self.model.status != OrderStatus.cancelled.value,
            )
        )
        if date_from:
            query = query.filter(self.model.created_at >= date_from)
        if date_to:
            query = query.filter(self.model.created_at <= date_to)
        if product_id:
            query = query.filter(OrderItem.product_id == product_id)

        return query.order_by(self.model.created_at.desc()).limit(limit).all()

    def transition_status(
        self,
        db: Session,
        *,
        order_id: str,
        from_status: OrderStatus,
        to_status: OrderStatus,
    ) -> bool:
        """
        Atomically move an order between two statuses.

        The UPDATE only matches while the row still holds ``from_status``, so
        of two concurrent callers exactly one sees a matched row. Returns True
        when this call applied the transition.
        """
        updated = (
            db.query(self.model)
            .filter(
                self.model.id == order_id,
                self.model.status == from_status.value,
            )
            .update(
                {
                    self.model.status: to_status.value,
                    self.model.version: self.model.version + 1,
                    self.model.updated_at: datetime.now(timezone.utc),
                },
                synchronize_session=False,
            )
        )
        db.commit()
        return updated == 1


order = CRUDOrder(Order)
