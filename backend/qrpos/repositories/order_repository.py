"""
Order Repository - Data Access Layer for Orders

Handles order placement, status and payment updates, and the day-level
queries the daily close needs (pending counts and sales aggregation).

Orders of a closed business day are read-only: every write is conditioned
on the owning day still being open.

Author: TM3
Date: 2026-10-19
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from qrpos.core.exceptions import DayClosedError, NotFoundError, StateError
from qrpos.domain.daily_close import CloseStatistics, TopProduct
from qrpos.models.business_day import BusinessDay
from qrpos.models.order import (
    CANCELLABLE_ORDER_STATUSES,
    OPEN_ORDER_STATUSES,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
)
from qrpos.models.product import Product
from qrpos.repositories.business_day_repository import BusinessDayRepository
from qrpos.repositories.product_repository import ProductRepository


def _open_day_ids():
    """Subquery: id of the open business day (at most one row)"""
    return select(BusinessDay.id).where(BusinessDay.closed_at.is_(None))


class OrderRepository:
    """
    Repository for Order data access

    Works inside the caller's session; the caller owns commit/rollback.
    """

    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, order_id: int) -> Optional[Order]:
        stmt = (
            select(Order)
            .where(Order.id == order_id)
            .options(selectinload(Order.items))
        )
        return self.session.scalars(stmt).first()

    def find_by_day(self, business_day_id: int) -> List[Order]:
        """All orders of a day with their items, oldest first"""
        stmt = (
            select(Order)
            .where(Order.business_day_id == business_day_id)
            .options(selectinload(Order.items))
            .order_by(Order.id)
        )
        return list(self.session.scalars(stmt).all())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(
        self,
        table_number: int,
        items: Sequence[Tuple[int, int]],
        now: datetime,
        created_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Order:
        """
        Place an order on the open business day, opening one if needed

        Args:
            table_number: Table placing the order
            items: (product_id, quantity) pairs
            now: Placement timestamp
            created_by: Staff user id
            notes: Free text for the kitchen

        Raises:
            NotFoundError: a product does not exist or is inactive
        """
        day = BusinessDayRepository(self.session).get_or_open(now, opened_by=created_by)

        order = Order(
            business_day_id=day.id,
            table_number=table_number,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            notes=notes,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )

        products = ProductRepository(self.session)
        total = Decimal("0")
        for product_id, quantity in items:
            product = products.find_by_id(product_id)
            if product is None or not product.is_active:
                raise NotFoundError(f"Product {product_id} not found")

            line_total = Decimal(product.price) * quantity
            order.items.append(OrderItem(
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
                unit_price=product.price,
                total=line_total,
            ))
            total += line_total

        order.total = total
        self.session.add(order)
        self.session.flush()
        return order

    def _update_on_open_day(
        self,
        order_id: int,
        values: dict,
        from_statuses: Optional[Sequence[str]] = None,
    ) -> Optional[str]:
        """
        Update an order of the open day, holding a share lock on the day row

        Returns:
            None when the row was updated, otherwise the order's current
            status (it was not in ``from_statuses``)

        Raises:
            NotFoundError: unknown order
            DayClosedError: the order belongs to a closed day
        """
        day_id = BusinessDayRepository(self.session).lock_open_day()

        stmt = update(Order).where(Order.id == order_id, Order.business_day_id == day_id)
        if from_statuses is not None:
            stmt = stmt.where(Order.status.in_(from_statuses))
        result = self.session.execute(
            stmt.values(**values).execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return None

        # Nothing updated: missing order, locked day or status guard
        row = self.session.execute(
            select(Order.business_day_id, Order.status).where(Order.id == order_id)
        ).first()
        if row is None:
            raise NotFoundError(f"Order {order_id} not found")
        if day_id is None or row.business_day_id != day_id:
            raise DayClosedError(
                "The business day is closed. Orders and payments can no longer be modified; "
                "ask an administrator to reopen the day if needed."
            )
        return row.status

    def update_status(self, order_id: int, status: OrderStatus, now: datetime) -> None:
        """
        Move an order to ``status``

        Only pending or confirmed orders can be cancelled. Delivered and
        cancelled orders are final.

        Raises:
            NotFoundError, DayClosedError
            StateError: transition not allowed from the current status
        """
        if status is OrderStatus.CANCELLED:
            allowed = CANCELLABLE_ORDER_STATUSES
        else:
            allowed = OPEN_ORDER_STATUSES

        current = self._update_on_open_day(
            order_id, {"status": status.value, "updated_at": now}, from_statuses=allowed
        )
        if current is None:
            return
        if status is OrderStatus.CANCELLED:
            raise StateError(f"Cannot cancel order in current status ({current})")
        raise StateError(f"Order {order_id} is already {current} and can no longer change status")

    def settle_payment(self, order_id: int, now: datetime) -> None:
        self._update_on_open_day(order_id, {
            "payment_status": PaymentStatus.SETTLED.value,
            "paid_at": now,
            "updated_at": now,
        })

    # ------------------------------------------------------------------
    # Daily close queries
    # ------------------------------------------------------------------

    def count_pending_orders(self, business_day_id: Optional[int] = None) -> int:
        """Orders in a non-terminal status on the open day (or the given day)"""
        day_filter = (
            Order.business_day_id == business_day_id
            if business_day_id is not None
            else Order.business_day_id.in_(_open_day_ids())
        )
        stmt = (
            select(func.count())
            .select_from(Order)
            .where(day_filter, Order.status.in_(OPEN_ORDER_STATUSES))
        )
        return self.session.scalar(stmt)

    def count_pending_payments(self, business_day_id: Optional[int] = None) -> int:
        """Non-cancelled orders on the open day (or the given day) not yet settled"""
        day_filter = (
            Order.business_day_id == business_day_id
            if business_day_id is not None
            else Order.business_day_id.in_(_open_day_ids())
        )
        stmt = (
            select(func.count())
            .select_from(Order)
            .where(
                day_filter,
                Order.status != OrderStatus.CANCELLED.value,
                Order.payment_status != PaymentStatus.SETTLED.value,
            )
        )
        return self.session.scalar(stmt)

    def aggregate_day(self, business_day_id: int, top_n: int = 5) -> CloseStatistics:
        """
        Sales statistics of a business day

        total_sales sums settled, non-cancelled orders; total_orders counts
        non-cancelled orders; top products are ranked by summed quantity,
        ties broken by product id ascending.
        """
        not_cancelled = Order.status != OrderStatus.CANCELLED.value

        total_sales = self.session.scalar(
            select(func.coalesce(func.sum(Order.total), 0))
            .where(
                Order.business_day_id == business_day_id,
                not_cancelled,
                Order.payment_status == PaymentStatus.SETTLED.value,
            )
        )
        total_orders = self.session.scalar(
            select(func.count())
            .select_from(Order)
            .where(Order.business_day_id == business_day_id, not_cancelled)
        )

        quantity = func.sum(OrderItem.quantity).label("quantity")
        rows = self.session.execute(
            select(OrderItem.product_id, Product.name, quantity)
            .join(Order, OrderItem.order_id == Order.id)
            .join(Product, OrderItem.product_id == Product.id)
            .where(Order.business_day_id == business_day_id, not_cancelled)
            .group_by(OrderItem.product_id, Product.name)
            .order_by(quantity.desc(), OrderItem.product_id.asc())
            .limit(top_n)
        ).all()

        return CloseStatistics(
            total_sales=Decimal(str(total_sales)),
            total_orders=total_orders,
            top_products=[
                TopProduct(product_id=row.product_id, name=row.name, quantity=int(row.quantity))
                for row in rows
            ],
        )
