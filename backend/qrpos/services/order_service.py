"""
Order and shift operations used by the floor staff

Thin transactional wrapper over the repositories. Placing the first order
after a daily close opens the next business day.
"""
import logging
from datetime import datetime
from typing import Callable, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from qrpos.core.auth import TokenUser
from qrpos.core.database import SessionLocal
from qrpos.core.exceptions import InsufficientPrivilegeError, NotFoundError
from qrpos.domain.order import Order, Shift
from qrpos.models.order import OrderStatus
from qrpos.repositories.order_repository import OrderRepository
from qrpos.repositories.shift_repository import ShiftRepository
from qrpos.services.daily_close_service import utcnow

logger = logging.getLogger(__name__)


class OrderService:
    """Order placement, status and payment updates, shift start/end"""

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._session_factory = session_factory or SessionLocal
        self._clock = clock or utcnow

    def place_order(
        self,
        table_number: int,
        items: Sequence[Tuple[int, int]],
        created_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Order:
        """
        Place an order on the open business day

        A concurrent request may open the day first; the unique open-day
        index then rejects our insert and the placement is retried once.
        """
        for attempt in (1, 2):
            with self._session_factory() as session:
                try:
                    order = OrderRepository(session).create(
                        table_number, items, self._clock(), created_by=created_by, notes=notes
                    )
                    session.commit()
                    logger.info(f"Order {order.id} placed for table {table_number} on day {order.business_day_id}")
                    return self._load(session, order.id)
                except IntegrityError:
                    session.rollback()
                    if attempt == 2:
                        raise
                    logger.warning("Business day opened concurrently, retrying order placement")

    def update_status(self, order_id: int, status: OrderStatus) -> Order:
        with self._session_factory() as session:
            OrderRepository(session).update_status(order_id, status, self._clock())
            session.commit()
            return self._load(session, order_id)

    def settle_payment(self, order_id: int) -> Order:
        with self._session_factory() as session:
            OrderRepository(session).settle_payment(order_id, self._clock())
            session.commit()
            logger.info(f"Payment settled for order {order_id}")
            return self._load(session, order_id)

    def start_shift(self, user_id: str, notes: Optional[str] = None) -> Shift:
        with self._session_factory() as session:
            shift = ShiftRepository(session).start(user_id, self._clock(), notes)
            session.commit()
            return Shift.model_validate(shift)

    def end_shift(self, shift_id: int, actor: TokenUser) -> Shift:
        """
        End an open shift

        Staff can only end their own shift; managers and admins can end any.
        """
        with self._session_factory() as session:
            repo = ShiftRepository(session)
            shift = repo.find_by_id(shift_id)
            if shift is None:
                raise NotFoundError(f"Shift {shift_id} not found")
            if shift.user_id != actor.id and not actor.has_role("manager"):
                logger.warning(f"User {actor.id} tried to end shift {shift_id} of {shift.user_id}")
                raise InsufficientPrivilegeError("Only the shift owner or a manager can end this shift")

            repo.end(shift_id, self._clock())
            session.commit()
            session.expire_all()
            return Shift.model_validate(repo.find_by_id(shift_id))

    @staticmethod
    def _load(session: Session, order_id: int) -> Order:
        session.expire_all()
        order = OrderRepository(session).find_by_id(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return Order.model_validate(order)
