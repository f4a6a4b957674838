"""
Tests for OrderRepository: placement, closed-day write guard, close queries

Author: TM3
Date: 2026-10-19
"""
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest

from qrpos.core.exceptions import DayClosedError, NotFoundError, StateError
from qrpos.models.order import OrderStatus
from qrpos.repositories.business_day_repository import BusinessDayRepository
from qrpos.repositories.order_repository import OrderRepository

T0 = datetime(2026, 10, 19, 12, 0)


@pytest.fixture
def repo(session):
    return OrderRepository(session)


class TestOrderPlacement:
    """Test OrderRepository.create"""

    def test_first_order_opens_the_day(self, session, repo, products):
        """Test the first order of the day opens a business day"""
        order = repo.create(4, [(products["Lomo saltado"], 2)], T0, created_by="u-waiter")
        session.commit()

        day = BusinessDayRepository(session).find_open()
        assert day is not None
        assert order.business_day_id == day.id
        assert day.opened_by == "u-waiter"

    def test_totals_computed_from_product_prices(self, session, repo, products):
        """Test line and order totals come from the product prices"""
        # Act
        order = repo.create(
            4,
            [(products["Lomo saltado"], 2), (products["Chicha morada"], 3)],
            T0,
        )
        session.commit()

        # Assert
        assert order.total == Decimal("34.00")
        assert [(i.product_name, i.quantity) for i in order.items] == [
            ("Lomo saltado", 2),
            ("Chicha morada", 3),
        ]
        assert order.status == "pending"
        assert order.payment_status == "pending"

    def test_unknown_or_inactive_product_rejected(self, session, repo, products):
        """Test unknown and inactive products raise NotFoundError"""
        with pytest.raises(NotFoundError):
            repo.create(1, [(999, 1)], T0)
        session.rollback()

        with pytest.raises(NotFoundError):
            repo.create(1, [(products["Old dish"], 1)], T0)
        session.rollback()


class TestClosedDayGuard:
    """Test writes are refused once the owning day is closed"""

    def _close_open_day(self, session):
        days = BusinessDayRepository(session)
        day = days.find_open()
        days.mark_closed(day.id, "u-manager", T0 + timedelta(hours=10))
        session.commit()

    def test_status_update_on_open_day(self, session, repo, products):
        """Test status updates go through while the day is open"""
        # Arrange
        order = repo.create(4, [(products["Ceviche"], 1)], T0)
        session.commit()

        # Act
        repo.update_status(order.id, OrderStatus.PREPARING, T0 + timedelta(minutes=5))
        session.commit()
        session.expire_all()

        # Assert
        assert repo.find_by_id(order.id).status == "preparing"

    def test_updates_rejected_once_day_is_closed(self, session, repo, products):
        """Test status and payment writes raise DayClosedError on a closed day"""
        # Arrange
        order = repo.create(4, [(products["Ceviche"], 1)], T0)
        session.commit()
        self._close_open_day(session)

        # Act & Assert
        with pytest.raises(DayClosedError):
            repo.update_status(order.id, OrderStatus.CANCELLED, T0 + timedelta(hours=11))
        with pytest.raises(DayClosedError):
            repo.settle_payment(order.id, T0 + timedelta(hours=11))
        session.rollback()
        session.expire_all()

        unchanged = repo.find_by_id(order.id)
        assert unchanged.status == "pending"
        assert unchanged.payment_status == "pending"

    def test_closed_day_wins_over_transition_rules(self, session, repo, products):
        """Test a delivered order of a closed day reports the closed day, not the transition"""
        order = repo.create(4, [(products["Ceviche"], 1)], T0)
        session.commit()
        repo.update_status(order.id, OrderStatus.DELIVERED, T0)
        session.commit()
        self._close_open_day(session)

        with pytest.raises(DayClosedError):
            repo.update_status(order.id, OrderStatus.CANCELLED, T0 + timedelta(hours=11))

    def test_unknown_order(self, repo):
        """Test writes to an unknown order raise NotFoundError"""
        with pytest.raises(NotFoundError):
            repo.settle_payment(42, T0)

    @pytest.mark.parametrize("write", ["update_status", "settle_payment"])
    def test_writes_lock_the_open_day(self, session, repo, products, write):
        """Test order writes take the open-day row lock before updating"""
        # Arrange
        order = repo.create(4, [(products["Ceviche"], 1)], T0)
        session.commit()
        original = BusinessDayRepository.lock_open_day

        # Act
        with patch.object(
            BusinessDayRepository, "lock_open_day", autospec=True, side_effect=original
        ) as mock_lock:
            if write == "update_status":
                repo.update_status(order.id, OrderStatus.READY, T0 + timedelta(minutes=1))
            else:
                repo.settle_payment(order.id, T0 + timedelta(minutes=1))

        # Assert
        mock_lock.assert_called_once()
        session.commit()
        session.expire_all()
        assert repo.find_by_id(order.id).updated_at == T0 + timedelta(minutes=1)


class TestStatusTransitions:
    """Test which status changes update_status accepts"""

    @pytest.mark.parametrize("start", [OrderStatus.PENDING, OrderStatus.CONFIRMED])
    def test_cancel_before_kitchen_starts(self, session, repo, products, start):
        """Test pending and confirmed orders can be cancelled"""
        # Arrange
        order = repo.create(1, [(products["Ceviche"], 1)], T0)
        session.commit()
        if start is not OrderStatus.PENDING:
            repo.update_status(order.id, start, T0)

        # Act
        repo.update_status(order.id, OrderStatus.CANCELLED, T0 + timedelta(minutes=1))
        session.commit()
        session.expire_all()

        # Assert
        assert repo.find_by_id(order.id).status == "cancelled"

    @pytest.mark.parametrize("start", [OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.DELIVERED])
    def test_cancel_refused_once_kitchen_started(self, session, repo, products, start):
        """Test cancelling a preparing, ready or delivered order raises StateError"""
        # Arrange
        order = repo.create(1, [(products["Ceviche"], 1)], T0)
        session.commit()
        repo.update_status(order.id, start, T0)
        session.commit()

        # Act & Assert
        with pytest.raises(StateError) as exc_info:
            repo.update_status(order.id, OrderStatus.CANCELLED, T0 + timedelta(minutes=1))
        assert start.value in exc_info.value.message

        session.rollback()
        session.expire_all()
        assert repo.find_by_id(order.id).status == start.value

    def test_settled_delivered_order_cannot_be_cancelled(self, session, repo, products):
        """Test a served and paid order keeps its revenue"""
        order = repo.create(1, [(products["Lomo saltado"], 2)], T0)
        session.commit()
        repo.update_status(order.id, OrderStatus.DELIVERED, T0)
        repo.settle_payment(order.id, T0)
        session.commit()

        with pytest.raises(StateError):
            repo.update_status(order.id, OrderStatus.CANCELLED, T0)
        session.rollback()

        stats = repo.aggregate_day(order.business_day_id)
        assert stats.total_sales == Decimal("25.00")
        assert stats.total_orders == 1

    @pytest.mark.parametrize("terminal", [OrderStatus.DELIVERED, OrderStatus.CANCELLED])
    def test_terminal_orders_do_not_reopen(self, session, repo, products, terminal):
        """Test delivered and cancelled orders cannot move back to an open status"""
        order = repo.create(1, [(products["Ceviche"], 1)], T0)
        session.commit()
        repo.update_status(order.id, terminal, T0)
        session.commit()

        with pytest.raises(StateError):
            repo.update_status(order.id, OrderStatus.PREPARING, T0)
        session.rollback()
        session.expire_all()

        assert repo.find_by_id(order.id).status == terminal.value
        assert repo.count_pending_orders() == 0


class TestCloseQueries:
    """Test the pending counts and sales aggregation used by the close"""

    def test_pending_counts_scoped_to_open_day(self, session, repo, products):
        """Test pending orders and payments count only the open day's orders"""
        # Arrange
        served = repo.create(1, [(products["Ceviche"], 1)], T0)
        session.commit()
        repo.update_status(served.id, OrderStatus.DELIVERED, T0)
        repo.settle_payment(served.id, T0)
        repo.create(2, [(products["Ceviche"], 1)], T0)
        cancelled = repo.create(3, [(products["Ceviche"], 1)], T0)
        session.commit()
        repo.update_status(cancelled.id, OrderStatus.CANCELLED, T0)
        session.commit()

        # Act & Assert
        assert repo.count_pending_orders() == 1
        # the cancelled order is not waiting on a payment
        assert repo.count_pending_payments() == 1

    def test_no_open_day_means_nothing_pending(self, session, repo):
        """Test counts are zero when no day is open"""
        assert repo.count_pending_orders() == 0
        assert repo.count_pending_payments() == 0

    def test_aggregate_day(self, session, repo, products):
        """Test sales, order count and top products of a day"""
        # Arrange
        lomo, chicha, ceviche = products["Lomo saltado"], products["Chicha morada"], products["Ceviche"]

        first = repo.create(1, [(lomo, 2), (chicha, 1)], T0)       # 28.00
        second = repo.create(2, [(chicha, 3)], T0)                  # 9.00
        unpaid = repo.create(3, [(ceviche, 1)], T0)                 # 10.00
        cancelled = repo.create(4, [(ceviche, 5)], T0)              # 50.00
        session.commit()
        for order in (first, second):
            repo.update_status(order.id, OrderStatus.DELIVERED, T0)
            repo.settle_payment(order.id, T0)
        repo.update_status(unpaid.id, OrderStatus.DELIVERED, T0)
        repo.update_status(cancelled.id, OrderStatus.CANCELLED, T0)
        session.commit()

        # Act
        stats = repo.aggregate_day(first.business_day_id, top_n=5)

        # Assert
        assert stats.total_sales == Decimal("37.00")
        assert stats.total_orders == 3
        # Chicha 4 units, Lomo 2, Ceviche 1 (cancelled order excluded)
        assert [(p.name, p.quantity) for p in stats.top_products] == [
            ("Chicha morada", 4),
            ("Lomo saltado", 2),
            ("Ceviche", 1),
        ]

    def test_aggregate_day_ties_broken_by_product_id_and_limited(self, session, repo, products):
        """Test equal quantities rank by product id and top_n caps the list"""
        ids = sorted(products[name] for name in ("Lomo saltado", "Ceviche", "Chicha morada"))
        order = repo.create(1, [(pid, 1) for pid in reversed(ids)], T0)
        session.commit()

        stats = repo.aggregate_day(order.business_day_id, top_n=2)

        assert [p.product_id for p in stats.top_products] == ids[:2]

    def test_aggregate_empty_day(self, session, products):
        """Test a day without orders aggregates to zeros"""
        day = BusinessDayRepository(session).create(T0)
        session.commit()

        stats = OrderRepository(session).aggregate_day(day.id)

        assert stats.total_sales == Decimal("0")
        assert stats.total_orders == 0
        assert stats.top_products == []
