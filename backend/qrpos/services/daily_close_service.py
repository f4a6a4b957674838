"""
Daily close workflow: status, pre-close validation, close, reopen

The business day is a persisted record selected by ``closed_at IS NULL``.
Close and reopen are conditional updates on that record, so concurrent
attempts serialize in the database and only one of them can win.

Author: TM3
Date: 2026-10-19
"""
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from qrpos.core.auth import TokenUser
from qrpos.core.config import settings
from qrpos.core.database import SessionLocal
from qrpos.core.exceptions import (
    AtomicityFailure,
    InsufficientPrivilegeError,
    StateError,
    ValidationError,
)
from qrpos.domain.daily_close import (
    CHECK_DEFINITIONS,
    BusinessDaySummary,
    CheckName,
    CheckResult,
    CloseResult,
    CloseStatus,
    Severity,
    ValidationChecks,
    ValidationVerdict,
)
from qrpos.domain.order import Order as OrderView
from qrpos.repositories.business_day_repository import BusinessDayRepository
from qrpos.repositories.order_repository import OrderRepository
from qrpos.repositories.product_repository import ProductRepository
from qrpos.repositories.shift_repository import ShiftRepository
from qrpos.services.backup_service import CloseBackupService

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DailyCloseService:
    """
    Daily close business logic

    Every public method opens its own session(s) from ``session_factory``;
    the pre-close checks each run on a separate session in a thread pool.
    """

    # Check name -> method computing it
    _CHECK_RUNNERS = {
        CheckName.PENDING_ORDERS: "_check_pending_orders",
        CheckName.OPEN_SHIFTS: "_check_open_shifts",
        CheckName.PENDING_PAYMENTS: "_check_pending_payments",
        CheckName.LOW_STOCK: "_check_low_stock",
    }

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        top_products_limit: Optional[int] = None,
        max_workers: Optional[int] = None,
        backup_service: Optional[CloseBackupService] = None,
    ):
        self._session_factory = session_factory or SessionLocal
        self._clock = clock or utcnow
        self.top_products_limit = top_products_limit or settings.TOP_PRODUCTS_LIMIT
        self.max_workers = max_workers or settings.VALIDATION_WORKERS
        if backup_service is None and settings.BACKUP_DIR:
            backup_service = CloseBackupService(settings.BACKUP_DIR)
        self._backup = backup_service

    # ========================================================================
    # Status
    # ========================================================================

    def get_close_status(self) -> CloseStatus:
        """Open/closed state of the current day and the last close date"""
        with self._session_factory() as session:
            days = BusinessDayRepository(session)
            current = days.find_current()
            last_closed = days.find_latest_closed()

            if current is None:
                is_closed, can_close, reason = False, False, "No business day is open"
            elif current.closed_at is not None:
                is_closed, can_close, reason = True, False, "Day already closed"
            else:
                is_closed, can_close, reason = False, True, None

            return CloseStatus(
                is_closed=is_closed,
                last_close_date=last_closed.closed_at if last_closed else None,
                can_close=can_close,
                reason=reason,
                business_day_id=current.id if current else None,
                opened_at=current.opened_at if current else None,
                closed_by=current.closed_by if current else None,
            )

    # ========================================================================
    # Pre-close validation
    # ========================================================================

    def validate_pre_close(self) -> ValidationVerdict:
        """
        Run every pre-close check concurrently and join on all of them

        Raises:
            ValidationError: a check could not read its data source
        """
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                definition.name: executor.submit(self._run_check, definition.name)
                for definition in CHECK_DEFINITIONS
            }
            wait(futures.values())

        results = {}
        failed = []
        for name, future in futures.items():
            try:
                results[name.value] = future.result()
            except SQLAlchemyError as e:
                logger.error(f"Pre-close check {name.value} failed: {e}")
                failed.append(name.value)

        if failed:
            raise ValidationError(
                f"Unable to validate the daily close, data source unavailable ({', '.join(failed)})"
            )

        return ValidationVerdict(validations=ValidationChecks(**results))

    def _run_check(self, name: CheckName) -> CheckResult:
        with self._session_factory() as session:
            return getattr(self, self._CHECK_RUNNERS[name])(session)

    def _check_pending_orders(self, session: Session) -> CheckResult:
        count = OrderRepository(session).count_pending_orders()
        if count == 0:
            return CheckResult(valid=True, count=0, message="No pending orders")
        return CheckResult(
            valid=False,
            count=count,
            message=f"There are {count} pending orders that must be completed before closing",
        )

    def _check_open_shifts(self, session: Session) -> CheckResult:
        count = ShiftRepository(session).count_open()
        if count == 0:
            return CheckResult(valid=True, count=0, message="All shifts are closed")
        return CheckResult(
            valid=False,
            count=count,
            message=f"There are {count} open shifts that must be ended before closing",
        )

    def _check_pending_payments(self, session: Session) -> CheckResult:
        count = OrderRepository(session).count_pending_payments()
        if count == 0:
            return CheckResult(valid=True, count=0, message="All payments are settled")
        return CheckResult(
            valid=False,
            count=count,
            message=f"There are {count} orders with unsettled payments",
        )

    def _check_low_stock(self, session: Session) -> CheckResult:
        products = ProductRepository(session).find_low_stock()
        if not products:
            return CheckResult(valid=True, count=0, message="Stock levels are fine", products=[])
        return CheckResult(
            valid=False,
            count=len(products),
            message=f"{len(products)} products are at or below their minimum stock",
            products=products,
        )

    # ========================================================================
    # Close
    # ========================================================================

    def execute_close(self, actor: TokenUser, notes: Optional[str] = None) -> CloseResult:
        """
        Close the open business day if every blocking check passes

        Returns:
            CloseResult; success=False when the checks block the close or
            the close transaction was rolled back

        Raises:
            StateError: there is no open day, or another close won the race
            ValidationError: the checks could not be evaluated
        """
        with self._session_factory() as session:
            days = BusinessDayRepository(session)
            day = days.find_open()
            if day is None:
                raise StateError(self._no_open_day_message(days))
            day_id = day.id

        verdict = self.validate_pre_close()
        if not verdict.can_close:
            message = "Cannot close day: " + "; ".join(verdict.blocking_issues())
            logger.info(f"Daily close of day {day_id} refused: {message}")
            return CloseResult(success=False, message=message)

        try:
            result = self._commit_close(day_id, actor, notes)
        except AtomicityFailure as e:
            logger.error(f"Daily close rolled back: {e.message}")
            return CloseResult(success=False, message="Failed to execute daily close")

        if result.success:
            logger.info(
                f"Business day {day_id} closed by {actor.id}: "
                f"{result.stats.total_orders} orders, sales {result.stats.total_sales}"
            )
        return result

    def _commit_close(self, day_id: int, actor: TokenUser, notes: Optional[str]) -> CloseResult:
        """Close stamp, statistics and backup in one transaction"""
        now = self._clock()
        backup_path = None
        session = self._session_factory()
        try:
            days = BusinessDayRepository(session)
            orders = OrderRepository(session)

            if not days.mark_closed(day_id, actor.id, now, notes):
                session.rollback()
                raise StateError("Business day is already closed")

            # Row is locked from here on; work started after the verdict shows up now
            stale = [name.value for name, count in self._blocking_counts(session, day_id).items() if count]
            if stale:
                session.rollback()
                logger.info(f"Daily close of day {day_id} refused: stale validation ({', '.join(stale)})")
                return CloseResult(
                    success=False,
                    message=f"Pre-close validation is stale ({', '.join(stale)} changed). Validate again.",
                )

            stats = orders.aggregate_day(day_id, self.top_products_limit)
            days.save_statistics(day_id, stats, now)

            if self._backup is not None:
                day_orders = [OrderView.model_validate(o) for o in orders.find_by_day(day_id)]
                backup_path = self._backup.write(day_id, now, day_orders)
                days.set_backup_path(day_id, backup_path)

            session.commit()
            return CloseResult(success=True, message="Daily close executed successfully", stats=stats)

        except (SQLAlchemyError, OSError) as e:
            session.rollback()
            if self._backup is not None:
                self._backup.discard(backup_path)
            raise AtomicityFailure(f"close of business day {day_id} failed: {e}") from e
        finally:
            session.close()

    def _blocking_counts(self, session: Session, day_id: int) -> Dict[CheckName, int]:
        """Blocking checks re-counted inside the close transaction"""
        orders = OrderRepository(session)
        counters = {
            CheckName.PENDING_ORDERS: lambda: orders.count_pending_orders(day_id),
            CheckName.OPEN_SHIFTS: lambda: ShiftRepository(session).count_open(),
            CheckName.PENDING_PAYMENTS: lambda: orders.count_pending_payments(day_id),
        }
        return {
            definition.name: counters[definition.name]()
            for definition in CHECK_DEFINITIONS
            if definition.severity is Severity.BLOCKING
        }

    @staticmethod
    def _no_open_day_message(days: BusinessDayRepository) -> str:
        if days.find_latest() is not None:
            return "Business day is already closed"
        return "No business day is open"

    # ========================================================================
    # Reopen / open
    # ========================================================================

    def reopen_day(self, actor: TokenUser, reason: str) -> None:
        """
        Reopen the current day after a close (administrators only)

        Raises:
            InsufficientPrivilegeError: actor is not an administrator
            StateError: the current day is not closed
        """
        if not actor.is_admin:
            logger.warning(f"User {actor.id} ({actor.role}) tried to reopen the business day")
            raise InsufficientPrivilegeError("Only administrators can reopen a closed day")

        now = self._clock()
        with self._session_factory() as session:
            days = BusinessDayRepository(session)
            current = days.find_current()
            if current is None or current.closed_at is None:
                raise StateError("No closed day to reopen")

            day_id = current.id
            try:
                if not days.mark_reopened(day_id, actor.id, now, reason):
                    session.rollback()
                    raise StateError("No closed day to reopen")
                days.delete_statistics(day_id)
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise StateError("A new business day is already open; close it before reopening") from e

        logger.info(f"Business day {day_id} reopened by {actor.id}. Reason: {reason}")

    def open_day(self, actor: TokenUser) -> BusinessDaySummary:
        """
        Explicitly open a business day (orders also open one lazily)

        Raises:
            StateError: a day is already open
        """
        now = self._clock()
        with self._session_factory() as session:
            days = BusinessDayRepository(session)
            if days.find_open() is not None:
                raise StateError("Business day is already open")
            try:
                day = days.create(now, opened_by=actor.id)
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise StateError("Business day is already open") from e
            return BusinessDaySummary.from_record(day)

    # ========================================================================
    # History
    # ========================================================================

    def get_close_history(self, page: int = 1, limit: int = 10) -> Tuple[List[BusinessDaySummary], int]:
        """Closed days, most recent first, with their statistics"""
        offset = (page - 1) * limit
        with self._session_factory() as session:
            days, total = BusinessDayRepository(session).find_closed(limit=limit, offset=offset)
            return [BusinessDaySummary.from_record(day) for day in days], total
