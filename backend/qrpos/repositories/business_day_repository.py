"""
Business Day Repository - Data Access Layer for business days

All state changes on business_days are conditional updates so that two
concurrent close (or reopen) attempts cannot both succeed.

Author: TM3
Date: 2026-10-19
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, selectinload

from qrpos.domain.daily_close import CloseStatistics as CloseStatisticsData
from qrpos.models.business_day import BusinessDay, CloseStatistics

logger = logging.getLogger(__name__)


class BusinessDayRepository:
    """
    Repository for BusinessDay data access

    Works inside the caller's session; the caller owns commit/rollback.
    """

    def __init__(self, session: Session):
        self.session = session

    def find_open(self, for_update: bool = False) -> Optional[BusinessDay]:
        """The open day (closed_at IS NULL), optionally row-locked"""
        stmt = select(BusinessDay).where(BusinessDay.closed_at.is_(None))
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.scalars(stmt).first()

    def find_latest(self) -> Optional[BusinessDay]:
        """Most recently opened day, open or closed"""
        stmt = select(BusinessDay).order_by(BusinessDay.opened_at.desc(), BusinessDay.id.desc())
        return self.session.scalars(stmt).first()

    def find_current(self) -> Optional[BusinessDay]:
        """Open day if any, else the most recently opened one"""
        return self.find_open() or self.find_latest()

    def find_latest_closed(self) -> Optional[BusinessDay]:
        stmt = (
            select(BusinessDay)
            .where(BusinessDay.closed_at.is_not(None))
            .order_by(BusinessDay.closed_at.desc(), BusinessDay.id.desc())
        )
        return self.session.scalars(stmt).first()

    def lock_open_day(self) -> Optional[int]:
        """
        Id of the open day, share-locked (FOR SHARE) until commit

        Order writes take this lock, so they serialize with the close,
        which updates the same row.
        """
        stmt = (
            select(BusinessDay.id)
            .where(BusinessDay.closed_at.is_(None))
            .with_for_update(read=True)
        )
        return self.session.scalar(stmt)

    def create(self, now: datetime, opened_by: Optional[str] = None) -> BusinessDay:
        """Insert a new open day; the unique open-day index rejects a second one"""
        day = BusinessDay(opened_at=now, opened_by=opened_by)
        self.session.add(day)
        self.session.flush()
        logger.info(f"Business day {day.id} opened by {opened_by or 'first order'}")
        return day

    def get_or_open(self, now: datetime, opened_by: Optional[str] = None) -> BusinessDay:
        """
        Return the open day, opening a new one lazily if none exists

        Raises:
            IntegrityError: another transaction opened a day concurrently.
                The caller rolls back and retries.
        """
        day = self.find_open(for_update=True)
        if day is not None:
            return day
        return self.create(now, opened_by)

    def mark_closed(
        self,
        day_id: int,
        closed_by: str,
        now: datetime,
        notes: Optional[str] = None,
    ) -> bool:
        """
        Stamp the day as closed only if it is still open

        Returns:
            True if this call performed the transition
        """
        result = self.session.execute(
            update(BusinessDay)
            .where(BusinessDay.id == day_id, BusinessDay.closed_at.is_(None))
            .values(closed_at=now, closed_by=closed_by, close_notes=notes)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def set_backup_path(self, day_id: int, backup_path: str) -> None:
        self.session.execute(
            update(BusinessDay)
            .where(BusinessDay.id == day_id)
            .values(backup_path=backup_path)
            .execution_options(synchronize_session=False)
        )

    def mark_reopened(
        self,
        day_id: int,
        reopened_by: str,
        now: datetime,
        reason: Optional[str] = None,
    ) -> bool:
        """
        Clear the close stamp only if the day is still closed

        Returns:
            True if this call performed the transition
        """
        result = self.session.execute(
            update(BusinessDay)
            .where(BusinessDay.id == day_id, BusinessDay.closed_at.is_not(None))
            .values(
                closed_at=None,
                closed_by=None,
                close_notes=None,
                backup_path=None,
                reopened_at=now,
                reopened_by=reopened_by,
                reopen_reason=reason,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def save_statistics(self, day_id: int, stats: CloseStatisticsData, now: datetime) -> CloseStatistics:
        row = CloseStatistics(
            business_day_id=day_id,
            total_sales=stats.total_sales,
            total_orders=stats.total_orders,
            top_products=[p.to_dict() for p in stats.top_products],
            created_at=now,
        )
        self.session.add(row)
        self.session.flush()
        return row

    def delete_statistics(self, day_id: int) -> None:
        self.session.execute(
            delete(CloseStatistics)
            .where(CloseStatistics.business_day_id == day_id)
            .execution_options(synchronize_session=False)
        )

    def count_open(self) -> int:
        stmt = select(func.count()).select_from(BusinessDay).where(BusinessDay.closed_at.is_(None))
        return self.session.scalar(stmt)

    def find_closed(self, limit: int = 10, offset: int = 0) -> Tuple[List[BusinessDay], int]:
        """
        Closed days, most recent close first

        Returns:
            Tuple of (days with statistics loaded, total closed days)
        """
        total = self.session.scalar(
            select(func.count()).select_from(BusinessDay).where(BusinessDay.closed_at.is_not(None))
        )
        stmt = (
            select(BusinessDay)
            .where(BusinessDay.closed_at.is_not(None))
            .options(selectinload(BusinessDay.statistics))
            .order_by(BusinessDay.closed_at.desc(), BusinessDay.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(self.session.scalars(stmt).all()), total

