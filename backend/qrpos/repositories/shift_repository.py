"""
Shift Repository - Data Access Layer for staff shifts
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from qrpos.core.exceptions import NotFoundError, StateError
from qrpos.models.shift import Shift


class ShiftRepository:
    """Repository for Shift data access"""

    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, shift_id: int) -> Optional[Shift]:
        return self.session.get(Shift, shift_id)

    def start(self, user_id: str, now: datetime, notes: Optional[str] = None) -> Shift:
        shift = Shift(user_id=user_id, start_time=now, notes=notes)
        self.session.add(shift)
        self.session.flush()
        return shift

    def end(self, shift_id: int, now: datetime) -> None:
        """
        Record the end of an open shift

        Raises:
            NotFoundError: unknown shift
            StateError: the shift was already ended
        """
        result = self.session.execute(
            update(Shift)
            .where(Shift.id == shift_id, Shift.end_time.is_(None))
            .values(end_time=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return
        if self.find_by_id(shift_id) is None:
            raise NotFoundError(f"Shift {shift_id} not found")
        raise StateError(f"Shift {shift_id} is already closed")

    def count_open(self) -> int:
        """Shifts with no recorded end time"""
        return self.session.scalar(
            select(func.count()).select_from(Shift).where(Shift.end_time.is_(None))
        )
