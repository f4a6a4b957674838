"""
Turnos del personal
"""
from sqlalchemy import Column, Integer, String, DateTime, Text
from qrpos.core.database import Base


class Shift(Base):
    """
    Turno de trabajo; end_time NULL mientras está abierto
    """
    __tablename__ = "shifts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(100), nullable=False, index=True)

    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), index=True)

    notes = Column(Text)
