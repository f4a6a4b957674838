"""
Día operativo y snapshot de estadísticas del cierre diario
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, DECIMAL, ForeignKey, JSON, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from qrpos.core.database import Base


class BusinessDay(Base):
    """
    Período contable entre un cierre diario y el siguiente.

    A lo sumo un registro tiene closed_at NULL (el día abierto actual).
    """
    __tablename__ = "business_days"

    id = Column(Integer, primary_key=True, index=True)

    opened_at = Column(DateTime(timezone=True), nullable=False)
    opened_by = Column(String(100))

    # Cierre
    closed_at = Column(DateTime(timezone=True), index=True)
    closed_by = Column(String(100))
    close_notes = Column(Text)
    backup_path = Column(String(500))

    # Última reapertura
    reopened_at = Column(DateTime(timezone=True))
    reopened_by = Column(String(100))
    reopen_reason = Column(Text)

    # Metadata
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    orders = relationship("Order", back_populates="business_day")
    statistics = relationship("CloseStatistics", back_populates="business_day", uselist=False,
                              cascade="all, delete-orphan")


# Only one row may sit in the partial index, i.e. only one open day
Index(
    "uq_business_days_single_open",
    BusinessDay.__table__.c.closed_at.is_(None),
    unique=True,
    postgresql_where=BusinessDay.__table__.c.closed_at.is_(None),
    sqlite_where=BusinessDay.__table__.c.closed_at.is_(None),
)


class CloseStatistics(Base):
    """
    Estadísticas calculadas al cerrar el día; se descartan al reabrir
    """
    __tablename__ = "close_statistics"

    id = Column(Integer, primary_key=True, index=True)
    business_day_id = Column(Integer, ForeignKey("business_days.id", ondelete="CASCADE"),
                             nullable=False, unique=True)

    total_sales = Column(DECIMAL(12, 2), nullable=False)
    total_orders = Column(Integer, nullable=False)
    # [{"productId": 1, "name": "Lomo saltado", "quantity": 12}, ...]
    top_products = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False)

    business_day = relationship("BusinessDay", back_populates="statistics")
