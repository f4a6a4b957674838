"""
Productos del menú con control de stock
"""
from sqlalchemy import Column, Integer, String, Boolean, DECIMAL
from qrpos.core.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    price = Column(DECIMAL(12, 2), nullable=False)

    # Inventario
    current_stock = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=0)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
