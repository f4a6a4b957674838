"""
Modelos relacionados con órdenes/pedidos
"""
from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, Text, DECIMAL, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from qrpos.core.database import Base


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SETTLED = "settled"
    FAILED = "failed"
    REFUNDED = "refunded"


TERMINAL_ORDER_STATUSES = (OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value)
OPEN_ORDER_STATUSES = tuple(s.value for s in OrderStatus if s.value not in TERMINAL_ORDER_STATUSES)
# Cancelling is only possible before the kitchen starts on the order
CANCELLABLE_ORDER_STATUSES = (OrderStatus.PENDING.value, OrderStatus.CONFIRMED.value)


class Order(Base):
    """
    Pedido de una mesa, perteneciente a un día operativo
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    business_day_id = Column(Integer, ForeignKey("business_days.id"), nullable=False, index=True)

    table_number = Column(Integer, nullable=False)

    # Montos
    total = Column(DECIMAL(12, 2), nullable=False, default=0)

    # Estados
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value, index=True)

    notes = Column(Text)
    created_by = Column(String(100))

    # Fechas
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    paid_at = Column(DateTime(timezone=True))

    # Relationships
    business_day = relationship("BusinessDay", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan",
                         order_by="OrderItem.id")


class OrderItem(Base):
    """
    Items/productos de cada orden
    """
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False)

    # Datos del producto al momento de venta
    product_name = Column(String(255), nullable=False)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(DECIMAL(12, 2), nullable=False)
    total = Column(DECIMAL(12, 2), nullable=False)

    # Relationships
    order = relationship("Order", back_populates="items")
    product = relationship("Product")
