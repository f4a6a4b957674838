"""
Modelos de base de datos
"""
from .business_day import BusinessDay, CloseStatistics
from .order import Order, OrderItem, OrderStatus, PaymentStatus
from .product import Product
from .shift import Shift

__all__ = [
    "BusinessDay",
    "CloseStatistics",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentStatus",
    "Product",
    "Shift",
]
