"""
Repository Layer - Data Access

This layer handles all database queries and returns ORM rows or domain models.
Repositories abstract away SQL details from business logic.

Author: TM3
Date: 2026-10-19
"""
from qrpos.repositories.business_day_repository import BusinessDayRepository
from qrpos.repositories.order_repository import OrderRepository
from qrpos.repositories.product_repository import ProductRepository
from qrpos.repositories.shift_repository import ShiftRepository

__all__ = [
    'BusinessDayRepository',
    'OrderRepository',
    'ProductRepository',
    'ShiftRepository',
]
